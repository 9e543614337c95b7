"""
Card identity models.

INVARIANTS:
- CanonicalCard.catalog_id is unique within its game and is the ledger join key
- WorkingSetEntry is immutable; placement changes rewrite the owning list
- At most one live entry per (container_id, source, catalog_id, copy_ordinal)
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, slots=True)
class SetTemplate:
    """A default sub-collection a new binder starts with."""

    id: str
    name: str


class Game(str, Enum):
    """The three supported trading card games."""

    ONE_PIECE = "one_piece"
    POKEMON = "pokemon"
    YUGIOH = "yugioh"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def default_sets(self) -> tuple[SetTemplate, ...]:
        return _DEFAULT_SETS[self]


_DISPLAY_NAMES: dict[Game, str] = {
    Game.ONE_PIECE: "One Piece",
    Game.POKEMON: "Pokémon",
    Game.YUGIOH: "Yu-Gi-Oh!",
}

_DEFAULT_SETS: dict[Game, tuple[SetTemplate, ...]] = {
    Game.ONE_PIECE: (
        SetTemplate("OP-01", "Romance Dawn"),
        SetTemplate("OP-02", "Paramount War"),
        SetTemplate("OP-03", "Pillars of Strength"),
    ),
    Game.POKEMON: (
        SetTemplate("PKM-Base", "Base Set"),
        SetTemplate("PKM-Jungle", "Jungle"),
        SetTemplate("PKM-Fossil", "Fossil"),
    ),
    Game.YUGIOH: (
        SetTemplate("YGO-LOB", "Legend of Blue Eyes"),
        SetTemplate("YGO-MRD", "Metal Raiders"),
        SetTemplate("YGO-SRL", "Spell Ruler"),
    ),
}


@dataclass(frozen=True, slots=True)
class CanonicalCard:
    """
    Game-independent card value object.

    Attributes:
        catalog_id: Catalog primary key within the game namespace
        display_name: Card name as shown in the binder
        game: Which catalog the card comes from
        set_code: Set identifier (e.g., "OP-01", "base1")
        rarity: Rarity label as the catalog spells it
        attributes: Game-specific stats (cost, power, counter, type, ...),
            always string-valued
        price_market: Market price in USD
        price_inventory: Inventory (store) price in USD
        image_url: Card image location
    """

    catalog_id: str
    display_name: str
    game: Game
    set_code: str | None = None
    rarity: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    price_market: float | None = None
    price_inventory: float | None = None
    image_url: str | None = None


class EntrySource(str, Enum):
    """Where a working-set entry came from."""

    # Expanded from a ledger row; the ledger is authoritative
    BINDER = "binder"
    # Placed by hand; round-trips through the partition blob
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class WorkingSetEntry:
    """One physical copy of a card placed on a binder page."""

    card: CanonicalCard
    container_id: str
    source: EntrySource
    copy_ordinal: int
    page_index: int = 0

    @property
    def instance_id(self) -> str:
        return make_instance_id(
            self.container_id,
            self.card.display_name,
            self.card.catalog_id,
            self.source,
            self.copy_ordinal,
        )

    @property
    def is_ledger_backed(self) -> bool:
        return self.source is EntrySource.BINDER


def make_instance_id(
    container_id: str,
    display_name: str,
    catalog_id: str,
    source: EntrySource,
    copy_ordinal: int,
) -> str:
    """Build the display identity of one card copy."""
    return f"{container_id}-{display_name}-{catalog_id}-{source.value}-copy{copy_ordinal}"
