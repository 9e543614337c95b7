"""
Per-game catalog adapters.

Each game's catalog has its own schema. A CatalogAdapter knows one
schema: which table holds it and how a raw record maps onto a
CanonicalCard. Everything downstream of the adapter is game-agnostic.

INVARIANTS:
1. A record without a usable id raises MalformedRecord
2. Missing or null optional fields never fail
3. Fields a feed encodes as either string or number come out as strings
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from tcgbinder.models.card import CanonicalCard, Game
from tcgbinder.models.db import Base, OnePieceCardDB, PokemonCardDB, YuGiOhCardDB
from tcgbinder.models.failure import MalformedRecord


def as_text(value: Any) -> str | None:
    """
    Render a string-or-number feed value as a string.

    Integral floats drop their fractional part (3.0 -> "3"). Blank
    strings count as missing.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    text = str(value).strip()
    return text or None


def as_price(value: Any) -> float | None:
    """Parse a price that may arrive as a number or a numeric string."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def join_list(value: Any) -> str | None:
    """Join a list feed value with ", "; scalars pass through as_text."""
    if isinstance(value, list | tuple):
        parts = [text for text in (as_text(v) for v in value) if text]
        return ", ".join(parts) or None
    return as_text(value)


def _compact(attributes: dict[str, str | None]) -> dict[str, str]:
    return {key: value for key, value in attributes.items() if value is not None}


class CatalogAdapter(ABC):
    """Maps one game's raw catalog records onto CanonicalCard."""

    game: Game
    model: type[Base]

    def normalize(self, raw: Mapping[str, Any]) -> CanonicalCard:
        """
        Convert a raw record to a CanonicalCard.

        Raises:
            MalformedRecord: If the record has no usable id
        """
        catalog_id = as_text(raw.get("id"))
        if catalog_id is None:
            raise MalformedRecord(
                f"{self.game.display_name} record has no id",
                detail=f"keys={sorted(raw.keys())[:10]}",
            )
        return self._build(catalog_id, raw)

    @abstractmethod
    def _build(self, catalog_id: str, raw: Mapping[str, Any]) -> CanonicalCard:
        """Map a record whose id is known to be usable."""

    def row_to_raw(self, row: Base) -> dict[str, Any]:
        """Flatten an ORM catalog row into the raw record shape."""
        columns = self.model.__mapper__.column_attrs
        return {column.key: getattr(row, column.key) for column in columns}

    def raw_to_row(self, raw: Mapping[str, Any]) -> Base:
        """Build an ORM row from a raw feed record, ignoring unknown keys."""
        columns = {column.key for column in self.model.__mapper__.column_attrs}
        return self.model(**{key: value for key, value in raw.items() if key in columns})


class OnePieceAdapter(CatalogAdapter):
    game = Game.ONE_PIECE
    model = OnePieceCardDB

    def _build(self, catalog_id: str, raw: Mapping[str, Any]) -> CanonicalCard:
        return CanonicalCard(
            catalog_id=catalog_id,
            display_name=as_text(raw.get("name")) or catalog_id,
            game=self.game,
            set_code=as_text(raw.get("set_id")),
            rarity=as_text(raw.get("rarity")),
            attributes=_compact(
                {
                    "number": as_text(raw.get("card_set_id")),
                    "cost": as_text(raw.get("card_cost")),
                    "power": as_text(raw.get("card_power")),
                    "counter": as_text(raw.get("counter_amount")),
                    "color": as_text(raw.get("card_color")),
                    "type": as_text(raw.get("card_type")),
                    "text": as_text(raw.get("card_text")),
                    "attribute": as_text(raw.get("attribute")),
                    "subtypes": as_text(raw.get("sub_types")),
                    "life": as_text(raw.get("life")),
                    "trigger": as_text(raw.get("trigger")),
                    "set_name": as_text(raw.get("set_name")),
                }
            ),
            price_market=as_price(raw.get("market_price")),
            price_inventory=as_price(raw.get("inventory_price")),
            image_url=as_text(raw.get("image_url")),
        )


class PokemonAdapter(CatalogAdapter):
    game = Game.POKEMON
    model = PokemonCardDB

    def _build(self, catalog_id: str, raw: Mapping[str, Any]) -> CanonicalCard:
        types = raw.get("types") or []
        first_type = (types[0] if types else None) if isinstance(types, list | tuple) else types
        abilities = raw.get("abilities") or []
        first_ability = abilities[0] if abilities and isinstance(abilities[0], Mapping) else {}
        market = as_price(raw.get("tcgplayer_market_price"))

        return CanonicalCard(
            catalog_id=catalog_id,
            display_name=as_text(raw.get("name")) or catalog_id,
            game=self.game,
            set_code=as_text(raw.get("set_id")),
            rarity=as_text(raw.get("rarity")),
            attributes=_compact(
                {
                    # HP plays the role of power on a Pokémon card
                    "power": as_text(raw.get("hp")),
                    "color": as_text(first_type),
                    "type": join_list(types),
                    "attribute": join_list(raw.get("subtypes")),
                    "subtypes": join_list(raw.get("subtypes")),
                    "text": as_text(first_ability.get("text")),
                }
            ),
            price_market=market,
            price_inventory=market,
            image_url=as_text(raw.get("image_small")),
        )


class YuGiOhAdapter(CatalogAdapter):
    game = Game.YUGIOH
    model = YuGiOhCardDB

    def _build(self, catalog_id: str, raw: Mapping[str, Any]) -> CanonicalCard:
        frame_type = as_text(raw.get("frame_type"))
        return CanonicalCard(
            catalog_id=catalog_id,
            display_name=as_text(raw.get("name")) or catalog_id,
            game=self.game,
            set_code=frame_type,
            rarity=None,
            attributes=_compact(
                {
                    "type": as_text(raw.get("type")),
                    "subtypes": as_text(raw.get("type")),
                    "attribute": frame_type,
                    "text": as_text(raw.get("description")),
                }
            ),
            image_url=as_text(raw.get("image_url")),
        )
