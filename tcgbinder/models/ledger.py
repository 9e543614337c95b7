from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class LedgerRow:
    """
    How many copies of one catalog card a container owns.

    Attributes:
        container_id: Binder id, or owner id for owner-wide ledgers
        card_id: Catalog id of the card (joins CanonicalCard.catalog_id)
        qty: Copies owned, always >= 1 for stored rows
        notes: Free-form user notes for this card in this container
        condition: Physical condition label (e.g., "Near Mint")
        added_at: When the row was first inserted
    """

    container_id: str
    card_id: str
    qty: int
    notes: str | None = None
    condition: str | None = None
    added_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Binder:
    """A user's named binder as stored in the registry."""

    id: str
    owner_id: str
    name: str
    game: str | None = None
    color: str = "black"
    assigned_value: int = 1
