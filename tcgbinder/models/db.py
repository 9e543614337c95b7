"""
SQLAlchemy ORM models for the remote store.

Three catalog tables keep each game's own schema; the ledger and the
binder registry are shared across games.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _new_uuid() -> str:
    return str(uuid.uuid4())


class UserBinderDB(Base):
    """A named binder owned by a user."""

    __tablename__ = "user_binders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    binder_type: Mapped[str] = mapped_column(String(50), default="black")
    binder_color: Mapped[str] = mapped_column(String(50), default="black")
    game: Mapped[str | None] = mapped_column(String(50), nullable=True)
    assigned_value: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserBinderDB(id={self.id}, name={self.name})>"


class BinderCardDB(Base):
    """
    Quantity ledger row.

    container_id is a binder id, or an owner id for owner-wide ledgers.
    Rows with qty <= 0 are never kept.
    """

    __tablename__ = "binder_cards"
    __table_args__ = (UniqueConstraint("container_id", "card_id", name="uq_container_card"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    container_id: Mapped[str] = mapped_column(String(255), index=True)
    card_id: Mapped[str] = mapped_column(String(255), index=True)
    qty: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition: Mapped[str | None] = mapped_column(String(50), nullable=True)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<BinderCardDB(card={self.card_id}, qty={self.qty})>"


# --- Catalogs ---
#
# Numeric-looking columns that the upstream feeds encode inconsistently
# (sometimes "3", sometimes 3) are stored as JSON so both survive.


class OnePieceCardDB(Base):
    """One Piece catalog row."""

    __tablename__ = "op_cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    rarity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_cost: Mapped[Any] = mapped_column(JSON, nullable=True)
    card_power: Mapped[Any] = mapped_column(JSON, nullable=True)
    counter_amount: Mapped[Any] = mapped_column(JSON, nullable=True)
    card_color: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    set_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_set_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    attribute: Mapped[str | None] = mapped_column(String(50), nullable=True)
    inventory_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    market_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    set_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_types: Mapped[str | None] = mapped_column(String(255), nullable=True)
    life: Mapped[Any] = mapped_column(JSON, nullable=True)
    trigger: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<OnePieceCardDB(id={self.id}, name={self.name})>"


class PokemonCardDB(Base):
    """Pokémon catalog row."""

    __tablename__ = "pkm_cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    image_small: Mapped[str | None] = mapped_column(Text, nullable=True)
    set_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hp: Mapped[Any] = mapped_column(JSON, nullable=True)
    types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    subtypes: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    abilities: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    tcgplayer_market_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<PokemonCardDB(id={self.id}, name={self.name})>"


class YuGiOhCardDB(Base):
    """Yu-Gi-Oh! catalog row."""

    __tablename__ = "ygo_cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    frame_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<YuGiOhCardDB(id={self.id}, name={self.name})>"

