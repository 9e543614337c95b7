"""
Database CRUD operations.

Row-level async functions for the quantity ledger, the binder registry
and the per-game catalogs. Callers own the session and the transaction.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tcgbinder.catalog import CatalogAdapter
from tcgbinder.models.db import Base, BinderCardDB, UserBinderDB
from tcgbinder.models.ledger import Binder, LedgerRow

# --- Ledger Operations ---


async def get_ledger_row(
    session: AsyncSession, container_id: str, card_id: str
) -> BinderCardDB | None:
    """
    Get one ledger row.

    Returns None if the container does not own the card.
    """
    result = await session.execute(
        select(BinderCardDB).where(
            BinderCardDB.container_id == container_id,
            BinderCardDB.card_id == card_id,
        )
    )
    return result.scalar_one_or_none()


async def list_ledger_rows(session: AsyncSession, container_id: str) -> list[BinderCardDB]:
    """Get all ledger rows of a container in insertion order."""
    result = await session.execute(
        select(BinderCardDB)
        .where(BinderCardDB.container_id == container_id)
        .order_by(BinderCardDB.id)
    )
    return list(result.scalars().all())


async def insert_ledger_row(
    session: AsyncSession,
    container_id: str,
    card_id: str,
    qty: int,
    condition: str | None = None,
) -> BinderCardDB:
    """
    Insert a new ledger row.

    Raises IntegrityError if the (container, card) row already exists.
    """
    row = BinderCardDB(container_id=container_id, card_id=card_id, qty=qty, condition=condition)
    session.add(row)
    await session.flush()
    return row


async def delete_ledger_row(session: AsyncSession, container_id: str, card_id: str) -> bool:
    """
    Delete one ledger row.

    Returns True if a row was deleted.
    """
    result = await session.execute(
        delete(BinderCardDB).where(
            BinderCardDB.container_id == container_id,
            BinderCardDB.card_id == card_id,
        )
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount) > 0  # type: ignore[attr-defined]


async def delete_container_rows(session: AsyncSession, container_ids: Iterable[str]) -> int:
    """
    Delete every ledger row of the given containers.

    Returns the number of deleted rows.
    """
    ids = list(container_ids)
    if not ids:
        return 0
    result = await session.execute(delete(BinderCardDB).where(BinderCardDB.container_id.in_(ids)))
    return int(result.rowcount)  # type: ignore[attr-defined]


async def delete_invalid_rows(session: AsyncSession, container_id: str) -> int:
    """
    Delete a container's rows whose qty is zero or negative.

    Returns the number of deleted rows.
    """
    result = await session.execute(
        delete(BinderCardDB).where(
            BinderCardDB.container_id == container_id,
            BinderCardDB.qty <= 0,
        )
    )
    return int(result.rowcount)  # type: ignore[attr-defined]


def ledger_row_to_model(row: BinderCardDB) -> LedgerRow:
    """Convert a database ledger row to a domain model."""
    return LedgerRow(
        container_id=row.container_id,
        card_id=row.card_id,
        qty=row.qty,
        notes=row.notes,
        condition=row.condition,
        added_at=row.added_at,
    )


# --- Catalog Operations ---


async def fetch_catalog_rows(
    session: AsyncSession, adapter: CatalogAdapter, card_ids: Iterable[str]
) -> list[Base]:
    """
    Get catalog rows for a set of ids in one query.

    Ids with no catalog row are simply absent from the result.
    """
    ids = sorted(set(card_ids))
    if not ids:
        return []
    model: Any = adapter.model
    result = await session.execute(select(model).where(model.id.in_(ids)))
    return list(result.scalars().all())


async def upsert_catalog_rows(
    session: AsyncSession, adapter: CatalogAdapter, records: Iterable[Mapping[str, Any]]
) -> int:
    """
    Insert or update catalog rows from raw feed records.

    Returns the number of rows written.
    """
    count = 0
    for raw in records:
        await session.merge(adapter.raw_to_row(raw))
        count += 1
    await session.flush()
    return count


# --- Binder Registry Operations ---


async def list_binders(session: AsyncSession, owner_id: str) -> list[UserBinderDB]:
    """Get all binders of an owner, oldest first."""
    result = await session.execute(
        select(UserBinderDB)
        .where(UserBinderDB.user_id == owner_id)
        .order_by(UserBinderDB.assigned_value, UserBinderDB.created_at)
    )
    return list(result.scalars().all())


async def get_binder(session: AsyncSession, owner_id: str, binder_id: str) -> UserBinderDB | None:
    """Get one of an owner's binders by id."""
    result = await session.execute(
        select(UserBinderDB).where(
            UserBinderDB.id == binder_id,
            UserBinderDB.user_id == owner_id,
        )
    )
    return result.scalar_one_or_none()


async def count_binders(session: AsyncSession, owner_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(UserBinderDB).where(UserBinderDB.user_id == owner_id)
    )
    return int(result.scalar_one())


async def create_binder(
    session: AsyncSession,
    owner_id: str,
    name: str,
    game: str | None = None,
    color: str = "black",
) -> UserBinderDB:
    """
    Create a binder for an owner.

    assigned_value is the 1-based position among the owner's binders.
    """
    binder = UserBinderDB(
        user_id=owner_id,
        name=name,
        game=game,
        binder_color=color,
        assigned_value=await count_binders(session, owner_id) + 1,
    )
    session.add(binder)
    await session.flush()
    return binder


async def delete_binder(session: AsyncSession, owner_id: str, binder_id: str) -> bool:
    """
    Delete a binder and its ledger rows.

    Returns True if deleted, False if not found.
    """
    binder = await get_binder(session, owner_id, binder_id)
    if not binder:
        return False

    await delete_container_rows(session, [binder_id])
    await session.delete(binder)
    return True


async def delete_binders_for_owner(session: AsyncSession, owner_id: str) -> list[str]:
    """
    Delete all of an owner's binders and their ledger rows.

    Returns the ids of the deleted binders.
    """
    binder_ids = [binder.id for binder in await list_binders(session, owner_id)]
    await delete_container_rows(session, binder_ids)
    await session.execute(delete(UserBinderDB).where(UserBinderDB.user_id == owner_id))
    return binder_ids


def binder_to_model(binder: UserBinderDB) -> Binder:
    """Convert a database binder to a domain model."""
    return Binder(
        id=binder.id,
        owner_id=binder.user_id,
        name=binder.name,
        game=binder.game,
        color=binder.binder_color,
        assigned_value=binder.assigned_value,
    )
