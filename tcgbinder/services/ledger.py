"""
Quantity ledger client.

Async CRUD against the remote (container, card) -> qty table, plus the
batch catalog lookup reconciliation needs.

INVARIANTS:
1. Stored rows always have qty >= 1; decrementing the last copy deletes the row
2. Every remote call is bounded by a timeout
3. Backend failures surface as RemoteUnavailable, missing sign-in as
   NotAuthenticated; neither is retried here
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgbinder.catalog import get_adapter, normalize_many
from tcgbinder.config import DEFAULT_CARD_CONDITION, settings
from tcgbinder.db import operations as ops
from tcgbinder.models.card import CanonicalCard, Game
from tcgbinder.models.failure import NotFound, RemoteUnavailable
from tcgbinder.models.ledger import LedgerRow
from tcgbinder.services.auth import AuthContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QuantityLedgerClient:
    """
    Ledger operations for one signed-in owner.

    Each operation runs in its own session and commits on success.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        auth: AuthContext,
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._auth = auth
        self._timeout = settings.remote_timeout_seconds if timeout is None else timeout

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run work in a committed session under the remote timeout."""
        self._auth.require_owner()
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as session:
                    result = await work(session)
                    await session.commit()
                    return result
        except TimeoutError as e:
            logger.warning("ledger_timeout", extra={"operation": operation})
            raise RemoteUnavailable(
                "The card service took too long to respond.",
                detail=f"{operation} exceeded {self._timeout}s",
            ) from e
        except SQLAlchemyError as e:
            logger.error("ledger_remote_error", extra={"operation": operation, "error": str(e)})
            raise RemoteUnavailable(
                "The card service is unavailable.",
                detail=f"{operation}: {type(e).__name__}",
            ) from e

    # --- Quantity protocol ---

    async def increment(self, container_id: str, card_id: str, by: int = 1) -> int:
        """
        Add copies of a card to a container.

        Inserts the row with qty=by if absent, otherwise adds by.
        Returns the new quantity.
        """
        if by < 1:
            raise ValueError(f"increment requires by >= 1, got {by}")

        async def work(session: AsyncSession) -> int:
            row = await ops.get_ledger_row(session, container_id, card_id)
            if row is None:
                await ops.insert_ledger_row(
                    session, container_id, card_id, by, condition=DEFAULT_CARD_CONDITION
                )
                return by
            row.qty += by
            await session.flush()
            return row.qty

        try:
            qty = await self._run("increment", work)
        except RemoteUnavailable as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            # Lost an insert race with another writer; the row exists now
            qty = await self._run("increment", work)
        logger.debug(
            "ledger_incremented",
            extra={"container_id": container_id, "card_id": card_id, "qty": qty},
        )
        return qty

    async def decrement_or_delete(self, container_id: str, card_id: str) -> int:
        """
        Remove one copy of a card from a container.

        qty > 1 is decremented; the last copy deletes the row. An absent
        row is a no-op. Returns the remaining quantity.
        """

        async def work(session: AsyncSession) -> int:
            row = await ops.get_ledger_row(session, container_id, card_id)
            if row is None:
                logger.info(
                    "ledger_decrement_absent_row",
                    extra={"container_id": container_id, "card_id": card_id},
                )
                return 0
            if row.qty > 1:
                row.qty -= 1
                await session.flush()
                return row.qty
            await ops.delete_ledger_row(session, container_id, card_id)
            return 0

        return await self._run("decrement_or_delete", work)

    # --- Reads ---

    async def list_for_container(self, container_id: str) -> list[LedgerRow]:
        """All ledger rows of a container, in insertion order."""

        async def work(session: AsyncSession) -> list[LedgerRow]:
            rows = await ops.list_ledger_rows(session, container_id)
            return [ops.ledger_row_to_model(row) for row in rows]

        rows = await self._run("list_for_container", work)
        logger.debug("ledger_listed", extra={"container_id": container_id, "rows": len(rows)})
        return rows

    async def batch_fetch_details(
        self, card_ids: Iterable[str], game: Game | str
    ) -> list[CanonicalCard]:
        """
        Fetch and normalize catalog details for a set of card ids.

        One round trip. Ids missing from the catalog and malformed
        records are left out of the result; neither fails the batch.
        """
        adapter = get_adapter(game)
        wanted = set(card_ids)
        if not wanted:
            return []

        async def work(session: AsyncSession) -> list[dict[str, Any]]:
            rows = await ops.fetch_catalog_rows(session, adapter, wanted)
            return [adapter.row_to_raw(row) for row in rows]

        records = await self._run("batch_fetch_details", work)
        cards = normalize_many(records, adapter.game)

        missing = len(wanted) - len(records)
        if missing:
            logger.debug(
                "catalog_ids_not_found",
                extra={"game": adapter.game.value, "requested": len(wanted), "missing": missing},
            )
        return cards

    # --- Maintenance ---

    async def clear_all(self, container_id: str) -> int:
        """Delete every row of a container. Returns the number deleted."""

        async def work(session: AsyncSession) -> int:
            return await ops.delete_container_rows(session, [container_id])

        count = await self._run("clear_all", work)
        logger.info("ledger_cleared", extra={"container_id": container_id, "rows": count})
        return count

    async def clear_all_for_containers(self, container_ids: Iterable[str]) -> int:
        """Delete every row of several containers in one statement."""
        ids = list(container_ids)

        async def work(session: AsyncSession) -> int:
            return await ops.delete_container_rows(session, ids)

        return await self._run("clear_all_for_containers", work)

    async def cleanup_invalid_quantities(self, container_id: str) -> int:
        """
        Drop rows with qty <= 0.

        Sweeps up drift left by partially failed writes. Returns the
        number of rows removed.
        """

        async def work(session: AsyncSession) -> int:
            return await ops.delete_invalid_rows(session, container_id)

        count = await self._run("cleanup_invalid_quantities", work)
        if count:
            logger.warning(
                "ledger_invalid_rows_removed",
                extra={"container_id": container_id, "rows": count},
            )
        return count

    # --- Notes ---

    async def get_notes(self, container_id: str, card_id: str) -> str:
        """User notes on a card in a container; empty when absent."""

        async def work(session: AsyncSession) -> str:
            row = await ops.get_ledger_row(session, container_id, card_id)
            return (row.notes or "") if row else ""

        return await self._run("get_notes", work)

    async def save_notes(self, container_id: str, card_id: str, notes: str) -> None:
        """
        Store user notes on a card in a container.

        Raises:
            NotFound: If the container does not own the card
        """

        async def work(session: AsyncSession) -> bool:
            row = await ops.get_ledger_row(session, container_id, card_id)
            if row is None:
                return False
            row.notes = notes
            await session.flush()
            return True

        if not await self._run("save_notes", work):
            raise NotFound(
                "That card is not in this binder.",
                detail=f"container={container_id} card={card_id}",
            )
