"""
Binder registry.

The signed-in owner's named binders: create, list, rename, recolor,
delete. Deleting a binder also deletes its ledger rows.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgbinder.config import settings
from tcgbinder.db import operations as ops
from tcgbinder.models.card import Game
from tcgbinder.models.failure import NotFound, RemoteUnavailable
from tcgbinder.models.ledger import Binder
from tcgbinder.services.auth import AuthContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

BINDER_COLORS = frozenset(
    {"black", "blue", "red", "green", "purple", "orange", "yellow", "pink", "brown", "gray"}
)
DEFAULT_BINDER_COLOR = "black"


def normalize_color(color: str | None) -> str:
    """Map a color name onto the supported palette; unknown -> black."""
    if not color:
        return DEFAULT_BINDER_COLOR
    color = color.strip().lower()
    if color == "grey":
        return "gray"
    return color if color in BINDER_COLORS else DEFAULT_BINDER_COLOR


class BinderRegistry:
    """Binder CRUD scoped to the authenticated owner."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        auth: AuthContext,
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._auth = auth
        self._timeout = settings.remote_timeout_seconds if timeout is None else timeout

    async def _run(self, operation: str, work: Callable[[AsyncSession, str], Awaitable[T]]) -> T:
        owner_id = self._auth.require_owner()
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as session:
                    result = await work(session, owner_id)
                    await session.commit()
                    return result
        except TimeoutError as e:
            raise RemoteUnavailable(
                "The binder service took too long to respond.",
                detail=f"{operation} exceeded {self._timeout}s",
            ) from e
        except SQLAlchemyError as e:
            logger.error("registry_remote_error", extra={"operation": operation, "error": str(e)})
            raise RemoteUnavailable(
                "The binder service is unavailable.",
                detail=f"{operation}: {type(e).__name__}",
            ) from e

    async def list_binders(self) -> list[Binder]:
        async def work(session: AsyncSession, owner_id: str) -> list[Binder]:
            return [ops.binder_to_model(b) for b in await ops.list_binders(session, owner_id)]

        return await self._run("list_binders", work)

    async def get_binder(self, binder_id: str) -> Binder:
        """
        Get one of the owner's binders.

        Raises:
            NotFound: If the owner has no such binder
        """

        async def work(session: AsyncSession, owner_id: str) -> Binder | None:
            binder = await ops.get_binder(session, owner_id, binder_id)
            return ops.binder_to_model(binder) if binder else None

        binder = await self._run("get_binder", work)
        if binder is None:
            raise NotFound("Binder not found.", detail=f"binder={binder_id}")
        return binder

    async def create_binder(
        self, name: str, game: Game | None = None, color: str | None = None
    ) -> Binder:
        """Create a binder; a blank name becomes "My Binder"."""

        async def work(session: AsyncSession, owner_id: str) -> Binder:
            binder = await ops.create_binder(
                session,
                owner_id,
                name=name.strip() or "My Binder",
                game=game.value if game else None,
                color=normalize_color(color),
            )
            return ops.binder_to_model(binder)

        binder = await self._run("create_binder", work)
        logger.info("binder_created", extra={"binder_id": binder.id, "owner_id": binder.owner_id})
        return binder

    async def rename_binder(self, binder_id: str, name: str) -> Binder:
        return await self._update(binder_id, "rename_binder", name=name.strip() or "My Binder")

    async def recolor_binder(self, binder_id: str, color: str) -> Binder:
        return await self._update(binder_id, "recolor_binder", binder_color=normalize_color(color))

    async def set_binder_game(self, binder_id: str, game: Game) -> Binder:
        return await self._update(binder_id, "set_binder_game", game=game.value)

    async def _update(self, binder_id: str, operation: str, **fields: str) -> Binder:
        async def work(session: AsyncSession, owner_id: str) -> Binder | None:
            binder = await ops.get_binder(session, owner_id, binder_id)
            if binder is None:
                return None
            for name, value in fields.items():
                setattr(binder, name, value)
            await session.flush()
            return ops.binder_to_model(binder)

        binder = await self._run(operation, work)
        if binder is None:
            raise NotFound("Binder not found.", detail=f"binder={binder_id}")
        return binder

    async def delete_binder(self, binder_id: str) -> bool:
        """Delete a binder and its ledger rows. Returns False if not found."""

        async def work(session: AsyncSession, owner_id: str) -> bool:
            return await ops.delete_binder(session, owner_id, binder_id)

        deleted = await self._run("delete_binder", work)
        if deleted:
            logger.info("binder_deleted", extra={"binder_id": binder_id})
        return deleted

    async def clear_all_binders(self) -> list[str]:
        """Delete every binder of the owner. Returns the deleted ids."""

        async def work(session: AsyncSession, owner_id: str) -> list[str]:
            return await ops.delete_binders_for_owner(session, owner_id)

        binder_ids = await self._run("clear_all_binders", work)
        logger.info("binders_cleared", extra={"count": len(binder_ids)})
        return binder_ids
