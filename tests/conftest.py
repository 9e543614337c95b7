from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tcgbinder.catalog import get_adapter
from tcgbinder.db.operations import insert_ledger_row, upsert_catalog_rows
from tcgbinder.models.card import Game
from tcgbinder.models.db import Base
from tcgbinder.services.auth import AuthContext
from tcgbinder.services.kv_store import InMemoryKeyValueStore
from tcgbinder.services.ledger import QuantityLedgerClient
from tcgbinder.services.partition_store import BinderPartitionStore
from tcgbinder.services.reconciliation import BinderReconciler

OWNER_ID = "user-123"


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(owner_id=OWNER_ID)


@pytest.fixture
def ledger(session_factory, auth) -> QuantityLedgerClient:
    return QuantityLedgerClient(session_factory, auth, timeout=5.0)


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv) -> BinderPartitionStore:
    return BinderPartitionStore(kv, page_size=9)


@pytest.fixture
def reconciler(ledger, store) -> BinderReconciler:
    return BinderReconciler(ledger, store)


@pytest.fixture
def seed_catalog(session_factory):
    """Write raw records into a game's catalog table."""

    async def seed(game: Game, records: list[dict[str, Any]]) -> None:
        async with session_factory() as session:
            await upsert_catalog_rows(session, get_adapter(game), records)
            await session.commit()

    return seed


@pytest.fixture
def seed_ledger(session_factory):
    """Write ledger rows directly, bypassing the client."""

    async def seed(container_id: str, rows: dict[str, int]) -> None:
        async with session_factory() as session:
            for card_id, qty in rows.items():
                await insert_ledger_row(session, container_id, card_id, qty)
            await session.commit()

    return seed
