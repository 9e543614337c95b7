"""
Per-owner service wiring.

Every signed-in owner gets one registry and one reconciler for the life
of the process, so the session load guard and the per-binder locks are
shared by all of that owner's requests.
"""

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgbinder.config import settings
from tcgbinder.services.auth import AuthContext
from tcgbinder.services.binder_registry import BinderRegistry
from tcgbinder.services.kv_store import FileKeyValueStore, KeyValueStore
from tcgbinder.services.ledger import QuantityLedgerClient
from tcgbinder.services.partition_store import BinderPartitionStore
from tcgbinder.services.reconciliation import BinderReconciler

KeyValueStoreFactory = Callable[[str], KeyValueStore]


RESERVED_OWNER_IDS = frozenset({".", ".."})


def owner_directory(base: Path, owner_id: str) -> Path:
    """
    The owner's store directory, always a direct child of base.

    Raises ValueError for owner ids that would name base itself or
    anything outside it.
    """
    if owner_id in RESERVED_OWNER_IDS:
        raise ValueError(f"Invalid owner id: {owner_id!r}")
    path = base / quote(owner_id, safe="")
    if path.resolve().parent != base.resolve():
        raise ValueError(f"Invalid owner id: {owner_id!r}")
    return path


def file_store_factory(root: Path | None = None) -> KeyValueStoreFactory:
    """One FileKeyValueStore directory per owner under root."""
    base = root or settings.local_store_dir
    return lambda owner_id: FileKeyValueStore(owner_directory(base, owner_id))


@dataclass
class OwnerWorkspace:
    """The services one owner's requests go through."""

    auth: AuthContext
    registry: BinderRegistry
    reconciler: BinderReconciler


def build_workspace(
    owner_id: str,
    session_factory: async_sessionmaker[AsyncSession],
    kv: KeyValueStore,
    page_size: int | None = None,
    timeout: float | None = None,
) -> OwnerWorkspace:
    auth = AuthContext(owner_id=owner_id)
    ledger = QuantityLedgerClient(session_factory, auth, timeout=timeout)
    store = BinderPartitionStore(kv, page_size=page_size)
    return OwnerWorkspace(
        auth=auth,
        registry=BinderRegistry(session_factory, auth, timeout=timeout),
        reconciler=BinderReconciler(ledger, store),
    )


class WorkspaceProvider:
    """
    Lazily builds and caches an OwnerWorkspace per owner id.

    At most max_workspaces owners are kept; the least recently used one is
    dropped first. Its binder blobs stay in the local store and its load
    flags start over on the next request.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        kv_factory: KeyValueStoreFactory | None = None,
        page_size: int | None = None,
        timeout: float | None = None,
        max_workspaces: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._kv_factory = kv_factory or file_store_factory()
        self._page_size = page_size
        self._timeout = timeout
        self._max_workspaces = max_workspaces or settings.max_cached_workspaces
        self._workspaces: OrderedDict[str, OwnerWorkspace] = OrderedDict()

    def __len__(self) -> int:
        return len(self._workspaces)

    def for_owner(self, owner_id: str) -> OwnerWorkspace:
        workspace = self._workspaces.get(owner_id)
        if workspace is not None:
            self._workspaces.move_to_end(owner_id)
        else:
            workspace = build_workspace(
                owner_id,
                self._session_factory,
                self._kv_factory(owner_id),
                page_size=self._page_size,
                timeout=self._timeout,
            )
            self._workspaces[owner_id] = workspace
            while len(self._workspaces) > self._max_workspaces:
                self._workspaces.popitem(last=False)
        return workspace
