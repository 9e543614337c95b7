from tcgbinder.services.auth import AuthContext
from tcgbinder.services.binder_registry import BinderRegistry
from tcgbinder.services.kv_store import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore
from tcgbinder.services.ledger import QuantityLedgerClient
from tcgbinder.services.load_guard import LoadKey, LoadTicket, SessionLoadGuard
from tcgbinder.services.partition_store import BinderPartitionStore
from tcgbinder.services.reconciliation import BinderReconciler, ReconcileResult
from tcgbinder.services.workspace import OwnerWorkspace, WorkspaceProvider, build_workspace

__all__ = [
    "AuthContext",
    "BinderPartitionStore",
    "BinderReconciler",
    "BinderRegistry",
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LoadKey",
    "LoadTicket",
    "OwnerWorkspace",
    "QuantityLedgerClient",
    "ReconcileResult",
    "SessionLoadGuard",
    "WorkspaceProvider",
    "build_workspace",
]
