from tcgbinder.models.card import (
    CanonicalCard,
    EntrySource,
    Game,
    SetTemplate,
    WorkingSetEntry,
    make_instance_id,
)
from tcgbinder.models.failure import (
    BinderError,
    FailureDetail,
    FailureKind,
    MalformedRecord,
    NotAuthenticated,
    NotFound,
    RemoteUnavailable,
    StaleOperation,
)
from tcgbinder.models.ledger import Binder, LedgerRow
from tcgbinder.models.partition import ContainerPartition, SubCollection, default_binder_name

__all__ = [
    "Binder",
    "BinderError",
    "CanonicalCard",
    "ContainerPartition",
    "EntrySource",
    "FailureDetail",
    "FailureKind",
    "Game",
    "LedgerRow",
    "MalformedRecord",
    "NotAuthenticated",
    "NotFound",
    "RemoteUnavailable",
    "SetTemplate",
    "StaleOperation",
    "SubCollection",
    "WorkingSetEntry",
    "default_binder_name",
    "make_instance_id",
]
