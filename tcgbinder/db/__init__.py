from tcgbinder.db.database import get_session, get_session_factory, init_db
from tcgbinder.db.operations import (
    binder_to_model,
    create_binder,
    delete_binder,
    delete_binders_for_owner,
    delete_container_rows,
    delete_invalid_rows,
    delete_ledger_row,
    fetch_catalog_rows,
    get_binder,
    get_ledger_row,
    insert_ledger_row,
    ledger_row_to_model,
    list_binders,
    list_ledger_rows,
    upsert_catalog_rows,
)

__all__ = [
    "binder_to_model",
    "create_binder",
    "delete_binder",
    "delete_binders_for_owner",
    "delete_container_rows",
    "delete_invalid_rows",
    "delete_ledger_row",
    "fetch_catalog_rows",
    "get_binder",
    "get_ledger_row",
    "get_session",
    "get_session_factory",
    "init_db",
    "insert_ledger_row",
    "ledger_row_to_model",
    "list_binders",
    "list_ledger_rows",
    "upsert_catalog_rows",
]
