from cardscience.db.database import create_engine, drop_db
from cardscience.db.operations import (
    clear,
    deep_update,
    destroy,
    ensure_database,
    find,
    install_all_design_documents,
    install_design_document,
    save,
    update,
    view,
)
from cardscience.db.store import DocumentStore, SqlDocumentStore

__all__ = [
    "DocumentStore",
    "SqlDocumentStore",
    "clear",
    "create_engine",
    "deep_update",
    "destroy",
    "drop_db",
    "ensure_database",
    "find",
    "install_all_design_documents",
    "install_design_document",
    "save",
    "update",
    "view",
]
