"""
Persistence Package

Document store adapter interface plus its SQLAlchemy implementation.
"""

from .database import Base, create_store_engine, create_session_factory, init_db
from .document_store import (
    VEHICLES,
    VIOLATIONS,
    SANCTIONS,
    Document,
    DocumentStore,
    Transaction,
    WriteBatch,
    Predicate,
    where,
    StoreError,
    TransientStoreError,
    WriteConflictError,
    DocumentNotFoundError,
)
from .sql_document_store import SqlDocumentStore

__all__ = [
    "Base",
    "create_store_engine",
    "create_session_factory",
    "init_db",
    "VEHICLES",
    "VIOLATIONS",
    "SANCTIONS",
    "Document",
    "DocumentStore",
    "Transaction",
    "WriteBatch",
    "Predicate",
    "where",
    "StoreError",
    "TransientStoreError",
    "WriteConflictError",
    "DocumentNotFoundError",
    "SqlDocumentStore",
]
