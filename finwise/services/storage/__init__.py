"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
reference catalog, the transaction store and the audit log.
Google Sheets is the production backend; the in-memory versions back
tests and unconfigured runs.
"""

from finwise.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ReferenceCatalogInterface,
    StorageError,
    TransactionStoreInterface,
)
from finwise.services.storage.defaults import (
    DEFAULT_CATEGORIES,
    DEFAULT_PAYMENT_METHODS,
)
from finwise.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReferenceCatalog,
    GoogleSheetsTransactionStore,
)
from finwise.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryReferenceCatalog,
    InMemoryTransactionStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ReferenceCatalogInterface",
    "TransactionStoreInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Seed data
    "DEFAULT_CATEGORIES",
    "DEFAULT_PAYMENT_METHODS",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsReferenceCatalog",
    "GoogleSheetsTransactionStore",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryReferenceCatalog",
    "InMemoryTransactionStore",
]
