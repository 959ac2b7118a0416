"""
Abstract Storage Interface

DESIGN DECISION: The ingestion pipeline only sees these interfaces.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep parsing/validation decoupled from persistence

The interface is intentionally small: the catalog is read-only from the
pipeline's point of view, and the store exposes create, list and delete only.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from finwise.models.audit import AuditEvent
from finwise.models.transaction import (
    BulkDeleteResult,
    CatalogSnapshot,
    Category,
    PaymentMethod,
    StoredTransaction,
    TransactionDraft,
)


class ReferenceCatalogInterface(ABC):
    """
    Read access to the known categories and payment methods.

    Editing the catalog belongs to a separate settings workflow.
    """

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """Return every category, income and expense."""
        pass

    @abstractmethod
    async def list_payment_methods(self) -> list[PaymentMethod]:
        """Return every payment method."""
        pass

    async def snapshot(self) -> CatalogSnapshot:
        """
        Load a fresh, immutable snapshot for one parse attempt.

        Raises:
            StorageError: If either list cannot be read
        """
        categories = await self.list_categories()
        payment_methods = await self.list_payment_methods()
        return CatalogSnapshot(
            categories=tuple(categories),
            payment_methods=tuple(payment_methods),
        )


class TransactionStoreInterface(ABC):
    """
    Abstract interface for transaction persistence.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(self, draft: TransactionDraft) -> StoredTransaction:
        """
        Persist one validated transaction.

        Args:
            draft: The accepted transaction

        Returns:
            The stored transaction with id and timestamps assigned

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_transactions(self) -> list[StoredTransaction]:
        """
        Return every stored transaction, newest date first.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def delete(self, transaction_id: str) -> bool:
        """
        Delete a transaction by id.

        Returns:
            True if a record was removed, False if none had that id

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def delete_many(self, transaction_ids: list[str]) -> BulkDeleteResult:
        """
        Delete several transactions, tolerating per-item failure.

        A missing id counts as a success; a blank id is a per-item error.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one ingestion cycle, in chronological order.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
