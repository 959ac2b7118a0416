"""
In-Memory Storage

Process-local implementations of the catalog, store and audit log.
Used when Google Sheets is not configured and as the test double for
every flow test.
"""

from typing import Iterable, Optional
from uuid import UUID

from finwise.models.audit import AuditEvent
from finwise.models.transaction import (
    BulkDeleteResult,
    Category,
    DeleteError,
    PaymentMethod,
    StoredTransaction,
    TransactionDraft,
)
from finwise.services.storage.defaults import DEFAULT_CATEGORIES, DEFAULT_PAYMENT_METHODS
from finwise.services.storage.interface import (
    AuditStorageInterface,
    ReferenceCatalogInterface,
    TransactionStoreInterface,
)


class InMemoryReferenceCatalog(ReferenceCatalogInterface):
    """Catalog held in memory, seeded with the default household lists."""

    def __init__(
        self,
        categories: Optional[Iterable[Category]] = None,
        payment_methods: Optional[Iterable[PaymentMethod]] = None,
    ):
        self._categories = list(DEFAULT_CATEGORIES if categories is None else categories)
        self._payment_methods = list(
            DEFAULT_PAYMENT_METHODS if payment_methods is None else payment_methods
        )

    async def list_categories(self) -> list[Category]:
        return list(self._categories)

    async def list_payment_methods(self) -> list[PaymentMethod]:
        return list(self._payment_methods)


class InMemoryTransactionStore(TransactionStoreInterface):
    """Dictionary-backed transaction store."""

    def __init__(self):
        self._records: dict[str, StoredTransaction] = {}

    async def create(self, draft: TransactionDraft) -> StoredTransaction:
        stored = StoredTransaction.from_draft(draft)
        self._records[stored.id] = stored
        return stored

    async def list_transactions(self) -> list[StoredTransaction]:
        return sorted(
            self._records.values(),
            key=lambda t: (t.transaction_date, t.created_at),
            reverse=True,
        )

    async def delete(self, transaction_id: str) -> bool:
        return self._records.pop(transaction_id, None) is not None

    async def delete_many(self, transaction_ids: list[str]) -> BulkDeleteResult:
        result = BulkDeleteResult()
        for transaction_id in transaction_ids:
            if not transaction_id or not transaction_id.strip():
                result.error_count += 1
                result.errors.append(
                    DeleteError(id=transaction_id or "", error="Invalid transaction id")
                )
                continue
            # Already gone counts as deleted
            self._records.pop(transaction_id, None)
            result.success_count += 1
        return result


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
