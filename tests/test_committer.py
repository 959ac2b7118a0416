"""Tests for the settle-all bulk committer."""

import asyncio
from datetime import date
from decimal import Decimal

from finwise.audit import AuditLogger, create_correlation_id
from finwise.commit import BulkCommitter, format_commit_message
from finwise.models.audit import AuditEventType
from finwise.models.transaction import (
    Candidate,
    CandidateOrigin,
    ExpenseType,
    SettledOutcome,
    TransactionDraft,
    TransactionType,
)
from finwise.services.storage import InMemoryTransactionStore, StorageError


class FlakyStore(InMemoryTransactionStore):
    """Fails every create whose description is in `failing`."""

    def __init__(self, failing=(), exc_type=StorageError):
        super().__init__()
        self.failing = set(failing)
        self.exc_type = exc_type

    async def create(self, draft):
        await asyncio.sleep(0)
        if draft.description in self.failing:
            raise self.exc_type(f"Could not save {draft.description}")
        return await super().create(draft)


class DelayedStore(InMemoryTransactionStore):
    """Each create sleeps for its own delay; records the order they finish in."""

    def __init__(self, delays, failing=()):
        super().__init__()
        self.delays = delays
        self.failing = set(failing)
        self.finished = []

    async def create(self, draft):
        await asyncio.sleep(self.delays[draft.description])
        self.finished.append(draft.description)
        if draft.description in self.failing:
            raise StorageError(f"Could not save {draft.description}")
        return await super().create(draft)


class BarrierStore(InMemoryTransactionStore):
    """No create may finish until `expected` creates have started."""

    def __init__(self, expected):
        super().__init__()
        self.expected = expected
        self.started = 0
        self.all_started = asyncio.Event()

    async def create(self, draft):
        self.started += 1
        if self.started == self.expected:
            self.all_started.set()
        await asyncio.wait_for(self.all_started.wait(), timeout=1)
        return await super().create(draft)


def _accepted(*descriptions):
    pairs = []
    for position, description in enumerate(descriptions):
        candidate = Candidate(origin=CandidateOrigin.BULK, position=position, description=description)
        draft = TransactionDraft(
            transaction_type=TransactionType.EXPENSE,
            transaction_date=date(2025, 1, 1),
            amount=Decimal("100.00"),
            description=description,
            category_id="cat_groceries",
            payment_method_id="pm_cash",
            expense_type=ExpenseType.NEED,
        )
        pairs.append((candidate, draft))
    return pairs


class TestBulkCommitter:

    def test_all_succeed(self):
        store = FlakyStore()
        result = asyncio.run(BulkCommitter(store).commit(_accepted("A", "B", "C")))

        assert result.outcome == SettledOutcome.FULL_SUCCESS
        assert result.summary == "3 added, 0 failed"
        assert len(asyncio.run(store.list_transactions())) == 3

    def test_one_failure_does_not_affect_the_others(self):
        """Three items, the middle one fails: two stored, one attributed error."""
        store = FlakyStore(failing={"B"})
        accepted = _accepted("A", "B", "C")
        result = asyncio.run(BulkCommitter(store).commit(accepted))

        assert result.outcome == SettledOutcome.PARTIAL
        assert result.summary == "2 added, 1 failed"
        assert [item.success for item in result.items] == [True, False, True]

        failed = result.item_errors[0]
        assert failed.candidate_id == accepted[1][0].candidate_id
        assert failed.error == "Could not save B"

        stored = asyncio.run(store.list_transactions())
        assert sorted(t.description for t in stored) == ["A", "C"]

    def test_errors_follow_the_item_not_the_completion_order(self):
        """Later items finish first; the failure still lands on item 2."""
        store = DelayedStore({"A": 0.03, "B": 0.02, "C": 0}, failing={"B"})
        accepted = _accepted("A", "B", "C")
        result = asyncio.run(BulkCommitter(store).commit(accepted))

        assert store.finished == ["C", "B", "A"]
        assert [item.description for item in result.items] == ["A", "B", "C"]
        assert [item.success for item in result.items] == [True, False, True]
        assert result.item_errors[0].candidate_id == accepted[1][0].candidate_id
        assert result.item_errors[0].error == "Could not save B"
        assert format_commit_message(result).splitlines()[1] == "Row 2 (B): Could not save B"

    def test_creates_run_concurrently(self):
        """Every create starts before any of them finishes."""
        store = BarrierStore(expected=3)
        result = asyncio.run(BulkCommitter(store).commit(_accepted("A", "B", "C")))

        assert store.started == 3
        assert result.outcome == SettledOutcome.FULL_SUCCESS

    def test_all_fail(self):
        store = FlakyStore(failing={"A", "B"})
        result = asyncio.run(BulkCommitter(store).commit(_accepted("A", "B")))
        assert result.outcome == SettledOutcome.FULL_FAILURE

    def test_unexpected_errors_are_reported_per_item(self):
        audit_logger = AuditLogger()
        store = FlakyStore(failing={"A"}, exc_type=RuntimeError)
        result = asyncio.run(BulkCommitter(store, audit_logger).commit(_accepted("A", "B")))

        assert result.items[0].error == "Unexpected error: Could not save A"
        assert result.items[1].success

        (system_error,) = [
            e for e in audit_logger.recent_events if e.event_type == AuditEventType.SYSTEM_ERROR
        ]
        assert system_error.description == "System error: RuntimeError"
        assert system_error.details["candidate_id"] == str(result.items[0].candidate_id)

    def test_nothing_to_commit(self):
        result = asyncio.run(BulkCommitter(FlakyStore()).commit([]))
        assert result.outcome == SettledOutcome.NOTHING_TO_SUBMIT

    def test_audit_trail(self):
        audit_logger = AuditLogger()
        correlation_id = create_correlation_id()
        store = FlakyStore(failing={"B"})

        asyncio.run(BulkCommitter(store, audit_logger).commit(_accepted("A", "B"), correlation_id))

        event_types = [e.event_type for e in audit_logger.recent_events]
        assert event_types == [
            AuditEventType.TRANSACTION_SAVED,
            AuditEventType.SAVE_FAILED,
            AuditEventType.COMMIT_SETTLED,
        ]
        assert all(e.correlation_id == correlation_id for e in audit_logger.recent_events)

    def test_format_commit_message(self):
        store = FlakyStore(failing={"Tea"})
        result = asyncio.run(BulkCommitter(store).commit(_accepted("Rent", "Tea")))

        assert format_commit_message(result) == "1 added, 1 failed\nRow 2 (Tea): Could not save Tea"
