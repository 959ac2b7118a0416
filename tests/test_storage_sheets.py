"""
Tests for the Google Sheets storage.

gspread is replaced by an in-memory worksheet; these tests cover row
conversion, ordering and deletion, not the Sheets API itself.
"""

import asyncio
import threading
import time
from datetime import date
from decimal import Decimal

import gspread
import pytest

from finwise.audit import create_correlation_id
from finwise.config import get_settings
from finwise.models.audit import AuditEventBuilder
from finwise.models.transaction import ExpenseType, TransactionDraft, TransactionType
from finwise.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReferenceCatalog,
    GoogleSheetsTransactionStore,
    StorageError,
)
from finwise.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    CATEGORY_COLUMNS,
    PAYMENT_METHOD_COLUMNS,
    TRANSACTION_COLUMNS,
)


class FakeWorksheet:
    def __init__(self, header=(), rows=(), fail_appends=False):
        self.rows = ([list(header)] if header else []) + [list(row) for row in rows]
        self.fail_appends = fail_appends
        self.append_calls = 0
        self.threads = set()

    def get_all_values(self):
        self.threads.add(threading.current_thread())
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.append_calls += 1
        if self.fail_appends:
            raise RuntimeError("quota exceeded")
        self.rows.append([str(cell) for cell in row])

    def delete_rows(self, index):
        self.threads.add(threading.current_thread())
        del self.rows[index - 1]

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.append_row(row)


class FakeSpreadsheet:
    """Stands in for gspread.Spreadsheet; creating an existing title fails like the API does."""

    def __init__(self):
        self.sheets = {}
        self.lookups = 0
        self.created = 0

    def worksheet(self, title):
        self.lookups += 1
        time.sleep(0.01)  # widen the window between lookup and create
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.created += 1
        if title in self.sheets:
            raise RuntimeError(f"A sheet with the name \"{title}\" already exists")
        self.sheets[title] = FakeWorksheet()
        return self.sheets[title]


class FakeSheetsClient:
    def __init__(self, categories=(), payment_methods=(), fail_appends=False):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS, fail_appends=fail_appends)
        self.categories = FakeWorksheet(CATEGORY_COLUMNS, categories)
        self.payment_methods = FakeWorksheet(PAYMENT_METHOD_COLUMNS, payment_methods)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_categories_sheet(self):
        return self.categories

    def get_payment_methods_sheet(self):
        return self.payment_methods

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def spreadsheet_client(monkeypatch, tmp_path):
    """A real GoogleSheetsClient whose spreadsheet is a FakeSpreadsheet."""
    credentials = tmp_path / "service-account.json"
    credentials.write_text("{}")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
    monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")
    get_settings.cache_clear()
    try:
        client = GoogleSheetsClient()
    finally:
        get_settings.cache_clear()
    client._spreadsheet = FakeSpreadsheet()
    return client


def _draft(description, day, **overrides):
    fields = dict(
        transaction_type=TransactionType.EXPENSE,
        transaction_date=date(2025, 1, day),
        amount=Decimal("99.50"),
        description=description,
        category_id="cat_groceries",
        payment_method_id="pm_cash",
        expense_type=ExpenseType.WANT,
    )
    fields.update(overrides)
    return TransactionDraft(**fields)


class TestSheetsReferenceCatalog:

    def test_reads_rows_and_skips_bad_ones(self):
        client = FakeSheetsClient(
            categories=[
                ["cat_rent", "Rent", "expense"],
                ["inc_salary", "Salary", "Income"],
                ["cat_bad", "Mystery", "transfer"],
                ["", "No id", "expense"],
            ],
            payment_methods=[
                ["pm_cash", "Cash", "Cash"],
                ["pm_wallet", "Wallet"],
            ],
        )
        snapshot = asyncio.run(GoogleSheetsReferenceCatalog(client).snapshot())

        assert [c.id for c in snapshot.categories] == ["cat_rent", "inc_salary"]
        assert snapshot.categories[1].type == TransactionType.INCOME
        assert [pm.type for pm in snapshot.payment_methods] == ["Cash", "Others"]


class TestSheetsTransactionStore:

    def test_create_and_list(self):
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)

        asyncio.run(store.create(_draft("older", 1)))
        asyncio.run(store.create(_draft(
            "salary",
            5,
            transaction_type=TransactionType.INCOME,
            category_id="inc_salary",
            payment_method_id=None,
            expense_type=None,
            source="ACME",
        )))

        listed = asyncio.run(store.list_transactions())
        assert [t.description for t in listed] == ["salary", "older"]
        assert listed[0].source == "ACME"
        assert listed[0].payment_method_id is None
        assert listed[1].amount == Decimal("99.50")
        assert listed[1].expense_type == ExpenseType.WANT

    def test_list_skips_unreadable_rows(self):
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)
        asyncio.run(store.create(_draft("good", 1)))
        client.transactions.rows.append(["broken", "not-a-date"])
        client.transactions.rows.append([])

        assert [t.description for t in asyncio.run(store.list_transactions())] == ["good"]

    def test_unreadable_amount_cells_are_skipped(self):
        """Hand-edited amounts like "₹500" must not break listing."""
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)
        good = asyncio.run(store.create(_draft("good", 1)))
        template = client.transactions.rows[-1]
        for row_id, amount in (("edited", "₹500"), ("typo", "abc")):
            row = list(template)
            row[0], row[5] = row_id, amount
            client.transactions.rows.append(row)

        assert [t.id for t in asyncio.run(store.list_transactions())] == [good.id]

    def test_failed_append_is_not_retried(self):
        client = FakeSheetsClient(fail_appends=True)
        store = GoogleSheetsTransactionStore(client)

        with pytest.raises(StorageError):
            asyncio.run(store.create(_draft("tea", 1)))
        assert client.transactions.append_calls == 1

    def test_delete_many_removes_the_right_rows(self):
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)
        first, second, third = (
            asyncio.run(store.create(_draft(name, day)))
            for name, day in (("a", 1), ("b", 2), ("c", 3))
        )

        result = asyncio.run(store.delete_many([first.id, third.id, "gone", ""]))

        assert result.success_count == 3
        assert result.error_count == 1
        assert [t.id for t in asyncio.run(store.list_transactions())] == [second.id]

    def test_delete_single(self):
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)
        stored = asyncio.run(store.create(_draft("tea", 1)))

        assert asyncio.run(store.delete(stored.id)) is True
        assert asyncio.run(store.delete(stored.id)) is False


class TestSheetsAuditStorage:

    def test_append_and_read_back(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = create_correlation_id()

        asyncio.run(storage.append_event(AuditEventBuilder.commit_settled(2, 1, correlation_id)))
        asyncio.run(storage.append_event(AuditEventBuilder.commit_settled(1, 0, create_correlation_id())))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].details == {"success_count": 2, "error_count": 1}
        assert events[0].is_user_action


class TestGoogleSheetsClient:

    def test_concurrent_first_writes_create_the_sheet_once(self, spreadsheet_client):
        """A bulk commit into a fresh spreadsheet adds one worksheet with one header."""
        store = GoogleSheetsTransactionStore(spreadsheet_client)
        spreadsheet = spreadsheet_client._spreadsheet

        async def commit_all():
            return await asyncio.gather(*(store.create(_draft(f"item {day}", day)) for day in range(1, 6)))

        stored = asyncio.run(commit_all())

        assert len(stored) == 5
        assert spreadsheet.created == 1
        assert spreadsheet.lookups == 1
        rows = spreadsheet.sheets["Transactions"].rows
        assert rows[0] == TRANSACTION_COLUMNS
        assert len(rows) == 6

    def test_deletes_and_audit_reads_run_off_the_event_loop(self, spreadsheet_client):
        store = GoogleSheetsTransactionStore(spreadsheet_client)
        audit_storage = GoogleSheetsAuditStorage(spreadsheet_client)
        correlation_id = create_correlation_id()

        stored = asyncio.run(store.create(_draft("tea", 1)))
        assert asyncio.run(store.delete(stored.id)) is True
        asyncio.run(audit_storage.append_event(AuditEventBuilder.commit_settled(1, 0, correlation_id)))
        assert len(asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))) == 1

        sheets = spreadsheet_client._spreadsheet.sheets
        for title in ("Transactions", "AuditLog"):
            assert sheets[title].threads
            assert threading.main_thread() not in sheets[title].threads
