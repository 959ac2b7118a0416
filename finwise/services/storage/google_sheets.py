"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The user can view and fix their ledger directly in Sheets
2. No database setup required
3. The catalog can be edited by hand in its own worksheet

TRADEOFFS:
- No multi-row transactions (bulk commits are per-row anyway)
- Limited query capabilities (we sort and filter in Python)

gspread is synchronous, so every call runs in a worker thread. That keeps
the event loop free and lets a bulk commit issue its appends concurrently.
"""

import asyncio
import json
import threading
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finwise.config import get_settings
from finwise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finwise.models.transaction import (
    BulkDeleteResult,
    Category,
    DeleteError,
    ExpenseType,
    PaymentMethod,
    StoredTransaction,
    TransactionDraft,
    TransactionType,
)
from finwise.services.storage.defaults import DEFAULT_CATEGORIES, DEFAULT_PAYMENT_METHODS
from finwise.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ReferenceCatalogInterface,
    StorageError,
    TransactionStoreInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "type",
    "date",
    "amount",
    "description",
    "category_id",
    "payment_method_id",
    "expense_type",
    "source",
]

CATEGORY_COLUMNS = ["id", "name", "type"]

PAYMENT_METHOD_COLUMNS = ["id", "name", "type"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and empty cells."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and retry on connect.
    Worksheet handles are cached once resolved; the lock keeps concurrent
    appends from each creating the same missing worksheet.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._worksheet_lock = threading.Lock()
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
        seed_rows: Optional[list[list]] = None,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header (and seed rows) if missing."""
        with self._worksheet_lock:
            sheet = self._worksheets.get(title)
            if sheet is not None:
                return sheet

            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=rows,
                    cols=len(columns),
                )
                sheet.append_row(columns)
                if seed_rows:
                    sheet.append_rows(seed_rows, value_input_option="RAW")
                    logger.info("worksheet_seeded", title=title, rows=len(seed_rows))
            self._worksheets[title] = sheet
            return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
        )

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.categories_sheet_name,
            CATEGORY_COLUMNS,
            rows=200,
            seed_rows=[[c.id, c.name, c.type.value] for c in DEFAULT_CATEGORIES],
        )

    def get_payment_methods_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.payment_methods_sheet_name,
            PAYMENT_METHOD_COLUMNS,
            rows=200,
            seed_rows=[[pm.id, pm.name, pm.type] for pm in DEFAULT_PAYMENT_METHODS],
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsReferenceCatalog(ReferenceCatalogInterface):
    """
    Catalog read from two worksheets, one row per entry.

    Rows that don't parse (blank id, unknown category type) are skipped
    and logged rather than failing the whole load.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, which: str) -> list[list]:
        sheet = (
            self._client.get_categories_sheet()
            if which == "categories"
            else self._client.get_payment_methods_sheet()
        )
        return sheet.get_all_values()[1:]  # Skip header

    async def list_categories(self) -> list[Category]:
        try:
            rows = await asyncio.to_thread(self._read_rows, "categories")
        except Exception as e:
            raise StorageError(f"Failed to load categories: {e}") from e

        categories = []
        for row in rows:
            if not _safe_get(row, 0):
                continue
            try:
                categories.append(Category(
                    id=_safe_get(row, 0),
                    name=_safe_get(row, 1),
                    type=TransactionType(_safe_get(row, 2).strip().lower()),
                ))
            except ValueError as e:
                logger.warning("catalog_row_skipped", sheet="categories", row=row, error=str(e))
        return categories

    async def list_payment_methods(self) -> list[PaymentMethod]:
        try:
            rows = await asyncio.to_thread(self._read_rows, "payment_methods")
        except Exception as e:
            raise StorageError(f"Failed to load payment methods: {e}") from e

        methods = []
        for row in rows:
            if not _safe_get(row, 0):
                continue
            try:
                methods.append(PaymentMethod(
                    id=_safe_get(row, 0),
                    name=_safe_get(row, 1),
                    type=_safe_get(row, 2, "Others"),
                ))
            except ValueError as e:
                logger.warning("catalog_row_skipped", sheet="payment_methods", row=row, error=str(e))
        return methods


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Google Sheets implementation of the transaction store.

    One transaction per row. Creates are single attempts: a retried
    append could write the same transaction twice.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: StoredTransaction) -> list:
        """Convert a StoredTransaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.created_at.isoformat(),
            transaction.updated_at.isoformat(),
            transaction.transaction_type.value,
            transaction.transaction_date.isoformat(),
            str(transaction.amount),
            transaction.description,
            transaction.category_id,
            transaction.payment_method_id or "",
            transaction.expense_type.value if transaction.expense_type else "",
            transaction.source or "",
        ]

    def _row_to_transaction(self, row: list) -> StoredTransaction:
        """Convert a spreadsheet row to a StoredTransaction."""
        expense_type = _safe_get(row, 9)
        return StoredTransaction(
            id=_safe_get(row, 0),
            created_at=datetime.fromisoformat(_safe_get(row, 1)),
            updated_at=datetime.fromisoformat(_safe_get(row, 2)),
            transaction_type=TransactionType(_safe_get(row, 3)),
            transaction_date=date.fromisoformat(_safe_get(row, 4)),
            amount=Decimal(_safe_get(row, 5)),
            description=_safe_get(row, 6),
            category_id=_safe_get(row, 7),
            payment_method_id=_safe_get(row, 8) or None,
            expense_type=ExpenseType(expense_type) if expense_type else None,
            source=_safe_get(row, 10) or None,
        )

    def _append(self, row: list) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.append_row(row, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_all(self) -> list[list]:
        return self._client.get_transactions_sheet().get_all_values()

    async def create(self, draft: TransactionDraft) -> StoredTransaction:
        """Append a transaction row."""
        stored = StoredTransaction.from_draft(draft)
        try:
            await asyncio.to_thread(self._append, self._transaction_to_row(stored))
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}") from e
        return stored

    async def list_transactions(self) -> list[StoredTransaction]:
        """List every transaction, newest date first."""
        try:
            all_rows = (await asyncio.to_thread(self._read_all))[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

        transactions = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning("transaction_row_skipped", row_id=row[0], error=str(e))

        transactions.sort(key=lambda t: (t.transaction_date, t.created_at), reverse=True)
        return transactions

    def _delete_ids(self, transaction_ids: list[str]) -> BulkDeleteResult:
        sheet = self._client.get_transactions_sheet()
        all_rows = sheet.get_all_values()
        row_index = {
            row[0]: idx
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is the header
            if row and row[0]
        }

        result = BulkDeleteResult()
        to_delete: list[tuple[int, str]] = []
        for transaction_id in transaction_ids:
            if not transaction_id or not transaction_id.strip():
                result.error_count += 1
                result.errors.append(
                    DeleteError(id=transaction_id or "", error="Invalid transaction id")
                )
            elif transaction_id in row_index:
                to_delete.append((row_index[transaction_id], transaction_id))
            else:
                # Already gone counts as deleted
                result.success_count += 1

        # Bottom-up so earlier deletions don't shift later row numbers
        for idx, transaction_id in sorted(set(to_delete), reverse=True):
            try:
                sheet.delete_rows(idx)
                result.success_count += 1
            except gspread.exceptions.APIError as e:
                result.error_count += 1
                result.errors.append(DeleteError(id=transaction_id, error=str(e)))
        return result

    def _delete_one(self, transaction_id: str) -> bool:
        sheet = self._client.get_transactions_sheet()
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == transaction_id:
                sheet.delete_rows(idx)
                return True
        return False

    async def delete(self, transaction_id: str) -> bool:
        """Delete a transaction by id."""
        try:
            return await asyncio.to_thread(self._delete_one, transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}") from e

    async def delete_many(self, transaction_ids: list[str]) -> BulkDeleteResult:
        """Delete several transactions; a missing id counts as deleted."""
        try:
            return await asyncio.to_thread(self._delete_ids, list(transaction_ids))
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    def _append(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    def _read_all(self) -> list[list]:
        return self._client.get_audit_sheet().get_all_values()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append, event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the ingestion flow
            logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            all_rows = (await asyncio.to_thread(self._read_all))[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except ValueError as e:
                    logger.warning("audit_row_skipped", row_id=row[0], error=str(e))

        events.sort(key=lambda e: e.timestamp)
        return events
