"""
Main Orchestrator for FinWise Ingestion

Ties the components together into one ingestion cycle:

    raw input → parser → name resolver → review set (human edits)
              → validator (on submit) → bulk committer → store → refresh

State machine, shared by every input source:

    IDLE → PARSING → REVIEWING ⇄ (edits) → VALIDATING → COMMITTING → SETTLED

DESIGN DECISION: The session enforces the boundaries:
- Nothing is written without going through review and validation
- A failed parse (empty input, model failure, catalog unavailable)
  leaves the previous review set untouched
- Rows that fail to save stay in the review set with the reason attached
- Every step is audited under one correlation id per cycle
"""

from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from finwise.agents import ModelError, ReceiptImage, TransactionModelInterface, create_model_agent
from finwise.audit import AuditLogger, create_correlation_id
from finwise.commit import BulkCommitter, format_commit_message
from finwise.config import AppSettings, get_settings
from finwise.models.transaction import (
    BulkDeleteResult,
    CandidateError,
    CandidateOrigin,
    CatalogSnapshot,
    CommitResult,
    ParseResult,
    SettledOutcome,
    StoredTransaction,
    TransactionType,
    ValidationResult,
)
from finwise.parsing import (
    AIReceiptParser,
    AITextParser,
    BulkRowParser,
    CandidateParser,
    ManualEntry,
    ManualFormParser,
    ParseError,
)
from finwise.resolution import NameResolver
from finwise.review import ReviewSet
from finwise.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReferenceCatalog,
    GoogleSheetsTransactionStore,
    InMemoryReferenceCatalog,
    InMemoryTransactionStore,
    ReferenceCatalogInterface,
    StorageError,
    TransactionStoreInterface,
)
from finwise.validation import TransactionValidator


logger = structlog.get_logger(__name__)

AI_NOT_CONFIGURED_MESSAGE = "AI parsing is not configured. Set GEMINI_API_KEY to enable it."


class IngestionState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    REVIEWING = "reviewing"
    VALIDATING = "validating"
    COMMITTING = "committing"
    SETTLED = "settled"


class SubmissionReport(BaseModel):
    """
    What one submit attempt did.

    `rejected` holds candidates the validator refused; they were never
    sent to the store. `commit` covers everything that was sent.
    """

    outcome: SettledOutcome
    commit: CommitResult = Field(default_factory=CommitResult)
    rejected: list[ValidationResult] = Field(default_factory=list)
    refresh_error: Optional[str] = None

    @property
    def added_count(self) -> int:
        return self.commit.success_count

    @property
    def failed_count(self) -> int:
        return self.commit.error_count + len(self.rejected)

    @property
    def message(self) -> str:
        """Exact counts first, then one reason per failed row."""
        if self.outcome == SettledOutcome.NOTHING_TO_SUBMIT:
            return "Nothing to submit. Fix the highlighted rows or select them explicitly."

        lines = [f"{self.added_count} added, {self.failed_count} failed"]
        lines.extend(format_commit_message(self.commit).splitlines()[1:])
        for result in self.rejected:
            reasons = "; ".join(issue.message for issue in result.errors)
            lines.append(f"Row {result.position + 1}: {reasons}")
        if self.refresh_error:
            lines.append(f"Saved, but the transaction list could not be refreshed: {self.refresh_error}")
        return "\n".join(lines)


def _settle_outcome(added: int, failed: int) -> SettledOutcome:
    if added == 0 and failed == 0:
        return SettledOutcome.NOTHING_TO_SUBMIT
    if failed == 0:
        return SettledOutcome.FULL_SUCCESS
    if added == 0:
        return SettledOutcome.FULL_FAILURE
    return SettledOutcome.PARTIAL


class IngestionSession:
    """
    One user's ingestion cycle, from raw input to stored transactions.

    At most one cycle is active: a successful parse replaces whatever
    was still under review.
    """

    def __init__(
        self,
        catalog: ReferenceCatalogInterface,
        store: TransactionStoreInterface,
        model: Optional[TransactionModelInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._catalog = catalog
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        self._committer = BulkCommitter(store, audit_logger)

        self._parsers: dict[CandidateOrigin, CandidateParser] = {
            CandidateOrigin.BULK: BulkRowParser(),
            CandidateOrigin.MANUAL: ManualFormParser(),
        }
        if model is not None:
            self._parsers[CandidateOrigin.AI_TEXT] = AITextParser(model)
            self._parsers[CandidateOrigin.AI_RECEIPT] = AIReceiptParser(model, self._settings)

        self.state = IngestionState.IDLE
        self.review_set = ReviewSet()
        self.catalog_snapshot = CatalogSnapshot()
        self.correlation_id: Optional[UUID] = None
        self.last_message: Optional[str] = None
        self.transactions: list[StoredTransaction] = []

    @property
    def ai_enabled(self) -> bool:
        return CandidateOrigin.AI_TEXT in self._parsers

    @property
    def resolver(self) -> NameResolver:
        return NameResolver(self.catalog_snapshot)

    async def load_catalog(self) -> CatalogSnapshot:
        """Fetch a fresh catalog snapshot (used to populate the UI selectors)."""
        self.catalog_snapshot = await self._catalog.snapshot()
        return self.catalog_snapshot

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    async def _parse(self, origin: CandidateOrigin, raw: Any, input_size: int) -> ParseResult:
        parser = self._parsers.get(origin)
        if parser is None:
            raise ModelError(AI_NOT_CONFIGURED_MESSAGE)

        previous_state = self.state
        correlation_id = create_correlation_id()
        self.state = IngestionState.PARSING

        if self._audit_logger:
            await self._audit_logger.log_parse_started(
                origin=origin.value,
                input_size=input_size,
                correlation_id=correlation_id,
            )

        try:
            snapshot = await self._catalog.snapshot()
            result = await parser.parse(raw, snapshot)
        except (ParseError, ModelError, StorageError) as e:
            self.state = previous_state
            self.last_message = str(e)
            if self._audit_logger:
                if isinstance(e, ParseError):
                    await self._audit_logger.log_parse_failed(
                        origin=origin.value,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                else:
                    service = "model" if isinstance(e, ModelError) else "catalog"
                    await self._audit_logger.log_external_service_error(
                        service=service,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
            raise

        if result.nothing_recognized:
            self.state = previous_state
            self.last_message = result.summary_message
            if self._audit_logger:
                await self._audit_logger.log_nothing_recognized(
                    origin=origin.value,
                    summary_message=result.summary_message,
                    correlation_id=correlation_id,
                )
            return result

        resolved = NameResolver(snapshot).resolve_all(result.candidates)
        result = result.model_copy(update={"candidates": resolved})

        self.catalog_snapshot = snapshot
        self.review_set = ReviewSet(resolved)
        self.correlation_id = correlation_id
        self.last_message = result.summary_message
        self.state = IngestionState.REVIEWING

        logger.info(
            "parse_completed",
            origin=origin.value,
            candidates=len(resolved),
            clean=result.clean_count,
        )
        if self._audit_logger:
            await self._audit_logger.log_parse_completed(
                origin=origin.value,
                candidate_count=len(resolved),
                clean_count=result.clean_count,
                correlation_id=correlation_id,
            )
        return result

    async def parse_bulk(self, text: str) -> ParseResult:
        return await self._parse(CandidateOrigin.BULK, text, len(text or ""))

    async def parse_text(self, text: str) -> ParseResult:
        return await self._parse(CandidateOrigin.AI_TEXT, text, len(text or ""))

    async def parse_receipt(self, image: ReceiptImage) -> ParseResult:
        return await self._parse(CandidateOrigin.AI_RECEIPT, image, image.size_bytes)

    async def parse_manual(self, entry: ManualEntry) -> ParseResult:
        return await self._parse(CandidateOrigin.MANUAL, entry, 1)

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def _record_edit(self, review_set: ReviewSet, index: int, fields: list[str]) -> ReviewSet:
        self.review_set = review_set
        self.state = IngestionState.REVIEWING
        if self._audit_logger and index < len(review_set):
            await self._audit_logger.log_review_edited(
                candidate_id=review_set[index].candidate_id,
                fields=fields,
                correlation_id=self.correlation_id,
            )
        return review_set

    async def edit(self, index: int, **changes: Any) -> ReviewSet:
        """Override fields on one candidate; a type switch re-resolves names first."""
        fields = sorted(changes)
        new_type = changes.pop("transaction_type", None)
        updated = self.review_set
        if new_type is not None:
            updated = updated.change_type(index, TransactionType(new_type), self.resolver)
        if changes:
            updated = updated.edit(index, **changes)
        return await self._record_edit(updated, index, fields)

    async def change_type(self, index: int, new_type: TransactionType) -> ReviewSet:
        updated = self.review_set.change_type(index, new_type, self.resolver)
        return await self._record_edit(updated, index, ["transaction_type"])

    async def clear_errors(self, index: int) -> ReviewSet:
        updated = self.review_set.clear_errors(index)
        return await self._record_edit(updated, index, ["errors"])

    async def remove(self, index: int) -> ReviewSet:
        candidate = self.review_set[index]
        self.review_set = self.review_set.remove(index)
        if self._audit_logger:
            await self._audit_logger.log_review_edited(
                candidate_id=candidate.candidate_id,
                fields=["removed"],
                correlation_id=self.correlation_id,
            )
        return self.review_set

    def reset(self) -> None:
        """Discard the review set and start over."""
        self.review_set = ReviewSet()
        self.correlation_id = None
        self.state = IngestionState.IDLE

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self, indices: Optional[Iterable[int]] = None) -> SubmissionReport:
        """
        Validate and commit the selected candidates.

        Args:
            indices: Review set positions to submit. Defaults to every
                     candidate without errors.

        Committed candidates leave the review set. Rejected and failed
        ones stay, annotated with the reason, for the next attempt.
        """
        if indices is None:
            indices = self.review_set.clean_indices()
        selected = [self.review_set[i] for i in sorted(set(indices))]

        if not selected:
            self.state = IngestionState.SETTLED
            report = SubmissionReport(outcome=SettledOutcome.NOTHING_TO_SUBMIT)
            self.last_message = report.message
            return report

        self.state = IngestionState.VALIDATING
        validator = TransactionValidator(self.catalog_snapshot, self._settings)
        results = validator.validate_many(selected)

        accepted = [
            (candidate, result.draft)
            for candidate, result in zip(selected, results)
            if result.is_valid
        ]
        rejected = [result for result in results if not result.is_valid]

        review_set = self.review_set
        for result in rejected:
            review_set = review_set.annotate(
                result.candidate_id,
                [CandidateError(field=i.field, message=i.message) for i in result.errors],
            )
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    candidate_id=result.candidate_id,
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.errors
                    ],
                    correlation_id=self.correlation_id,
                )

        self.state = IngestionState.COMMITTING
        commit = await self._committer.commit(accepted, self.correlation_id)

        for item in commit.item_errors:
            review_set = review_set.annotate(
                item.candidate_id,
                [CandidateError(message=f"Save failed: {item.error}")],
            )
        committed = [item.candidate_id for item in commit.items if item.success]
        self.review_set = review_set.without(committed)
        self.state = IngestionState.SETTLED

        refresh_error = None
        if committed:
            try:
                await self.refresh()
            except StorageError as e:
                logger.warning("refresh_after_commit_failed", error=str(e))
                refresh_error = str(e)

        report = SubmissionReport(
            outcome=_settle_outcome(commit.success_count, commit.error_count + len(rejected)),
            commit=commit,
            rejected=rejected,
            refresh_error=refresh_error,
        )
        self.last_message = report.message
        return report

    # ------------------------------------------------------------------
    # Stored transactions
    # ------------------------------------------------------------------

    async def refresh(self) -> list[StoredTransaction]:
        """Re-fetch the full stored list (no incremental merge)."""
        try:
            self.transactions = await self._store.list_transactions()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e
        return self.transactions

    async def delete_transaction(self, transaction_id: str) -> bool:
        deleted = await self._store.delete(transaction_id)
        if self._audit_logger:
            await self._audit_logger.log_transactions_deleted(
                transaction_ids=[transaction_id],
                success_count=1 if deleted else 0,
                error_count=0,
            )
        await self.refresh()
        return deleted

    async def delete_transactions(self, transaction_ids: list[str]) -> BulkDeleteResult:
        result = await self._store.delete_many(transaction_ids)
        if self._audit_logger:
            await self._audit_logger.log_transactions_deleted(
                transaction_ids=list(transaction_ids),
                success_count=result.success_count,
                error_count=result.error_count,
            )
        await self.refresh()
        return result


class AppComponents:
    """
    The collaborators shared by every user of one app process.

    They hold no per-user state. Each browser session gets its own
    IngestionSession from `new_session()`.
    """

    def __init__(
        self,
        catalog: ReferenceCatalogInterface,
        store: TransactionStoreInterface,
        model: Optional[TransactionModelInterface],
        audit_logger: AuditLogger,
        sheets_client: Optional[GoogleSheetsClient] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.model = model
        self.audit_logger = audit_logger
        self.sheets_client = sheets_client

    def new_session(self, settings: Optional[AppSettings] = None) -> IngestionSession:
        return IngestionSession(
            catalog=self.catalog,
            store=self.store,
            model=self.model,
            audit_logger=self.audit_logger,
            settings=settings,
        )


def create_app_components(
    use_storage: bool = True,
    use_model: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets is not configured.
        use_model: Whether to enable the Gemini parsers.
    """
    sheets_client = None
    catalog: ReferenceCatalogInterface = InMemoryReferenceCatalog()
    store: TransactionStoreInterface = InMemoryTransactionStore()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            catalog = GoogleSheetsReferenceCatalog(sheets_client)
            store = GoogleSheetsTransactionStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    model = create_model_agent() if use_model else None

    return AppComponents(
        catalog=catalog,
        store=store,
        model=model,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
