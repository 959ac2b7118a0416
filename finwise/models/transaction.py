"""
Core Data Models for FinWise Ingestion

These models define the schemas for everything flowing through the
ingestion pipeline:
1. Reference data (categories, payment methods)
2. Candidates (partially filled, possibly wrong, pending human review)
3. Canonical transactions (the only shape ever persisted)
4. Validation and commit reports

DESIGN DECISION: Candidates are lenient and frozen. A candidate may hold
any combination of missing or bad values and carries its own error list;
every edit produces a new candidate. TransactionDraft is strict: it
cannot be constructed in a state that breaks the "required iff expense"
rules, so nothing invalid can reach the store.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class ExpenseType(str, Enum):
    """
    Spending classification, required for every expense.

    Income transactions never carry one.
    """
    NEED = "need"
    WANT = "want"
    INVESTMENT = "investment"


class CandidateOrigin(str, Enum):
    """Where a candidate came from. Informational only after parsing."""
    MANUAL = "manual"
    BULK = "bulk"
    AI_TEXT = "ai_text"
    AI_RECEIPT = "ai_receipt"


class SettledOutcome(str, Enum):
    """Terminal state of one submission attempt."""
    FULL_SUCCESS = "full_success"
    PARTIAL = "partial"
    FULL_FAILURE = "full_failure"
    NOTHING_TO_SUBMIT = "nothing_to_submit"


# =============================================================================
# REFERENCE CATALOG
# =============================================================================

class Category(BaseModel):
    """A known category. Income and expense categories live in one list."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType


class PaymentMethod(BaseModel):
    """A known payment method. `type` is a free-text label like 'UPI'."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(default="Others", max_length=50)


class CatalogSnapshot(BaseModel):
    """
    Read-only view of the Reference Catalog taken for one parse attempt.

    The pipeline never mutates it; a stale snapshot just means some
    names fail to resolve.
    """
    model_config = ConfigDict(frozen=True)

    categories: tuple[Category, ...] = ()
    payment_methods: tuple[PaymentMethod, ...] = ()
    loaded_at: datetime = Field(default_factory=datetime.utcnow)

    def categories_for(self, transaction_type: TransactionType) -> list[Category]:
        """Categories applicable to the given transaction type."""
        return [c for c in self.categories if c.type == transaction_type]

    def category_ids_for(self, transaction_type: TransactionType) -> set[str]:
        return {c.id for c in self.categories_for(transaction_type)}

    def payment_method_ids(self) -> set[str]:
        return {pm.id for pm in self.payment_methods}

    def category_name(self, category_id: Optional[str]) -> Optional[str]:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return None

    def payment_method_name(self, payment_method_id: Optional[str]) -> Optional[str]:
        for method in self.payment_methods:
            if method.id == payment_method_id:
                return method.name
        return None


# =============================================================================
# CANDIDATE - pending human review
# =============================================================================

class CandidateError(BaseModel):
    """
    One human-readable problem on a candidate.

    `field` names the Candidate field the problem belongs to, or is None
    for problems with the row/item as a whole.
    """
    model_config = ConfigDict(frozen=True)

    field: Optional[str] = None
    message: str = Field(..., min_length=1)


class Candidate(BaseModel):
    """
    A transient, possibly incomplete transaction produced by a parser.

    Candidates are never persisted. They are resolved against the
    catalog, corrected by the user, then consumed once by the validator
    and committer.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    # Identity and attribution
    candidate_id: UUID = Field(
        default_factory=uuid4,
        description="Stable identity used to attribute results back to this candidate"
    )
    origin: CandidateOrigin
    position: int = Field(
        default=0,
        ge=0,
        description="0-based row/item index in the original input"
    )
    raw_text: str = Field(
        default="",
        description="Originating row or item text, for error attribution"
    )

    # Transaction fields (all optional until validation)
    transaction_type: Optional[TransactionType] = None
    transaction_date: Optional[date] = None
    amount: Optional[Decimal] = None
    description: str = ""
    category_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    expense_type: Optional[ExpenseType] = None
    source: Optional[str] = None

    # Pre-resolution guesses (free text)
    category_name_guess: Optional[str] = None
    payment_method_name_guess: Optional[str] = None
    expense_type_guess: Optional[str] = None
    source_guess: Optional[str] = None

    # Informational only: never gates validation or submission
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    errors: tuple[CandidateError, ...] = ()

    @property
    def is_clean(self) -> bool:
        """True when the candidate carries no errors."""
        return not self.errors

    @property
    def error_messages(self) -> list[str]:
        return [error.message for error in self.errors]

    def errors_for(self, field: str) -> list[CandidateError]:
        return [error for error in self.errors if error.field == field]

    def with_changes(self, **changes: Any) -> "Candidate":
        """
        Return a new, re-validated candidate with `changes` applied.

        Errors attributed to an edited field are dropped; row-level
        errors stay until explicitly cleared.
        """
        unknown = set(changes) - set(Candidate.model_fields)
        if unknown:
            raise ValueError(f"Unknown candidate fields: {sorted(unknown)}")
        if "candidate_id" in changes:
            raise ValueError("candidate_id cannot be changed")

        data = self.model_dump()
        if "errors" not in changes:
            data["errors"] = [
                error for error in data["errors"]
                if error["field"] is None or error["field"] not in changes
            ]
        data.update(changes)
        return Candidate.model_validate(data)

    def with_errors(self, *errors: CandidateError) -> "Candidate":
        """Return a copy with `errors` appended."""
        return self.model_copy(update={"errors": self.errors + tuple(errors)})


# =============================================================================
# CANONICAL TRANSACTION - the only persisted shape
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A fully validated transaction, before the store assigns an id.

    Expense: category, payment method and expense type all required,
    no source. Income: category required, no payment method or expense
    type, optional source.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    transaction_type: TransactionType
    transaction_date: date
    amount: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Amount in INR")
    ]
    description: str = Field(..., min_length=1, max_length=500)
    category_id: str = Field(..., min_length=1)
    payment_method_id: Optional[str] = None
    expense_type: Optional[ExpenseType] = None
    source: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode='after')
    def validate_type_specific_fields(self) -> 'TransactionDraft':
        """Enforce the fields that are required iff the type is expense."""
        if self.transaction_type == TransactionType.EXPENSE:
            if not self.payment_method_id:
                raise ValueError("Payment method is required for expenses")
            if self.expense_type is None:
                raise ValueError("Expense type is required for expenses")
            if self.source:
                raise ValueError("Source only applies to income")
        else:
            if self.payment_method_id or self.expense_type is not None:
                raise ValueError(
                    "Payment method and expense type only apply to expenses"
                )
        return self


class StoredTransaction(TransactionDraft):
    """A transaction as returned by the store."""

    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_draft(
        cls,
        draft: TransactionDraft,
        transaction_id: Optional[str] = None,
    ) -> "StoredTransaction":
        now = datetime.utcnow()
        return cls(
            **draft.model_dump(),
            id=transaction_id or str(uuid4()),
            created_at=now,
            updated_at=now,
        )


# =============================================================================
# PARSING
# =============================================================================

class ParseResult(BaseModel):
    """
    Output of one parser run.

    `nothing_recognized` distinguishes "the model found nothing" from a
    successful parse; it is never set when candidates are returned.
    """

    origin: CandidateOrigin
    candidates: list[Candidate] = Field(default_factory=list)
    summary_message: Optional[str] = None
    nothing_recognized: bool = False

    @property
    def clean_count(self) -> int:
        return sum(1 for c in self.candidates if c.is_clean)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Verdict on a single reviewed candidate.

    Accepted results carry the draft to commit; rejected ones carry
    field-level issues. Warnings never block.
    """

    candidate_id: UUID
    position: int = 0
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    draft: Optional[TransactionDraft] = Field(
        default=None,
        description="Accepted transaction, present iff is_valid"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]


# =============================================================================
# COMMIT / DELETE REPORTS
# =============================================================================

class CommitItemResult(BaseModel):
    """Outcome of one store create-call, attributed to its candidate."""

    candidate_id: UUID
    position: int
    description: str = ""
    success: bool
    transaction: Optional[StoredTransaction] = None
    error: Optional[str] = None


class CommitResult(BaseModel):
    """Aggregate of one bulk commit. Partial success is expected."""

    items: list[CommitItemResult] = Field(default_factory=list)
    committed_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.items if not item.success)

    @property
    def item_errors(self) -> list[CommitItemResult]:
        return [item for item in self.items if not item.success]

    @property
    def stored(self) -> list[StoredTransaction]:
        return [item.transaction for item in self.items if item.transaction is not None]

    @property
    def outcome(self) -> SettledOutcome:
        if not self.items:
            return SettledOutcome.NOTHING_TO_SUBMIT
        if self.error_count == 0:
            return SettledOutcome.FULL_SUCCESS
        if self.success_count == 0:
            return SettledOutcome.FULL_FAILURE
        return SettledOutcome.PARTIAL

    @property
    def summary(self) -> str:
        """The "X added, Y failed" line shown after every submit."""
        return f"{self.success_count} added, {self.error_count} failed"


class DeleteError(BaseModel):
    id: str
    error: str


class BulkDeleteResult(BaseModel):
    """Result of deleting several stored transactions at once."""

    success_count: int = 0
    error_count: int = 0
    errors: list[DeleteError] = Field(default_factory=list)
