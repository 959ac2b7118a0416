"""
Two-Stage Validation

STAGE 1 - SCHEMA VALIDATION (blocking):
- Type, date, amount, description present and well formed
- Category required for every transaction
- Payment method and expense type required iff expense
- Ids must exist in the catalog snapshot, when one is given

STAGE 2 - SEMANTIC VALIDATION (warnings only):
- Future dates
- Unusually large amounts
- Low model confidence

IMPORTANT: Validation NEVER silently fixes issues and never touches
storage. It ignores the errors a parser recorded on the candidate: the
user may have fixed the field directly, so only the current values count.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import ValidationError

from finwise.config import AppSettings, get_settings
from finwise.models.transaction import (
    Candidate,
    CatalogSnapshot,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


class TransactionValidator:
    """
    Decides whether a reviewed candidate may be committed.

    Pure: the same candidate and catalog always give the same verdict
    (apart from date-relative warnings).
    """

    def __init__(
        self,
        catalog: Optional[CatalogSnapshot] = None,
        settings: Optional[AppSettings] = None,
    ):
        """
        Args:
            catalog: Snapshot used to reject stale or unknown ids.
                     If None, only presence of ids is checked.
            settings: Warning thresholds; defaults to app settings.
        """
        self._catalog = catalog
        self._settings = settings or get_settings().app

    def _validate_schema(self, candidate: Candidate) -> list[ValidationIssue]:
        """Stage 1: every issue returned here is an error."""
        issues = []
        transaction_type = candidate.transaction_type

        if transaction_type is None:
            issues.append(ValidationIssue(
                field="transaction_type",
                issue_type="missing",
                message="Choose whether this is income or an expense",
                severity="error",
            ))

        if candidate.transaction_date is None:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="missing",
                message="Date is required",
                severity="error",
                suggested_fix="Pick the date the money moved",
            ))

        amount = candidate.amount
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif not amount.is_finite() or amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Check if the amount was read correctly",
            ))
        elif amount != amount.quantize(Decimal("0.01")):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount can have at most two decimal places",
                severity="error",
            ))

        if not candidate.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))

        if not candidate.category_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix="Select a category from the list",
            ))
        elif (
            self._catalog is not None
            and transaction_type is not None
            and candidate.category_id not in self._catalog.category_ids_for(transaction_type)
        ):
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_reference",
                message=f"Selected category is not a known {transaction_type.value} category",
                severity="error",
                suggested_fix="Select a category from the list",
            ))

        if transaction_type == TransactionType.EXPENSE:
            if not candidate.payment_method_id:
                issues.append(ValidationIssue(
                    field="payment_method_id",
                    issue_type="missing",
                    message="Payment method is required for expenses",
                    severity="error",
                    suggested_fix="Select a payment method from the list",
                ))
            elif (
                self._catalog is not None
                and candidate.payment_method_id not in self._catalog.payment_method_ids()
            ):
                issues.append(ValidationIssue(
                    field="payment_method_id",
                    issue_type="unknown_reference",
                    message="Selected payment method no longer exists",
                    severity="error",
                    suggested_fix="Select a payment method from the list",
                ))

            if candidate.expense_type is None:
                issues.append(ValidationIssue(
                    field="expense_type",
                    issue_type="missing",
                    message="Expense type (need, want or investment) is required for expenses",
                    severity="error",
                ))

        return issues

    def _validate_semantic(self, candidate: Candidate) -> list[ValidationIssue]:
        """Stage 2: suspicious but allowed. Every issue here is a warning."""
        issues = []
        today = date.today()

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if candidate.transaction_date and candidate.transaction_date > max_future_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Date ({candidate.transaction_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        max_amount = Decimal(str(self._settings.max_transaction_amount_inr))
        if candidate.amount and candidate.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (₹{candidate.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if (
            candidate.confidence_score is not None
            and candidate.confidence_score < self._settings.low_confidence_threshold
        ):
            issues.append(ValidationIssue(
                field="confidence_score",
                issue_type="low_confidence",
                message=f"AI confidence is low ({candidate.confidence_score:.0%})",
                severity="warning",
                suggested_fix="Please review all fields carefully",
            ))

        return issues

    def _build_draft(self, candidate: Candidate) -> TransactionDraft:
        is_expense = candidate.transaction_type == TransactionType.EXPENSE
        return TransactionDraft(
            transaction_type=candidate.transaction_type,
            transaction_date=candidate.transaction_date,
            amount=candidate.amount,
            description=candidate.description,
            category_id=candidate.category_id,
            payment_method_id=candidate.payment_method_id if is_expense else None,
            expense_type=candidate.expense_type if is_expense else None,
            source=None if is_expense else (candidate.source or None),
        )

    def validate(self, candidate: Candidate) -> ValidationResult:
        """
        Run both stages on one candidate.

        Returns:
            ValidationResult carrying a TransactionDraft iff accepted
        """
        issues = self._validate_schema(candidate)
        draft = None

        if not issues:
            issues.extend(self._validate_semantic(candidate))
            try:
                draft = self._build_draft(candidate)
            except ValidationError as e:
                for error in e.errors():
                    location = ".".join(str(part) for part in error["loc"]) or "transaction"
                    issues.append(ValidationIssue(
                        field=location,
                        issue_type="invalid_value",
                        message=error["msg"],
                        severity="error",
                    ))

        is_valid = draft is not None and not any(i.severity == "error" for i in issues)

        return ValidationResult(
            candidate_id=candidate.candidate_id,
            position=candidate.position,
            is_valid=is_valid,
            draft=draft if is_valid else None,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )

    def validate_many(self, candidates: Iterable[Candidate]) -> list[ValidationResult]:
        return [self.validate(candidate) for candidate in candidates]

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of one validation result.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if not result.is_valid:
            lines.append("❌ This transaction can't be saved yet:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
