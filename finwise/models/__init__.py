"""
Data Models Package

All Pydantic models used by the FinWise ingestion pipeline.
"""

from finwise.models.transaction import (
    BulkDeleteResult,
    Candidate,
    CandidateError,
    CandidateOrigin,
    CatalogSnapshot,
    Category,
    CommitItemResult,
    CommitResult,
    DeleteError,
    ExpenseType,
    ParseResult,
    PaymentMethod,
    SettledOutcome,
    StoredTransaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from finwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "BulkDeleteResult",
    "Candidate",
    "CandidateError",
    "CandidateOrigin",
    "CatalogSnapshot",
    "Category",
    "CommitItemResult",
    "CommitResult",
    "DeleteError",
    "ExpenseType",
    "ParseResult",
    "PaymentMethod",
    "SettledOutcome",
    "StoredTransaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
