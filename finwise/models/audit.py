"""
Audit Models for FinWise

Every significant step of an ingestion cycle is logged for audit purposes:
what was parsed, what the user changed, what was saved and what failed.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each stage of the ingestion pipeline has its own event type.
    """
    # Parsing
    PARSE_STARTED = "parse_started"
    PARSE_COMPLETED = "parse_completed"
    PARSE_FAILED = "parse_failed"
    NOTHING_RECOGNIZED = "nothing_recognized"

    # Review
    REVIEW_EDITED = "review_edited"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    SAVE_FAILED = "save_failed"
    COMMIT_SETTLED = "commit_settled"
    TRANSACTIONS_DELETED = "transactions_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'candidate', 'transaction', 'ingestion')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one ingestion cycle share this
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.parse_started("bulk", 1200, correlation_id)
        event = AuditEventBuilder.commit_settled(3, 1, correlation_id)
    """

    @staticmethod
    def parse_started(
        origin: str,
        input_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_STARTED,
            entity_type="ingestion",
            correlation_id=correlation_id,
            description=f"Parsing {origin} input",
            details={
                "origin": origin,
                "input_size": input_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def parse_completed(
        origin: str,
        candidate_count: int,
        clean_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_COMPLETED,
            entity_type="ingestion",
            correlation_id=correlation_id,
            description=(
                f"Parsed {candidate_count} {origin} candidates "
                f"({clean_count} without errors)"
            ),
            details={
                "origin": origin,
                "candidate_count": candidate_count,
                "clean_count": clean_count,
            },
        )

    @staticmethod
    def parse_failed(
        origin: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ingestion",
            correlation_id=correlation_id,
            description=f"Could not parse {origin} input",
            error_message=error_message,
            details={
                "origin": origin,
            },
        )

    @staticmethod
    def nothing_recognized(
        origin: str,
        summary_message: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTHING_RECOGNIZED,
            severity=AuditSeverity.WARNING,
            entity_type="ingestion",
            correlation_id=correlation_id,
            description=f"No transactions recognized in {origin} input",
            details={
                "origin": origin,
                "summary_message": summary_message,
            },
        )

    @staticmethod
    def review_edited(
        candidate_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REVIEW_EDITED,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description=f"User edited {', '.join(fields) or 'candidate'}",
            details={
                "fields": fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        candidate_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {description[:200]} - ₹{amount}",
            details={
                "amount": amount,
            },
        )

    @staticmethod
    def save_failed(
        candidate_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description="Transaction could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def commit_settled(
        success_count: int,
        error_count: int,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if error_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.COMMIT_SETTLED,
            severity=severity,
            entity_type="ingestion",
            correlation_id=correlation_id,
            description=f"{success_count} added, {error_count} failed",
            details={
                "success_count": success_count,
                "error_count": error_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def transactions_deleted(
        transaction_ids: list[str],
        success_count: int,
        error_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_DELETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="transaction",
            description=f"Deleted {success_count} transactions ({error_count} failed)",
            details={
                "transaction_ids": transaction_ids,
                "success_count": success_count,
                "error_count": error_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
