"""
Audit Logger

DESIGN DECISION: Every significant step of an ingestion cycle is logged.
This provides:
1. Traceability from a stored transaction back to its raw input
2. Debugging capability when a model or the store misbehaves
3. A record of what the user changed before committing

The audit logger:
- Is async so it sits naturally inside the async flows
- Never crashes the app if persisting an event fails
- Supports correlation IDs to trace one ingestion cycle end to end
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finwise.models.audit import AuditEvent, AuditEventBuilder
from finwise.services.storage.interface import AuditStorageInterface


# Events kept in memory per process for the UI
RECENT_EVENTS_LIMIT = 500


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence)

    Events are also kept in memory for the current process so the UI
    can show what happened in this session.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        recent_limit: int = RECENT_EVENTS_LIMIT,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            recent_limit: How many events to keep in memory; older
                    ones are dropped.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)
        self.recent_events: deque[AuditEvent] = deque(maxlen=recent_limit)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self.recent_events.append(event)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_parse_started(
        self,
        origin: str,
        input_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log the start of a parse attempt."""
        await self.log(AuditEventBuilder.parse_started(
            origin=origin,
            input_size=input_size,
            correlation_id=correlation_id,
        ))

    async def log_parse_completed(
        self,
        origin: str,
        candidate_count: int,
        clean_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_completed(
            origin=origin,
            candidate_count=candidate_count,
            clean_count=clean_count,
            correlation_id=correlation_id,
        ))

    async def log_parse_failed(
        self,
        origin: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_failed(
            origin=origin,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_nothing_recognized(
        self,
        origin: str,
        summary_message: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.nothing_recognized(
            origin=origin,
            summary_message=summary_message,
            correlation_id=correlation_id,
        ))

    async def log_review_edited(
        self,
        candidate_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.review_edited(
            candidate_id=candidate_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        candidate_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a candidate rejected at submit time."""
        await self.log(AuditEventBuilder.validation_failed(
            candidate_id=candidate_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        transaction_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction_id,
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        candidate_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            candidate_id=candidate_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_commit_settled(
        self,
        success_count: int,
        error_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.commit_settled(
            success_count=success_count,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_transactions_deleted(
        self,
        transaction_ids: list[str],
        success_count: int,
        error_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_deleted(
            transaction_ids=transaction_ids,
            success_count=success_count,
            error_count=error_count,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new ingestion cycle (a parse request).
    Pass it through all subsequent operations.
    """
    return uuid4()
