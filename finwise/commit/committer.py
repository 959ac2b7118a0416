"""
Bulk Committer

Writes accepted transactions to the store. All creates are issued at
once and awaited together; one failure never cancels or retries the
others. Results are matched back to their candidates by position in
the submitted list, not by completion order.

This is the only place the ingestion pipeline writes. There is no
multi-row transaction: partial commits are expected and reported.
"""

import asyncio
from typing import Optional, Sequence
from uuid import UUID

import structlog

from finwise.audit.logger import AuditLogger
from finwise.models.transaction import (
    Candidate,
    CommitItemResult,
    CommitResult,
    TransactionDraft,
)
from finwise.services.storage.interface import StorageError, TransactionStoreInterface


logger = structlog.get_logger(__name__)


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, StorageError):
        return str(exc) or "Could not save transaction"
    return f"Unexpected error: {exc}"


class BulkCommitter:
    """Settle-all bulk writer over a TransactionStoreInterface."""

    def __init__(
        self,
        store: TransactionStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def commit(
        self,
        accepted: Sequence[tuple[Candidate, TransactionDraft]],
        correlation_id: Optional[UUID] = None,
    ) -> CommitResult:
        """
        Create every accepted draft concurrently and aggregate the outcome.

        Args:
            accepted: (candidate, draft) pairs that passed validation
            correlation_id: Ingestion cycle these writes belong to

        Returns:
            CommitResult with one item per input, in input order
        """
        if not accepted:
            return CommitResult()

        outcomes = await asyncio.gather(
            *(self._store.create(draft) for _, draft in accepted),
            return_exceptions=True,
        )

        items = []
        unexpected: list[tuple[Candidate, Exception]] = []
        for (candidate, draft), outcome in zip(accepted, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome  # cancellation and interpreter exits propagate
                if not isinstance(outcome, StorageError):
                    logger.error(
                        "commit_unexpected_error",
                        candidate_id=str(candidate.candidate_id),
                        error=repr(outcome),
                    )
                    unexpected.append((candidate, outcome))
                items.append(CommitItemResult(
                    candidate_id=candidate.candidate_id,
                    position=candidate.position,
                    description=draft.description,
                    success=False,
                    error=_describe_failure(outcome),
                ))
            else:
                items.append(CommitItemResult(
                    candidate_id=candidate.candidate_id,
                    position=candidate.position,
                    description=draft.description,
                    success=True,
                    transaction=outcome,
                ))

        result = CommitResult(items=items)
        logger.info(
            "commit_settled",
            success_count=result.success_count,
            error_count=result.error_count,
        )

        if self._audit_logger:
            for item in items:
                if item.success:
                    await self._audit_logger.log_transaction_saved(
                        transaction_id=item.transaction.id,
                        description=item.description,
                        amount=str(item.transaction.amount),
                        correlation_id=correlation_id,
                    )
                else:
                    await self._audit_logger.log_save_failed(
                        candidate_id=item.candidate_id,
                        error_message=item.error,
                        correlation_id=correlation_id,
                    )
            for candidate, error in unexpected:
                await self._audit_logger.log_error(
                    error_type=type(error).__name__,
                    error_message=str(error),
                    details={"candidate_id": str(candidate.candidate_id)},
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_commit_settled(
                success_count=result.success_count,
                error_count=result.error_count,
                correlation_id=correlation_id,
            )

        return result


def format_commit_message(result: CommitResult) -> str:
    """
    "X added, Y failed" followed by one line per failed item.

    Row numbers are 1-based, matching what the user pasted or saw.
    """
    lines = [result.summary]
    for item in result.item_errors:
        label = f"Row {item.position + 1}"
        if item.description:
            label += f" ({item.description})"
        lines.append(f"{label}: {item.error}")
    return "\n".join(lines)
