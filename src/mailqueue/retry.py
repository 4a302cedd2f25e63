"""Retry/backoff policy and the queue entry state machine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .exceptions import InvalidTransitionError
from .models import QueueEntry, QueueStatus

DEFAULT_BACKOFF_BASE = timedelta(minutes=5)


@dataclass(frozen=True)
class RetryDecision:
    retry_count: int
    status: QueueStatus
    next_retry_at: datetime | None

    @property
    def exhausted(self) -> bool:
        return self.status == QueueStatus.FAILED


class RetryPolicy:
    """Exponential backoff keyed on the post-increment retry count.

    ``backoff_delay(n) = base * 2**n``; with the default five minute base a
    first failure waits 10 minutes, a second 20, a third 40. Every failure
    consumes retry budget regardless of its cause.
    """

    def __init__(self, backoff_base: timedelta = DEFAULT_BACKOFF_BASE) -> None:
        if backoff_base <= timedelta(0):
            raise ValueError("backoff_base must be positive")
        self.backoff_base = backoff_base

    def backoff_delay(self, retry_count: int) -> timedelta:
        return self.backoff_base * (2 ** retry_count)

    def decide(self, retry_count: int, max_retries: int, now: datetime) -> RetryDecision:
        """Next state after a failed attempt, given the count before the failure."""
        new_count = retry_count + 1
        if new_count >= max_retries:
            return RetryDecision(retry_count=new_count, status=QueueStatus.FAILED, next_retry_at=None)
        return RetryDecision(
            retry_count=new_count,
            status=QueueStatus.RETRY,
            next_retry_at=now + self.backoff_delay(new_count),
        )

    def record_failure(
        self,
        entry: QueueEntry,
        error_message: str | None,
        error_details: str | None,
        now: datetime,
    ) -> RetryDecision:
        _ensure_not_terminal(entry)
        decision = self.decide(entry.retry_count, entry.max_retries, now)
        entry.retry_count = decision.retry_count
        entry.status = decision.status
        entry.next_retry_at = decision.next_retry_at
        entry.error_message = error_message
        entry.last_error_details = error_details
        return decision

    def record_success(self, entry: QueueEntry, now: datetime) -> None:
        _ensure_not_terminal(entry)
        entry.status = QueueStatus.SENT
        entry.sent_at = now
        entry.next_retry_at = None
        entry.error_message = None
        entry.last_error_details = None


def _ensure_not_terminal(entry: QueueEntry) -> None:
    if entry.status is not None and QueueStatus(entry.status).is_terminal:
        raise InvalidTransitionError(
            f"Queue entry {entry.id} is already {QueueStatus(entry.status).value}",
            context={"queue_entry_id": entry.id, "status": QueueStatus(entry.status).value},
        )


__all__ = ["RetryDecision", "RetryPolicy", "DEFAULT_BACKOFF_BASE"]
