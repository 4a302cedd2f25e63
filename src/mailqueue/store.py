"""Queue entry and audit log persistence operations."""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from .models import AttemptStatus, AuditLogEntry, QueueEntry, QueueStatus


def eligibility_clause(now: datetime):
    """Entries a dispatch cycle may pick up at ``now``.

    Pending entries deferred with ``scheduled_for`` wait until that time;
    retrying entries wait for ``next_retry_at``.
    """
    return or_(
        and_(
            QueueEntry.status == QueueStatus.PENDING,
            or_(QueueEntry.scheduled_for.is_(None), QueueEntry.scheduled_for <= now),
        ),
        and_(
            QueueEntry.status == QueueStatus.RETRY,
            QueueEntry.next_retry_at.is_not(None),
            QueueEntry.next_retry_at <= now,
        ),
    )


class QueueStore:
    """Encapsulates persistence operations for queue entries and their audit rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add_entry(self, entry: QueueEntry) -> QueueEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    def get_entry(self, entry_id: str) -> QueueEntry | None:
        return self.session.get(QueueEntry, entry_id)

    def select_eligible(self, now: datetime, limit: int) -> list[QueueEntry]:
        stmt = (
            select(QueueEntry)
            .where(eligibility_clause(now))
            .order_by(QueueEntry.priority.asc(), QueueEntry.created_at.asc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def list_entries(self, status: QueueStatus | None = None, limit: int = 50) -> list[QueueEntry]:
        stmt = select(QueueEntry).order_by(QueueEntry.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(QueueEntry.status == status)
        return list(self.session.scalars(stmt))

    def append_attempt(
        self,
        entry: QueueEntry,
        *,
        attempt_number: int,
        attempted_at: datetime,
        success: bool,
        duration: timedelta,
        error_message: str | None = None,
        error_details: str | None = None,
        provider_response: str | None = None,
    ) -> AuditLogEntry:
        record = AuditLogEntry(
            queue_entry_id=entry.id,
            to_address=entry.to_address,
            subject=entry.subject,
            status=AttemptStatus.SENT if success else AttemptStatus.FAILED,
            attempted_at=attempted_at,
            sent_at=attempted_at if success else None,
            error_message=error_message,
            error_details=error_details,
            attempt_number=attempt_number,
            provider_response=provider_response,
            success=success,
            duration=duration,
        )
        self.session.add(record)
        return record

    def recent_attempts(self, entry_id: str, limit: int = 20) -> list[AuditLogEntry]:
        stmt = (
            select(AuditLogEntry)
            .where(AuditLogEntry.queue_entry_id == entry_id)
            .order_by(AuditLogEntry.attempted_at.desc(), AuditLogEntry.attempt_number.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def count_by_status(self) -> dict[QueueStatus, int]:
        stmt = select(QueueEntry.status, func.count(QueueEntry.id)).group_by(QueueEntry.status)
        counts = {status: 0 for status in QueueStatus}
        for status, count in self.session.execute(stmt):
            counts[QueueStatus(status)] = count
        return counts

    def oldest_pending_created_at(self) -> datetime | None:
        stmt = select(func.min(QueueEntry.created_at)).where(QueueEntry.status == QueueStatus.PENDING)
        return self.session.scalar(stmt)

    def last_attempted_at(self) -> datetime | None:
        return self.session.scalar(select(func.max(AuditLogEntry.attempted_at)))


__all__ = ["QueueStore", "eligibility_clause"]
