"""Read-only queue statistics."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from .models import QueueStatus, ensure_utc
from .store import QueueStore


@dataclass(frozen=True)
class QueueStats:
    pending: int = 0
    retrying: int = 0
    sent: int = 0
    failed: int = 0
    oldest_pending: datetime | None = None
    last_processed_at: datetime | None = None

    @property
    def total(self) -> int:
        return self.pending + self.retrying + self.sent + self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "retrying": self.retrying,
            "sent": self.sent,
            "failed": self.failed,
            "total": self.total,
            "oldest_pending": self.oldest_pending.isoformat() if self.oldest_pending else None,
            "last_processed_at": self.last_processed_at.isoformat() if self.last_processed_at else None,
        }


def get_queue_stats(session: Session) -> QueueStats:
    """Summarise entry counts per status plus the oldest pending and latest attempt times."""
    store = QueueStore(session)
    counts = store.count_by_status()
    return QueueStats(
        pending=counts[QueueStatus.PENDING],
        retrying=counts[QueueStatus.RETRY],
        sent=counts[QueueStatus.SENT],
        failed=counts[QueueStatus.FAILED],
        oldest_pending=ensure_utc(store.oldest_pending_created_at()),
        last_processed_at=ensure_utc(store.last_attempted_at()),
    )


__all__ = ["QueueStats", "get_queue_stats"]
