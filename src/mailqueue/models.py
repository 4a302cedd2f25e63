"""Database models for the delivery queue and its audit log."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Interval,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from backends that drop tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class QueueStatus(str, enum.Enum):
    PENDING = "pending"
    RETRY = "retry"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.SENT, QueueStatus.FAILED)


class AttemptStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"


class Priority(enum.IntEnum):
    """Dispatch lanes; lower values are served first."""

    HIGH = 1
    NORMAL = 2
    LOW = 3


class Form(Base):
    """Originating form submission a queue entry may be correlated with."""

    __tablename__ = "forms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    recruiter_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # No delete cascade: removing a form nulls the correlation on its entries.
    notifications: Mapped[list["QueueEntry"]] = relationship(back_populates="form")


class QueueEntry(Base):
    __tablename__ = "queue_entries"
    __table_args__ = (
        Index("ix_queue_entries_status_priority_created_at", "status", "priority", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    to_address: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_html: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[QueueStatus] = mapped_column(
        Enum(QueueStatus), default=QueueStatus.PENDING, nullable=False, index=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=int(Priority.NORMAL), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("forms.id", ondelete="SET NULL"), nullable=True, index=True
    )

    form: Mapped[Form | None] = relationship(back_populates="notifications")
    attempts: Mapped[list["AuditLogEntry"]] = relationship(
        back_populates="queue_entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AuditLogEntry.attempted_at",
    )

    def __repr__(self) -> str:
        return (
            f"<QueueEntry id={self.id} status={self.status.value if self.status else None} "
            f"retry={self.retry_count}/{self.max_retries} priority={self.priority}>"
        )


class AuditLogEntry(Base):
    """One row per delivery attempt; never updated after insert."""

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_queue_entry_id_attempted_at", "queue_entry_id", "attempted_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    queue_entry_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("queue_entries.id", ondelete="CASCADE"), nullable=False
    )
    to_address: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[AttemptStatus] = mapped_column(Enum(AttemptStatus), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    provider_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    duration: Mapped[timedelta | None] = mapped_column(Interval, nullable=True)

    queue_entry: Mapped[QueueEntry] = relationship(back_populates="attempts")


__all__ = [
    "AttemptStatus",
    "AuditLogEntry",
    "Base",
    "Form",
    "Priority",
    "QueueEntry",
    "QueueStatus",
    "ensure_utc",
    "utcnow",
]
