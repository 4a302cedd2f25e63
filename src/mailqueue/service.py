"""Producer and operator facade over the delivery queue."""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from .config import QueueConfig, Settings
from .db import create_db_engine, create_session_factory, init_db, session_scope
from .dispatcher import BatchDispatcher, Clock
from .messages import EmailMessage, EnqueueRequest, SendResult
from .models import AuditLogEntry, Priority, QueueEntry, QueueStatus, utcnow
from .notifications import FormSubmission, build_form_submission_request
from .retry import RetryPolicy
from .scheduler import QueueScheduler
from .stats import QueueStats, get_queue_stats
from .store import QueueStore
from .transports import BaseTransport, create_transport

logger = logging.getLogger(__name__)


class MailQueueService:
    """Enqueue messages, drain the queue and report on it.

    Producers only ever write new pending entries; delivery happens later in
    :meth:`process_queue`, normally driven by a :class:`QueueScheduler`.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        transport: BaseTransport,
        queue_config: QueueConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.transport = transport
        self.queue_config = queue_config or QueueConfig()
        self.clock = clock
        self.retry_policy = RetryPolicy(timedelta(minutes=self.queue_config.backoff_base_minutes))
        self.dispatcher = BatchDispatcher(
            session_factory,
            transport,
            retry_policy=self.retry_policy,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: BaseTransport | None = None) -> "MailQueueService":
        engine = create_db_engine(settings.database)
        init_db(engine)
        return cls(
            create_session_factory(engine),
            transport or create_transport(settings),
            queue_config=settings.queue,
        )

    def enqueue(
        self,
        request: EnqueueRequest,
        correlation_id: str | None = None,
        priority: int | None = None,
    ) -> str:
        """Persist a pending entry and return its id. Does not attempt delivery."""
        lane = Priority(priority if priority is not None else self.queue_config.default_priority)
        entry = QueueEntry(
            to_address=request.to_address,
            subject=request.subject,
            body=request.body,
            is_html=request.is_html,
            status=QueueStatus.PENDING,
            retry_count=0,
            max_retries=request.max_retries or self.queue_config.max_retries,
            priority=int(lane),
            created_at=self.clock(),
            scheduled_for=request.scheduled_for,
            correlation_id=correlation_id,
        )
        with session_scope(self.session_factory) as session:
            QueueStore(session).add_entry(entry)
            entry_id = entry.id

        logger.info(
            "Email queued with id %s for %s (priority=%s)", entry_id, request.to_address, lane.name
        )
        return entry_id

    def queue_form_submission_notification(self, submission: FormSubmission) -> str:
        """Queue the recruiter notification for a submitted form at high priority."""
        request = build_form_submission_request(submission)
        return self.enqueue(request, correlation_id=submission.form_id, priority=Priority.HIGH)

    def process_queue(self, batch_size: int | None = None) -> int:
        return self.dispatcher.process_queue(batch_size or self.queue_config.batch_size)

    def get_queue_stats(self) -> QueueStats:
        with session_scope(self.session_factory) as session:
            return get_queue_stats(session)

    def test_transport(self) -> bool:
        """Connectivity probe against the transport; bypasses the queue."""
        try:
            ok = self.transport.validate_connection()
        except Exception:
            logger.exception("Transport connection test raised")
            return False
        if ok:
            logger.info("Transport connection test successful (%s)", self.transport.name)
        else:
            logger.warning("Transport connection test failed (%s)", self.transport.name)
        return ok

    def send_now(self, message: EmailMessage) -> SendResult:
        """Deliver immediately without queueing or auditing."""
        return self.transport.send(message)

    def get_entry(self, entry_id: str) -> QueueEntry | None:
        with session_scope(self.session_factory) as session:
            return QueueStore(session).get_entry(entry_id)

    def list_entries(self, status: QueueStatus | None = None, limit: int = 50) -> list[QueueEntry]:
        with session_scope(self.session_factory) as session:
            return QueueStore(session).list_entries(status=status, limit=limit)

    def recent_attempts(self, entry_id: str, limit: int = 20) -> list[AuditLogEntry]:
        with session_scope(self.session_factory) as session:
            return QueueStore(session).recent_attempts(entry_id, limit=limit)

    def create_scheduler(
        self,
        interval: timedelta | None = None,
        batch_size: int | None = None,
    ) -> QueueScheduler:
        return QueueScheduler(
            self.dispatcher,
            interval=interval or timedelta(minutes=self.queue_config.processing_interval_minutes),
            batch_size=batch_size or self.queue_config.batch_size,
        )


__all__ = ["MailQueueService"]
