"""Batch dispatcher: drains eligible queue entries through a transport."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .exceptions import ErrorSeverity, QueueStoreError, describe_exception
from .logging import LoggingContext
from .messages import EmailMessage, SendResult
from .models import QueueEntry, utcnow
from .retry import RetryPolicy
from .store import QueueStore
from .transports.base import BaseTransport

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BatchDispatcher:
    """Selects eligible entries and attempts delivery for each, one at a time.

    Entries are taken in strict priority order with FIFO tie-break. Each
    attempt commits the updated entry together with its audit row, so a crash
    between a successful send and the commit leaves the entry eligible and it
    will be sent again (at-least-once delivery).
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        transport: BaseTransport,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock

    def process_queue(self, batch_size: int = 10) -> int:
        """Attempt delivery for up to ``batch_size`` eligible entries.

        Returns:
            Number of entries attempted in this batch
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        session: Session = self.session_factory()
        processed = 0
        try:
            store = QueueStore(session)
            entries = store.select_eligible(self.clock(), batch_size)
            if not entries:
                logger.debug("No eligible entries in queue")
                return 0

            logger.info("Dispatching %s queue entries (batch_size=%s)", len(entries), batch_size)
            for entry in entries:
                self._process_entry(store, entry)
                session.commit()
                processed += 1
        except SQLAlchemyError as exc:
            session.rollback()
            raise QueueStoreError(
                f"Queue store failure after {processed} entries: {exc}",
                cause=exc,
                context={"processed": processed},
                severity=ErrorSeverity.HIGH,
            ) from exc
        finally:
            session.close()

        logger.info("Processed %s entries from queue", processed)
        return processed

    def _process_entry(self, store: QueueStore, entry: QueueEntry) -> None:
        attempt_number = entry.retry_count + 1

        with LoggingContext(logger, queue_entry_id=entry.id, attempt_number=attempt_number):
            logger.info("Processing entry %s (attempt %s)", entry.id, attempt_number)

            started = time.perf_counter()
            try:
                result = self.transport.send(self._build_message(entry))
            except Exception as exc:
                result = SendResult.failed(str(exc) or type(exc).__name__, error_details=describe_exception(exc))
                logger.exception("Unexpected error delivering entry %s", entry.id)
            duration = timedelta(seconds=time.perf_counter() - started)
            now = self.clock()

            if result.success:
                store.append_attempt(
                    entry,
                    attempt_number=attempt_number,
                    attempted_at=now,
                    success=True,
                    duration=duration,
                    provider_response=result.provider_response,
                )
                self.retry_policy.record_success(entry, now)
                logger.info("Entry %s sent on attempt %s", entry.id, attempt_number)
                return

            error_message = result.error_message or "Delivery failed"
            error_details = result.error_details or error_message
            store.append_attempt(
                entry,
                attempt_number=attempt_number,
                attempted_at=now,
                success=False,
                duration=duration,
                error_message=error_message,
                error_details=error_details,
                provider_response=result.provider_response,
            )
            decision = self.retry_policy.record_failure(entry, error_message, error_details, now)
            if decision.exhausted:
                logger.error(
                    "Entry %s failed permanently after %s attempts: %s",
                    entry.id,
                    entry.retry_count,
                    error_message,
                )
            else:
                logger.warning(
                    "Entry %s failed on attempt %s, retry scheduled at %s: %s",
                    entry.id,
                    attempt_number,
                    entry.next_retry_at.isoformat(),
                    error_message,
                )

    def _build_message(self, entry: QueueEntry) -> EmailMessage:
        return EmailMessage(
            recipient=entry.to_address,
            subject=entry.subject,
            body=entry.body,
            is_html=entry.is_html,
        )


__all__ = ["BatchDispatcher", "Clock"]
