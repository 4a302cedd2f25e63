"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from mailqueue.config import DatabaseConfig, QueueConfig
from mailqueue.db import create_db_engine, create_session_factory, init_db
from mailqueue.messages import EmailMessage, SendResult
from mailqueue.service import MailQueueService
from mailqueue.transports.base import BaseTransport

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


class ScriptedTransport(BaseTransport):
    """Transport that replays queued outcomes and records every message.

    Outcomes are consumed in order: ``True`` delivers, ``False`` fails, an
    exception instance is raised, a :class:`SendResult` is returned as is.
    Once the script runs out every send succeeds.
    """

    name = "scripted"

    def __init__(self, outcomes=None):
        super().__init__("noreply@example.com", "Queue Tests")
        self.outcomes = list(outcomes or [])
        self.sent: list[EmailMessage] = []
        self.connection_ok = True

    def script(self, *outcomes) -> None:
        self.outcomes.extend(outcomes)

    def send(self, message: EmailMessage) -> SendResult:
        self.sent.append(message)
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is True:
            return SendResult.delivered(provider_response="250 OK")
        if outcome is False:
            return SendResult.failed(
                "SMTP Error: 550 - Mailbox unavailable",
                error_details="550 5.1.1 Mailbox unavailable",
                provider_response="SMTP Error: 550 - Mailbox unavailable",
            )
        return outcome

    def validate_connection(self) -> bool:
        return self.connection_ok

    @property
    def recipients(self) -> list[str]:
        return [message.recipient for message in self.sent]


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def engine():
    engine = create_db_engine(DatabaseConfig(url="sqlite://"))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def queue_config():
    return QueueConfig()


@pytest.fixture
def service(session_factory, transport, queue_config, clock):
    return MailQueueService(session_factory, transport, queue_config=queue_config, clock=clock)
