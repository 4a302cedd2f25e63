"""Tests for the periodic scheduler."""

import time
from datetime import timedelta
from unittest.mock import Mock

import pytest

from mailqueue.dispatcher import BatchDispatcher
from mailqueue.exceptions import ErrorSeverity, QueueStoreError
from mailqueue.messages import EnqueueRequest
from mailqueue.scheduler import QueueScheduler


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestRunCycle:
    """Tests for a single scheduler cycle."""

    def test_cycle_uses_batch_size(self):
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.return_value = 4
        scheduler = QueueScheduler(dispatcher, batch_size=25)

        assert scheduler.run_cycle() == 4
        dispatcher.process_queue.assert_called_once_with(25)
        assert scheduler.cycles_completed == 1

    def test_cycle_error_is_contained(self):
        """Test that a failing cycle is logged and does not propagate."""
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.side_effect = RuntimeError("database unavailable")
        scheduler = QueueScheduler(dispatcher)

        assert scheduler.run_cycle() == 0
        assert scheduler.cycles_failed == 1
        assert scheduler.cycles_completed == 0

    def test_store_error_logged_with_severity(self, caplog):
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.side_effect = QueueStoreError(
            "commit failed", context={"processed": 1}, severity=ErrorSeverity.HIGH
        )
        scheduler = QueueScheduler(dispatcher)

        with caplog.at_level("ERROR"):
            assert scheduler.run_cycle() == 0

        assert "severity=high" in caplog.text
        assert scheduler.cycles_failed == 1

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            QueueScheduler(Mock(spec=BatchDispatcher), interval=timedelta(0))


class TestSchedulerLoop:
    """Tests for the scheduler loop and shutdown."""

    def test_run_once(self):
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.return_value = 0
        scheduler = QueueScheduler(dispatcher)

        scheduler.start(run_once=True)

        assert dispatcher.process_queue.call_count == 1

    def test_loop_survives_failing_cycles(self):
        """Test that later cycles still run after one fails."""
        calls = []

        def process_queue(batch_size):
            calls.append(batch_size)
            if len(calls) == 1:
                raise RuntimeError("transient failure")
            return 0

        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.side_effect = process_queue
        scheduler = QueueScheduler(dispatcher, interval=timedelta(milliseconds=10))

        scheduler.start_in_background()
        try:
            assert _wait_for(lambda: len(calls) >= 3)
        finally:
            scheduler.stop(timeout=2)

        assert scheduler.cycles_failed == 1
        assert scheduler.cycles_completed >= 2
        assert not scheduler.is_running

    def test_stop_interrupts_wait(self):
        """Test that stop returns promptly even with a long interval."""
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.return_value = 0
        scheduler = QueueScheduler(dispatcher, interval=timedelta(hours=1))

        scheduler.start_in_background()
        assert _wait_for(lambda: dispatcher.process_queue.call_count == 1)

        started = time.monotonic()
        scheduler.stop(timeout=2)

        assert time.monotonic() - started < 2
        assert scheduler.stopped
        assert not scheduler.is_running
        assert dispatcher.process_queue.call_count == 1

    def test_cannot_start_twice(self):
        dispatcher = Mock(spec=BatchDispatcher)
        dispatcher.process_queue.return_value = 0
        scheduler = QueueScheduler(dispatcher, interval=timedelta(hours=1))

        scheduler.start_in_background()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start_in_background()
        finally:
            scheduler.stop(timeout=2)

    def test_drains_real_queue(self, service, transport):
        service.enqueue(EnqueueRequest(to_address="user@example.com", subject="Hi", body="Body"))
        scheduler = service.create_scheduler(batch_size=5)

        scheduler.start(run_once=True)

        assert transport.recipients == ["user@example.com"]
        assert scheduler.batch_size == 5
        assert scheduler.interval == timedelta(minutes=2)
