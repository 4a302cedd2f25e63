"""Tests for logging helpers and error formatting."""

import json
import logging
import threading

import pytest

from mailqueue.exceptions import (
    ConfigurationError,
    DeliveryError,
    QueueStoreError,
    describe_exception,
    format_exception_chain,
)
from mailqueue.logging import ConsoleFormatter, LoggingContext, StructuredFormatter, setup_logging
from mailqueue.config import LoggingConfig


class TestStructuredFormatter:
    """Tests for JSON log output."""

    def test_includes_context_fields(self):
        logger = logging.getLogger("mailqueue.tests")
        captured = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                captured.append(record)

        handler = ListHandler()
        logger.addHandler(handler)
        try:
            with LoggingContext(logger, queue_entry_id="entry-1", attempt_number=2):
                logger.warning("attempt failed")
            logger.warning("outside context")
        finally:
            logger.removeHandler(handler)

        data = json.loads(StructuredFormatter().format(captured[0]))
        assert data["message"] == "attempt failed"
        assert data["level"] == "WARNING"
        assert data["queue_entry_id"] == "entry-1"
        assert data["attempt_number"] == 2
        assert not hasattr(captured[1], "queue_entry_id")


class TestConsoleFormatter:
    """Tests for console output."""

    def _record(self, **extra):
        record = logging.LogRecord("mailqueue.dispatcher", logging.WARNING, __file__, 1, "retry scheduled", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_attempt_suffix(self):
        formatter = ConsoleFormatter("%(levelname)s %(message)s")

        line = formatter.format(self._record(queue_entry_id="entry-1", attempt_number=3))

        assert line == "WARNING retry scheduled [entry=entry-1 attempt=3]"

    def test_plain_record(self):
        line = ConsoleFormatter("%(message)s").format(self._record())
        assert line == "retry scheduled"

    def test_color(self):
        line = ConsoleFormatter("%(message)s", use_color=True).format(self._record())
        assert line.startswith("\033[33m")
        assert line.endswith(ConsoleFormatter.RESET)


class TestLoggingContextIsolation:
    def test_other_threads_do_not_see_context(self):
        """Test that a context entered in one thread stays out of another."""
        logger = logging.getLogger("mailqueue.tests.threads")
        records = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = ListHandler()
        logger.addHandler(handler)
        entered = threading.Event()
        logged = threading.Event()

        def attempt():
            with LoggingContext(logger, queue_entry_id="entry-1"):
                entered.set()
                logged.wait(2)

        worker = threading.Thread(target=attempt)
        worker.start()
        try:
            assert entered.wait(2)
            logger.warning("from the main thread")
        finally:
            logged.set()
            worker.join(2)
            logger.removeHandler(handler)

        assert not hasattr(records[0], "queue_entry_id")

    def test_nested_contexts_merge(self):
        logger = logging.getLogger("mailqueue.tests.nested")
        records = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = ListHandler()
        logger.addHandler(handler)
        try:
            with LoggingContext(logger, queue_entry_id="entry-1"):
                with LoggingContext(logger, attempt_number=2):
                    logger.warning("inner")
                logger.warning("outer")
        finally:
            logger.removeHandler(handler)

        assert records[0].queue_entry_id == "entry-1"
        assert records[0].attempt_number == 2
        assert not hasattr(records[1], "attempt_number")


class TestSetupLogging:
    def test_unknown_level(self):
        with pytest.raises(ConfigurationError):
            setup_logging(LoggingConfig(level="LOUD", console_output=False))

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "mailqueue.log"
        root = logging.getLogger()
        previous = list(root.handlers)
        try:
            setup_logging(LoggingConfig(file_path=str(log_file), console_output=False))
            logging.getLogger("mailqueue.tests").info("written to file")
            for handler in root.handlers:
                handler.flush()

            line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
            assert json.loads(line)["message"] == "written to file"
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = previous


class TestExceptionFormatting:
    """Tests for error detail rendering."""

    def test_chain(self):
        cause = DeliveryError("recipient refused", context={"code": 550})
        error = QueueStoreError("batch aborted", cause=cause)

        text = format_exception_chain(error)

        assert "QueueStoreError: batch aborted" in text
        assert "Caused by:" in text
        assert "DeliveryError: recipient refused" in text
        assert "{'code': 550}" in text

    def test_describe_plain_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError as exc:
            text = describe_exception(exc)

        assert "Traceback" in text
        assert "ValueError: bad value" in text
