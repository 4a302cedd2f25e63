"""Logging utilities for mailqueue."""

import contextvars
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LoggingConfig, Settings
from .exceptions import ConfigurationError

# Fields attached by LoggingContext while a delivery attempt is running
_attempt_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "mailqueue_attempt_context", default={}
)

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}

_NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "urllib3",
    "python_http_client",
    "werkzeug",
)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for the rotating log file."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human readable console output.

    Records emitted during a delivery attempt get an ``[entry=... attempt=N]``
    suffix; with ``use_color`` the line is tinted by level.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, use_color: bool = False):
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        entry_id = getattr(record, "queue_entry_id", None)
        if entry_id is not None:
            formatted = f"{formatted} [entry={entry_id} attempt={getattr(record, 'attempt_number', '?')}]"
        if not self.use_color:
            return formatted
        color = self.LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{formatted}{self.RESET}" if color else formatted


def _context_record_factory(base_factory):
    def factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        for key, value in _attempt_context.get().items():
            setattr(record, key, value)
        return record

    factory.mailqueue_context = True
    return factory


def _install_record_factory() -> None:
    current = logging.getLogRecordFactory()
    if not getattr(current, "mailqueue_context", False):
        logging.setLogRecordFactory(_context_record_factory(current))


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level: {level}", context={"level": level})
    return resolved


def _console_handler(config: LoggingConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter(config.format, use_color=sys.stdout.isatty()))
    return handler


def _file_handler(config: LoggingConfig) -> logging.Handler:
    log_file = Path(config.file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging(
    config: Optional[LoggingConfig] = None,
    settings: Optional[Settings] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        config: Logging configuration (uses settings.logging if not provided)
        settings: Application settings

    Raises:
        ConfigurationError: If the configured level is unknown
    """
    if settings is not None:
        config = settings.logging
    config = config or LoggingConfig()

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(config.level))
    root_logger.handlers.clear()

    if config.console_output:
        root_logger.addHandler(_console_handler(config))
    if config.file_path:
        root_logger.addHandler(_file_handler(config))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _install_record_factory()


class LoggingContext:
    """Attach fields such as ``queue_entry_id`` to records emitted in a block.

    Context is kept per thread and per task, so the scheduler thread and API
    requests never see each other's fields. Nested contexts are merged.
    """

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context
        self._token: Optional[contextvars.Token] = None

    def __enter__(self):
        _install_record_factory()
        self._token = _attempt_context.set({**_attempt_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _attempt_context.reset(self._token)
        self._token = None
