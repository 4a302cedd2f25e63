"""Exception hierarchy for mailqueue."""

import traceback
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MailQueueError(Exception):
    """Base exception for all mailqueue errors."""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}
        self.severity = severity
        self.traceback_str = traceback.format_exc() if cause else None


class ConfigurationError(MailQueueError):
    """Raised when configuration is invalid or missing."""
    pass


class QueueStoreError(MailQueueError):
    """Raised when the queue or audit store cannot be read or written."""
    pass


class InvalidTransitionError(MailQueueError):
    """Raised when a queue entry is moved out of a terminal state."""
    pass


class TransportError(MailQueueError):
    """Base class for transport adapter errors."""
    pass


class AuthenticationError(TransportError):
    """Raised when the transport rejects its credentials."""
    pass


class DeliveryError(TransportError):
    """Raised when the transport refuses a message."""
    pass


def format_exception_chain(exception: Exception) -> str:
    """
    Format an exception chain for logging or persistence.

    Args:
        exception: The exception to format

    Returns:
        Formatted exception chain as a string
    """
    lines = []
    current = exception

    while current:
        if isinstance(current, MailQueueError):
            lines.append(f"{type(current).__name__}: {current.message}")
            if current.context:
                lines.append(f"  Context: {current.context}")
            if current.cause:
                lines.append("  Caused by:")
                current = current.cause
            else:
                break
        else:
            lines.append(f"{type(current).__name__}: {str(current)}")
            break

    return "\n".join(lines)


def describe_exception(exception: BaseException) -> str:
    """Full diagnostic text for an exception raised during a delivery attempt."""
    if isinstance(exception, MailQueueError):
        chain = format_exception_chain(exception)
        if exception.traceback_str:
            return f"{chain}\n{exception.traceback_str}"
        return chain
    return "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
