"""Reliable, prioritized, retrying email delivery queue."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .dispatcher import BatchDispatcher
from .exceptions import (
    MailQueueError,
    ConfigurationError,
    QueueStoreError,
    InvalidTransitionError,
    TransportError,
    AuthenticationError,
    DeliveryError,
)
from .messages import EmailMessage, EnqueueRequest, SendResult
from .models import AttemptStatus, AuditLogEntry, Form, Priority, QueueEntry, QueueStatus
from .retry import RetryDecision, RetryPolicy
from .scheduler import QueueScheduler
from .service import MailQueueService
from .stats import QueueStats

__all__ = [
    "Settings",
    "load_settings",
    "BatchDispatcher",
    "MailQueueError",
    "ConfigurationError",
    "QueueStoreError",
    "InvalidTransitionError",
    "TransportError",
    "AuthenticationError",
    "DeliveryError",
    "EmailMessage",
    "EnqueueRequest",
    "SendResult",
    "AttemptStatus",
    "AuditLogEntry",
    "Form",
    "Priority",
    "QueueEntry",
    "QueueStatus",
    "RetryDecision",
    "RetryPolicy",
    "QueueScheduler",
    "MailQueueService",
    "QueueStats",
]
