"""Base transport interface."""

from abc import ABC, abstractmethod
import logging

from ..messages import EmailMessage, SendResult

logger = logging.getLogger(__name__)


class BaseTransport(ABC):
    """Abstract base class for delivery transports.

    A transport sends exactly one message per call and reports the outcome as
    a :class:`SendResult`. It must not retry internally; retry scheduling is
    owned by the queue.
    """

    name = "base"

    def __init__(self, from_email: str, from_name: str = None):
        """Initialize the transport.

        Args:
            from_email: Default sender email address
            from_name: Optional display name for the sender
        """
        self.from_email = from_email
        self.from_name = from_name

    @abstractmethod
    def send(self, message: EmailMessage) -> SendResult:
        """Send an email message.

        Args:
            message: Email message to send

        Returns:
            SendResult with status and provider diagnostic
        """
        pass

    @abstractmethod
    def validate_connection(self) -> bool:
        """Check that the transport is configured and reachable without sending mail.

        Returns:
            True if connection is valid
        """
        pass

    def _get_from_email(self, message: EmailMessage) -> str:
        return message.from_email or self.from_email
