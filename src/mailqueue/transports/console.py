"""Console transport for local development."""

import logging

from ..messages import EmailMessage, SendResult
from .base import BaseTransport

logger = logging.getLogger(__name__)


class ConsoleTransport(BaseTransport):
    """Transport that logs emails instead of sending them."""

    name = "console"

    def send(self, message: EmailMessage) -> SendResult:
        logger.info(
            "Sending '%s' to %s (%s, %s chars)",
            message.subject,
            message.recipient,
            "html" if message.is_html else "plain",
            len(message.body),
        )
        return SendResult.delivered(provider_response="console")

    def validate_connection(self) -> bool:
        return True
