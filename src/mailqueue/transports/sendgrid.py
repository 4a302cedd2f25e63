"""SendGrid transport."""

import logging
import traceback

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from ..config import SendGridConfig
from ..exceptions import ConfigurationError
from ..messages import EmailMessage, SendResult
from .base import BaseTransport

logger = logging.getLogger(__name__)


class SendGridTransport(BaseTransport):
    """SendGrid v3 API transport."""

    name = "sendgrid"

    def __init__(self, config: SendGridConfig, client: SendGridAPIClient = None):
        """Initialize SendGrid transport.

        Args:
            config: API key and sender identity
            client: Pre-built API client, mainly for tests
        """
        if not config.api_key and client is None:
            raise ConfigurationError(
                "SendGrid API key not provided. Set MAILQUEUE_SENDGRID__API_KEY"
            )
        if not config.from_email:
            raise ConfigurationError("SendGrid transport requires a from_email")
        super().__init__(config.from_email, config.from_name)
        self.client = client or SendGridAPIClient(config.api_key)

    def validate_connection(self) -> bool:
        """Validate SendGrid credentials with a read-only API call.

        Returns:
            True if connection is valid
        """
        try:
            response = self.client.client.scopes.get()
            return response.status_code in (200, 204)
        except Exception as e:
            logger.error("SendGrid connection validation failed: %s", e)
            return False

    def send(self, message: EmailMessage) -> SendResult:
        """Send email via SendGrid.

        Args:
            message: Email message to send

        Returns:
            SendResult with status and details
        """
        mail = Mail(
            from_email=Email(self._get_from_email(message), self.from_name),
            to_emails=To(message.recipient),
            subject=message.subject,
        )
        mail.add_content(Content("text/html" if message.is_html else "text/plain", message.body))
        if message.reply_to:
            mail.reply_to = Email(message.reply_to)

        try:
            response = self.client.send(mail)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            body = getattr(e, "body", None)
            diagnostic = f"SendGrid error {status_code}: {body}" if status_code else f"SendGrid error: {e}"
            logger.error("SendGrid rejected email to %s: %s", message.recipient, diagnostic)
            return SendResult.failed(diagnostic, error_details=traceback.format_exc(), provider_response=diagnostic)

        diagnostic = f"{response.status_code} {response.headers.get('X-Message-Id', '')}".strip()
        if response.status_code in (200, 201, 202):
            logger.info("Email sent to %s via SendGrid", message.recipient)
            return SendResult.delivered(provider_response=diagnostic)
        return SendResult.failed(
            f"SendGrid returned status {response.status_code}",
            error_details=str(response.body),
            provider_response=diagnostic,
        )
