"""SMTP transport."""

import logging
import smtplib
import time
import traceback
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from ..config import SmtpConfig
from ..exceptions import AuthenticationError, DeliveryError, TransportError, describe_exception
from ..messages import EmailMessage, SendResult
from .base import BaseTransport

logger = logging.getLogger(__name__)


class SmtpTransport(BaseTransport):
    """Delivers messages through an authenticated SMTP relay."""

    name = "smtp"

    def __init__(self, config: SmtpConfig):
        """Initialize SMTP transport.

        Args:
            config: SMTP host, port, credentials and TLS settings
        """
        super().__init__(config.from_email, config.from_name)
        self.config = config

    def _connect(self) -> smtplib.SMTP:
        if self.config.use_ssl:
            client = smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=self.config.timeout)
        else:
            client = smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout)
            if self.config.use_tls:
                client.starttls()
        if self.config.username:
            try:
                client.login(self.config.username, self.config.password or "")
            except smtplib.SMTPAuthenticationError as e:
                client.close()
                raise AuthenticationError(
                    self._format_smtp_error(e.smtp_code, e.smtp_error),
                    cause=e,
                    context={"host": self.config.host, "username": self.config.username},
                ) from e
        return client

    def _build_mime(self, message: EmailMessage) -> MIMEText:
        mime = MIMEText(message.body, "html" if message.is_html else "plain", "utf-8")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.from_name or "", self._get_from_email(message)))
        mime["To"] = message.recipient
        if message.reply_to:
            mime["Reply-To"] = message.reply_to
        for name, value in message.headers.items():
            mime[name] = value
        return mime

    def send(self, message: EmailMessage) -> SendResult:
        """Send a message over SMTP.

        Args:
            message: Email message to send

        Returns:
            SendResult; SMTP rejections are reported as failures, never raised
        """
        started = time.perf_counter()
        try:
            mime = self._build_mime(message)
            with self._connect() as client:
                refused = client.send_message(mime)
            if refused:
                raise DeliveryError(
                    f"Recipient refused: {', '.join(refused)}",
                    context={"refused": refused},
                )
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info("Email sent to %s in %sms", message.recipient, elapsed_ms)
            return SendResult.delivered(provider_response=f"250 OK ({elapsed_ms}ms)")
        except TransportError as e:
            logger.error("SMTP transport error sending email to %s: %s", message.recipient, e.message)
            return SendResult.failed(e.message, error_details=describe_exception(e), provider_response=e.message)
        except smtplib.SMTPResponseException as e:
            response = self._format_smtp_error(e.smtp_code, e.smtp_error)
            logger.error("SMTP error sending email to %s: %s", message.recipient, response)
            return SendResult.failed(response, error_details=traceback.format_exc(), provider_response=response)
        except smtplib.SMTPException as e:
            response = f"SMTP Error: {e}"
            logger.error("SMTP error sending email to %s: %s", message.recipient, e)
            return SendResult.failed(response, error_details=traceback.format_exc(), provider_response=response)
        except OSError as e:
            logger.error("Connection error sending email to %s: %s", message.recipient, e)
            return SendResult.failed(f"Connection error: {e}", error_details=traceback.format_exc())

    def validate_connection(self) -> bool:
        """Connect, authenticate and issue NOOP without sending mail.

        Returns:
            True if the relay accepted the session
        """
        try:
            with self._connect() as client:
                code, _ = client.noop()
            return code == 250
        except (TransportError, smtplib.SMTPException, OSError) as e:
            logger.error("SMTP connection test failed: %s", e)
            return False

    @staticmethod
    def _format_smtp_error(code: int, error: Optional[bytes]) -> str:
        if isinstance(error, bytes):
            error = error.decode("utf-8", errors="replace")
        return f"SMTP Error: {code} - {error}"
