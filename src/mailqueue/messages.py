"""Value objects exchanged between the queue and its transports."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Any

from .models import ensure_utc


@dataclass
class EmailMessage:
    """One outbound message as handed to a transport."""

    recipient: str
    subject: str
    body: str
    is_html: bool = True
    from_email: Optional[str] = None
    reply_to: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.recipient:
            raise ValueError("recipient must be provided")
        if not self.body:
            raise ValueError("body must be provided")


@dataclass
class SendResult:
    """Outcome of a single transport call."""

    success: bool
    provider_response: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def delivered(cls, provider_response: Optional[str] = None) -> "SendResult":
        return cls(success=True, provider_response=provider_response)

    @classmethod
    def failed(
        cls,
        error_message: str,
        error_details: Optional[str] = None,
        provider_response: Optional[str] = None,
    ) -> "SendResult":
        return cls(
            success=False,
            error_message=error_message,
            error_details=error_details,
            provider_response=provider_response,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "provider_response": self.provider_response,
            "error_message": self.error_message,
            "error_details": self.error_details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class EnqueueRequest:
    """A producer's request to deliver one message through the queue."""

    to_address: str
    subject: str
    body: str
    is_html: bool = True
    scheduled_for: Optional[datetime] = None
    max_retries: Optional[int] = None

    def __post_init__(self):
        if not self.to_address:
            raise ValueError("to_address must be provided")
        if not self.subject:
            raise ValueError("subject must be provided")
        if not self.body:
            raise ValueError("body must be provided")
        if self.max_retries is not None and self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        # Stored timestamps keep only wall-clock fields, so they must be UTC
        self.scheduled_for = ensure_utc(self.scheduled_for)


TEST_EMAIL_SUBJECT = "Test Email from Document Verification System"


def build_test_message(recipient: str, now: Optional[datetime] = None) -> EmailMessage:
    """Message used to check end-to-end delivery outside the queue."""
    now = now or datetime.now(timezone.utc)
    return EmailMessage(
        recipient=recipient,
        subject=TEST_EMAIL_SUBJECT,
        body=(
            "<h2>Test Email</h2>"
            f"<p>This is a test email sent at {now:%Y-%m-%d %H:%M:%S} UTC.</p>"
            "<p>If you received this email, the email service is working correctly.</p>"
        ),
        is_html=True,
    )
