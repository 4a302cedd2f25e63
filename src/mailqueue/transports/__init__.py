"""Delivery transport implementations."""

from ..config import Settings
from ..exceptions import ConfigurationError
from .base import BaseTransport
from .console import ConsoleTransport
from .smtp import SmtpTransport


def create_transport(settings: Settings) -> BaseTransport:
    """Create the transport selected by ``settings.transport``.

    Raises:
        ConfigurationError: If the transport is unknown or misconfigured
    """
    kind = settings.transport.lower()
    if kind == "smtp":
        return SmtpTransport(settings.smtp)
    if kind == "sendgrid":
        from .sendgrid import SendGridTransport

        return SendGridTransport(settings.sendgrid)
    if kind == "console":
        return ConsoleTransport(from_email=settings.smtp.from_email, from_name=settings.smtp.from_name)
    raise ConfigurationError(f"Unknown transport type: {settings.transport}")


__all__ = ["BaseTransport", "ConsoleTransport", "SmtpTransport", "create_transport"]
