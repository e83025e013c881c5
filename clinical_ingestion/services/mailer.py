"""Notification transports used to deliver ingestion emails."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import List, Protocol, Tuple

from clinical_ingestion.config import Settings
from clinical_ingestion.services.logging import get_logger

logger = get_logger(__name__)


class NotificationError(RuntimeError):
    """Raised when a notification could not be delivered."""


class Notifier(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class SmtpNotifier:
    """Deliver one plain-text message per call through an SMTP relay."""

    def __init__(self, settings: Settings) -> None:
        if not settings.smtp_host:
            raise ValueError("SMTP host must be configured to send notifications")
        self.settings = settings

    def _message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.mail_sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send(self, recipient: str, subject: str, body: str) -> None:
        message = self._message(recipient, subject, body)
        try:
            with smtplib.SMTP(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=30,
            ) as smtp:
                if self.settings.smtp_use_tls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Failed to send notification to {recipient}: {exc}") from exc
        logger.debug("Notification sent to %s", recipient)


class NullNotifier:
    """Stand-in used when no SMTP relay is configured; records what would be sent."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append((recipient, subject, body))
        logger.info("Email delivery disabled; would notify %s: %s", recipient, subject)


def build_notifier(settings: Settings) -> Notifier:
    if settings.smtp_host:
        return SmtpNotifier(settings)
    return NullNotifier()


__all__ = [
    "NotificationError",
    "Notifier",
    "NullNotifier",
    "SmtpNotifier",
    "build_notifier",
]
