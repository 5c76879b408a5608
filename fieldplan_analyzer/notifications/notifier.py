"""Outbound notification delivery with bounded retries.

Core code only sees ``Notifier.send() -> bool``. Transport failures are
raised as ``TransportError`` inside ``_deliver`` and retried here, at the
boundary, up to ``max_attempts`` times with a fixed delay.

Implementations:
    SmtpNotifier     -- HTML email through an SMTP relay
    LoggingNotifier  -- logs the message and keeps it in memory (dry runs)
"""

import logging
import os
import re
import smtplib
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable

from fieldplan_analyzer.config import NotifierSettings, SmtpSettings

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class TransportError(Exception):
    """A single delivery attempt failed."""


@dataclass
class Notification:
    """One outbound message.

    Fields:
        recipients:  Addresses to deliver to (invalid ones are dropped)
        subject:     Subject line
        body:        HTML body
        reply_to:    Optional Reply-To address
        sender_name: Display name for the From header
    """
    recipients: list[str]
    subject: str
    body: str
    reply_to: str | None = None
    sender_name: str | None = None
    metadata: dict = field(default_factory=dict)


def is_valid_email(address: str) -> bool:
    return bool(_EMAIL_PATTERN.match(address.strip()))


def valid_recipients(recipients: list[str]) -> list[str]:
    """Trimmed, de-duplicated recipients that look like email addresses."""
    seen: set[str] = set()
    valid: list[str] = []
    for address in recipients:
        address = (address or "").strip()
        if not address or address in seen:
            continue
        if not is_valid_email(address):
            logger.warning("Dropping invalid recipient address %r", address)
            continue
        seen.add(address)
        valid.append(address)
    return valid


class Notifier(ABC):
    """Base class handling recipient validation and retries.

    Args:
        max_attempts: Delivery attempts before giving up (>= 1).
        retry_delay:  Seconds to wait between attempts.
        sleep:        Injectable sleep function (tests pass a no-op).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] | None = None,
    ):
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep or time.sleep

    @abstractmethod
    def _deliver(self, notification: Notification) -> None:
        """Deliver once. Raise TransportError on failure."""
        ...

    def send(self, notification: Notification) -> bool:
        """Deliver ``notification``, retrying transport failures.

        Returns:
            True when one attempt succeeded; False when no recipient was
            valid or every attempt failed.
        """
        recipients = valid_recipients(notification.recipients)
        if not recipients:
            logger.error("No valid recipients for %r, not sending", notification.subject)
            return False
        message = replace(notification, recipients=recipients)

        for attempt in range(1, self.max_attempts + 1):
            try:
                self._deliver(message)
                logger.info(
                    "Sent %r to %d recipient(s)", message.subject, len(recipients),
                )
                return True
            except TransportError as exc:
                logger.warning(
                    "Send of %r failed (attempt %d/%d): %s",
                    message.subject, attempt, self.max_attempts, exc,
                )
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay)

        logger.error(
            "Giving up on %r after %d attempts", message.subject, self.max_attempts,
        )
        return False


class SmtpNotifier(Notifier):
    """Send HTML email through an SMTP server.

    The password is read from the environment variable named in
    ``SmtpSettings.password_env`` at send time, never from the config file.
    """

    def __init__(
        self,
        settings: SmtpSettings,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] | None = None,
        timeout: float = 30,
    ):
        super().__init__(max_attempts=max_attempts, retry_delay=retry_delay, sleep=sleep)
        self.settings = settings
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> "SmtpNotifier":
        return cls(
            settings.smtp,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay_seconds,
        )

    def _build_message(self, notification: Notification) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = notification.subject
        msg["From"] = formataddr(
            (notification.sender_name or "", self.settings.sender_address)
        )
        msg["To"] = ", ".join(notification.recipients)
        if notification.reply_to:
            msg["Reply-To"] = notification.reply_to
        msg.set_content("This message requires an HTML-capable email client.")
        msg.add_alternative(notification.body, subtype="html")
        return msg

    def _deliver(self, notification: Notification) -> None:
        msg = self._build_message(notification)
        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.timeout) as smtp:
                if self.settings.use_tls:
                    smtp.starttls()
                if self.settings.username:
                    password = os.environ.get(self.settings.password_env, "")
                    smtp.login(self.settings.username, password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(str(exc)) from exc


class LoggingNotifier(Notifier):
    """Log notifications instead of sending them.

    Delivered messages are kept in ``sent`` for inspection.
    """

    def __init__(self):
        super().__init__(max_attempts=1, retry_delay=0)
        self.sent: list[Notification] = []

    def _deliver(self, notification: Notification) -> None:
        logger.info(
            "[dry-run] Would send %r to %s (%d chars)",
            notification.subject, ", ".join(notification.recipients), len(notification.body),
        )
        self.sent.append(notification)
