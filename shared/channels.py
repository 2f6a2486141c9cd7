"""
Notification delivery channels.

Chirper delivers notifications by email only. Two email channels exist:
- EmailChannel: logs sends and records them; used in development and tests
- SendGridEmailChannel: delivers through the SendGrid REST API

Both return a NotificationResult instead of raising, so the caller decides
whether a failed send is worth retrying.

Channels receive already rendered text and HTML; they know nothing about
chirps or users.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

logger = logging.getLogger("notifications")


class ChannelType(str, Enum):
    """Supported notification channels."""
    EMAIL = "email"


@dataclass
class NotificationResult:
    """Outcome of one delivery attempt, kept for logs and test assertions."""
    success: bool
    channel: ChannelType
    recipient: str
    subject: Optional[str]
    body: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    error: Optional[str] = None

    def __str__(self) -> str:
        mark = "✓" if self.success else "✗"
        return f"{mark} {self.channel.value.upper()} to {self.recipient}: {self.subject}"


class EmailChannel:
    """
    Logging email channel.

    Nothing leaves the process: every send is written to the log and appended
    to sent_messages. A fail_rate above zero makes a share of sends report
    failure, which is how retry handling is exercised.
    """

    def __init__(
        self,
        fail_rate: float = 0.0,
        from_addr: str = "notifications@chirper.test",
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            fail_rate: Share of sends (0.0 to 1.0) that report failure
            from_addr: Sender address shown in the log
            rng: Random source deciding simulated failures (seed it in tests)
        """
        self.fail_rate = fail_rate
        self.from_addr = from_addr
        self._rng = rng or random.Random()
        self.sent_messages: list[NotificationResult] = []

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> NotificationResult:
        """Record an email to `to`; html_body is accepted and ignored."""
        failed = self._rng.random() < self.fail_rate
        result = NotificationResult(
            success=not failed,
            channel=ChannelType.EMAIL,
            recipient=to,
            subject=subject,
            body=body,
            error="Simulated email delivery failure" if failed else None,
        )

        if failed:
            logger.error(f"[EMAIL FAILED] To: {to} | Subject: {subject} | Error: {result.error}")
        else:
            logger.info(f"[EMAIL] From: {self.from_addr} | To: {to} | Subject: {subject}")
            logger.debug(f"[EMAIL BODY] {body}")

        self.sent_messages.append(result)
        return result

    def get_sent_count(self) -> int:
        return len(self.sent_messages)

    def get_successful_sends(self) -> list[NotificationResult]:
        return [m for m in self.sent_messages if m.success]

    def clear_history(self):
        self.sent_messages.clear()

    def find_message_to(self, recipient: str) -> Optional[NotificationResult]:
        """First recorded message addressed to recipient, if any."""
        return next((m for m in self.sent_messages if m.recipient == recipient), None)


class SendGridEmailChannel:
    """
    Email channel backed by SendGrid.

    Failures (exceptions or non-2xx responses) are logged and reported as an
    unsuccessful NotificationResult.
    """

    def __init__(self, api_key: str, from_addr: str, client: Optional[Any] = None):
        self.from_addr = from_addr
        self._client = client or SendGridAPIClient(api_key)

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> NotificationResult:
        message = Mail(
            from_email=self.from_addr,
            to_emails=to,
            subject=subject,
            plain_text_content=body,
            html_content=html_body,
        )

        error: Optional[str] = None
        try:
            response = self._client.send(message)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            error = f"SendGrid request failed ({status_code}): {e}" if status_code else f"SendGrid request failed: {e}"
        else:
            status_code = getattr(response, "status_code", None)
            if not isinstance(status_code, int) or not 200 <= status_code < 300:
                error = f"SendGrid responded with status {status_code}"

        if error:
            logger.error(f"[EMAIL FAILED] To: {to} | Subject: {subject} | Error: {error}")
        else:
            logger.info(f"[EMAIL] To: {to} | Subject: {subject}")

        return NotificationResult(
            success=error is None,
            channel=ChannelType.EMAIL,
            recipient=to,
            subject=subject,
            body=body,
            error=error,
        )


class NotificationChannels:
    """
    The set of channels a notification can be routed to, by ChannelType.

    Only email exists today; notifications name their channels through
    via(), and this class maps each name to the configured sender.
    """

    def __init__(self, email: Optional[Any] = None, email_fail_rate: float = 0.0):
        """
        Args:
            email: Email sender (EmailChannel or SendGridEmailChannel);
                a logging EmailChannel when None
            email_fail_rate: fail_rate of that default EmailChannel
        """
        self.email = email or EmailChannel(fail_rate=email_fail_rate)

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> NotificationResult:
        return self.email.send(to, subject, body, html_body)

    def send(
        self,
        channel: ChannelType,
        recipient: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> NotificationResult:
        """
        Route one message to the sender for channel.

        Raises:
            ValueError: For a channel name Chirper does not deliver on
        """
        if ChannelType(channel) == ChannelType.EMAIL:
            return self.send_email(recipient, subject, body, html_body)
        raise ValueError(f"Unknown channel: {channel}")

    def get_all_sent_messages(self) -> list[NotificationResult]:
        """Messages recorded by a logging channel; empty for real senders."""
        return list(getattr(self.email, "sent_messages", []))

    def get_total_sent_count(self) -> int:
        return len(self.get_all_sent_messages())

    def clear_all_history(self):
        if hasattr(self.email, "clear_history"):
            self.email.clear_history()
