"""
Notification message rendering.

A notification describes *what* to tell a recipient; rendering turns it into a
channel-specific message. Rendering is pure: it reads nothing from the store
and sends nothing, so the exact email can be asserted in tests without a
delivery channel.

Design decisions:
- One notification type per business event (NewChirpNotification)
- Email messages keep their parts separate (subject, greeting, lines, action)
  so channels can lay them out as text or HTML
- Message text is inserted verbatim; escaping is the channel's job
"""

from dataclasses import dataclass, field
from enum import Enum
from html import escape

from shared.channels import ChannelType
from shared.models import Chirp, User


ACTION_TEXT = "Go to Chirper"


class NotificationType(str, Enum):
    """Supported notification types."""
    NEW_CHIRP = "new_chirp"


@dataclass(frozen=True)
class EmailMessage:
    """
    A rendered email, independent of how it is delivered.

    Attributes:
        subject: Subject line
        greeting: First line of the body
        intro_lines: Paragraphs shown before the call to action
        action_url: Target of the call-to-action link
        action_text: Label of the call-to-action link
    """
    subject: str
    greeting: str
    intro_lines: tuple[str, ...] = field(default_factory=tuple)
    action_url: str = ""
    action_text: str = ""

    def render_text(self) -> str:
        """Lay the message out as a plain-text email body."""
        parts = [self.greeting, "", *self.intro_lines]
        if self.action_url:
            parts += ["", f"{self.action_text}: {self.action_url}"]
        return "\n".join(parts) + "\n"

    def render_html(self) -> str:
        """Lay the message out as a minimal HTML email body."""
        lines = [f"<h1>{escape(self.greeting)}</h1>"]
        lines += [f"<p>{escape(line)}</p>" for line in self.intro_lines]
        if self.action_url:
            lines.append(
                f'<p><a href="{escape(self.action_url, quote=True)}">{escape(self.action_text)}</a></p>'
            )
        return "\n".join(lines)


@dataclass(frozen=True)
class NewChirpNotification:
    """
    "A new chirp was posted" notification for one recipient.

    Example:
        notification = NewChirpNotification(chirp=chirp, recipient=user)
        notification.via()  # [ChannelType.EMAIL]
        mail = notification.to_mail(action_url="https://chirper.test/chirps")
    """
    chirp: Chirp
    recipient: User

    notification_type = NotificationType.NEW_CHIRP

    def via(self) -> list[ChannelType]:
        """Channels this notification is delivered on."""
        return [ChannelType.EMAIL]

    def to_mail(self, action_url: str) -> EmailMessage:
        """Render the email for this recipient."""
        headline = f"New Chirp from {self.chirp.author_name}"
        return EmailMessage(
            subject=headline,
            greeting=headline,
            intro_lines=(self.chirp.message,),
            action_url=action_url,
            action_text=ACTION_TEXT,
        )
