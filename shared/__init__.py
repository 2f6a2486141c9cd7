"""
Shared infrastructure for Chirper.

This package contains the pieces the event pipeline and the HTTP API both use:
- Domain records (User, Chirp)
- SQLAlchemy record store
- Email channels
- Notification rendering
- Settings
"""

from shared.models import User, Chirp, ChirpDraft, UserDraft
from shared.data_store import DataStore, DuplicateEmailError
from shared.channels import EmailChannel, SendGridEmailChannel, NotificationChannels, NotificationResult

__all__ = [
    "User",
    "Chirp",
    "ChirpDraft",
    "UserDraft",
    "DataStore",
    "DuplicateEmailError",
    "EmailChannel",
    "SendGridEmailChannel",
    "NotificationChannels",
    "NotificationResult",
]
