"""
Chirp service: create, list, edit and delete chirps.

Creating a chirp publishes ChirpCreated once the row is committed. The service
does not know who listens; notification fan-out is entirely the notification
service's business.

Authorization rule: only a chirp's author may edit or delete it.
"""

import logging
from datetime import datetime
from typing import Optional

from event_sourced.event_bus import EventBus
from event_sourced.events import chirp_created
from shared.data_store import DataStore
from shared.models import Chirp, ChirpDraft

logger = logging.getLogger("chirp_service")


class ChirpNotFoundError(LookupError):
    """Raised when a chirp does not exist."""


class NotChirpAuthorError(PermissionError):
    """Raised when a user tries to change someone else's chirp."""


class ChirpService:
    """
    Chirp CRUD that publishes events.

    Example:
        service = ChirpService(event_bus, data_store)
        chirp = service.create_chirp(author_id=1, message="Hello!")
        # ChirpCreated(chirp_id=chirp.id, author_id=1) has been published
    """

    def __init__(self, event_bus: EventBus, data_store: DataStore):
        self.event_bus = event_bus
        self.data_store = data_store

    def create_chirp(
        self,
        author_id: int,
        message: str,
        created_at: Optional[datetime] = None,
    ) -> Chirp:
        """
        Validate, insert and announce a chirp.

        Subscriber failures are contained by the event bus, so once the insert
        has committed this returns the chirp whatever the listeners do.

        Raises:
            pydantic.ValidationError: If the message is empty or too long
            LookupError: If the author does not exist
        """
        draft = ChirpDraft(message=message)
        chirp = self.data_store.create_chirp(author_id, draft.message, created_at=created_at)
        logger.info(f"Chirp {chirp.id} created by user {author_id}")

        self.event_bus.publish(chirp_created(chirp_id=chirp.id, author_id=chirp.author_id))
        return chirp

    def list_chirps(self, limit: Optional[int] = None) -> list[Chirp]:
        """All chirps, latest first."""
        return self.data_store.list_chirps(limit=limit)

    def get_chirp(self, chirp_id: int) -> Chirp:
        chirp = self.data_store.get_chirp(chirp_id)
        if chirp is None:
            raise ChirpNotFoundError(f"Chirp not found: {chirp_id}")
        return chirp

    def update_chirp(self, user_id: int, chirp_id: int, message: str) -> Chirp:
        """
        Edit a chirp's message.

        Raises:
            ChirpNotFoundError: If the chirp does not exist
            NotChirpAuthorError: If user_id did not write the chirp
            pydantic.ValidationError: If the message is empty or too long
        """
        chirp = self._get_owned(user_id, chirp_id)
        draft = ChirpDraft(message=message)
        updated = self.data_store.update_chirp(chirp.id, draft.message)
        if updated is None:
            raise ChirpNotFoundError(f"Chirp not found: {chirp_id}")
        logger.info(f"Chirp {chirp_id} updated by user {user_id}")
        return updated

    def delete_chirp(self, user_id: int, chirp_id: int) -> None:
        """
        Delete a chirp.

        Raises:
            ChirpNotFoundError: If the chirp does not exist
            NotChirpAuthorError: If user_id did not write the chirp
        """
        chirp = self._get_owned(user_id, chirp_id)
        if not self.data_store.delete_chirp(chirp.id):
            raise ChirpNotFoundError(f"Chirp not found: {chirp_id}")
        logger.info(f"Chirp {chirp_id} deleted by user {user_id}")

    def _get_owned(self, user_id: int, chirp_id: int) -> Chirp:
        chirp = self.get_chirp(chirp_id)
        if not chirp.is_authored_by(user_id):
            logger.warning(f"User {user_id} tried to modify chirp {chirp_id} owned by {chirp.author_id}")
            raise NotChirpAuthorError(f"User {user_id} is not the author of chirp {chirp_id}")
        return chirp
