"""
Domain services for Chirper.

Services publish events when things happen in their domain. They do NOT know
about the notification service - they just publish events.
"""

from event_sourced.services.chirps import ChirpNotFoundError, ChirpService, NotChirpAuthorError

__all__ = [
    "ChirpService",
    "ChirpNotFoundError",
    "NotChirpAuthorError",
]
