"""
Domain events published by Chirper services.

Events are named in past tense and carry identifiers, not snapshots:
subscribers that need the chirp itself read it back from the store, so a
handler that runs late always sees current state.
"""

from dataclasses import dataclass

from event_sourced.event_bus import Event


CHIRP_SERVICE = "chirp-service"


@dataclass(frozen=True, kw_only=True)
class ChirpCreated(Event):
    """
    Published once, right after a chirp has been committed.

    Attributes:
        chirp_id: The chirp that was created
        author_id: Who wrote it
    """
    chirp_id: int
    author_id: int
    source: str = CHIRP_SERVICE


def chirp_created(chirp_id: int, author_id: int, source: str = CHIRP_SERVICE) -> ChirpCreated:
    """Create a ChirpCreated event."""
    return ChirpCreated(chirp_id=chirp_id, author_id=author_id, source=source)
