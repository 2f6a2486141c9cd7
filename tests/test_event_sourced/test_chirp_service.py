"""
Tests for the ChirpService.

These tests verify chirp CRUD, the authorship rule, and that creating a chirp
announces it on the event bus exactly once.
"""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from event_sourced.events import ChirpCreated
from event_sourced.services.chirps import ChirpNotFoundError, ChirpService, NotChirpAuthorError


class TestCreateChirp:
    """Tests for chirp creation."""

    def test_publishes_chirp_created(self, event_bus, chirp_service: ChirpService, alice):
        """Test that ChirpCreated is dispatched with the new chirp's id."""
        chirp = chirp_service.create_chirp(alice.id, "Hello!")

        events = event_bus.find_events(ChirpCreated)
        assert len(events) == 1
        assert events[0].chirp_id == chirp.id
        assert events[0].author_id == alice.id

    def test_chirp_is_stored_before_event(self, event_bus, data_store, chirp_service: ChirpService, alice):
        """Test that subscribers can already read the chirp."""
        seen = []
        event_bus.subscribe(ChirpCreated, lambda e: seen.append(data_store.get_chirp(e.chirp_id)))

        chirp = chirp_service.create_chirp(alice.id, "Visible?")

        assert seen[0] is not None
        assert seen[0].message == "Visible?"
        assert seen[0].id == chirp.id

    def test_subscriber_failure_keeps_chirp(self, event_bus, data_store, chirp_service: ChirpService, alice):
        """Test that a raising subscriber neither fails nor rolls back the create."""
        def broken(event):
            raise RuntimeError("notification backend down")

        event_bus.subscribe(ChirpCreated, broken)

        chirp = chirp_service.create_chirp(alice.id, "Still saved")

        assert data_store.get_chirp(chirp.id) is not None

    def test_empty_message_rejected(self, event_bus, data_store, chirp_service: ChirpService, alice):
        with pytest.raises(ValidationError):
            chirp_service.create_chirp(alice.id, "")

        assert data_store.list_chirps() == []
        assert event_bus.find_events(ChirpCreated) == []

    def test_blank_message_rejected(self, event_bus, data_store, chirp_service: ChirpService, alice):
        """Test that a whitespace-only chirp is neither stored nor announced."""
        with pytest.raises(ValidationError):
            chirp_service.create_chirp(alice.id, "   ")

        assert data_store.list_chirps() == []
        assert event_bus.find_events(ChirpCreated) == []

    def test_blank_update_rejected(self, chirp_service: ChirpService, alice):
        chirp = chirp_service.create_chirp(alice.id, "Keep me")

        with pytest.raises(ValidationError):
            chirp_service.update_chirp(alice.id, chirp.id, " \t ")

        assert chirp_service.get_chirp(chirp.id).message == "Keep me"

    def test_overlong_message_rejected(self, chirp_service: ChirpService, alice):
        with pytest.raises(ValidationError):
            chirp_service.create_chirp(alice.id, "x" * 256)

    def test_unknown_author_rejected(self, event_bus, chirp_service: ChirpService):
        with pytest.raises(LookupError):
            chirp_service.create_chirp(999, "Who am I?")

        assert event_bus.find_events(ChirpCreated) == []


class TestListChirps:
    """Tests for listing."""

    def test_latest_first(self, chirp_service: ChirpService, alice, bob):
        now = datetime.utcnow()
        first = chirp_service.create_chirp(alice.id, "first", created_at=now - timedelta(minutes=2))
        second = chirp_service.create_chirp(bob.id, "second", created_at=now - timedelta(minutes=1))
        third = chirp_service.create_chirp(alice.id, "third", created_at=now)

        assert [c.id for c in chirp_service.list_chirps()] == [third.id, second.id, first.id]
        assert [c.id for c in chirp_service.list_chirps(limit=1)] == [third.id]

    def test_get_missing_chirp(self, chirp_service: ChirpService):
        with pytest.raises(ChirpNotFoundError):
            chirp_service.get_chirp(999)


class TestEditAndDelete:
    """Tests for the authorship rule."""

    def test_author_can_update(self, chirp_service: ChirpService, alice):
        chirp = chirp_service.create_chirp(alice.id, "Draft")

        updated = chirp_service.update_chirp(alice.id, chirp.id, "Final")

        assert updated.message == "Final"

    def test_update_does_not_publish(self, event_bus, chirp_service: ChirpService, alice):
        chirp = chirp_service.create_chirp(alice.id, "Draft")
        event_bus.clear_event_log()

        chirp_service.update_chirp(alice.id, chirp.id, "Final")

        assert event_bus.get_event_log() == []

    def test_other_user_cannot_update(self, chirp_service: ChirpService, alice, bob):
        chirp = chirp_service.create_chirp(alice.id, "Mine")

        with pytest.raises(NotChirpAuthorError):
            chirp_service.update_chirp(bob.id, chirp.id, "Yours now")

        assert chirp_service.get_chirp(chirp.id).message == "Mine"

    def test_update_validates_message(self, chirp_service: ChirpService, alice):
        chirp = chirp_service.create_chirp(alice.id, "Valid")

        with pytest.raises(ValidationError):
            chirp_service.update_chirp(alice.id, chirp.id, "")

    def test_update_missing_chirp(self, chirp_service: ChirpService, alice):
        with pytest.raises(ChirpNotFoundError):
            chirp_service.update_chirp(alice.id, 999, "Nothing")

    def test_author_can_delete(self, chirp_service: ChirpService, alice):
        chirp = chirp_service.create_chirp(alice.id, "Regret")

        chirp_service.delete_chirp(alice.id, chirp.id)

        with pytest.raises(ChirpNotFoundError):
            chirp_service.get_chirp(chirp.id)

    def test_other_user_cannot_delete(self, chirp_service: ChirpService, alice, bob):
        chirp = chirp_service.create_chirp(alice.id, "Mine")

        with pytest.raises(NotChirpAuthorError):
            chirp_service.delete_chirp(bob.id, chirp.id)

    def test_delete_missing_chirp(self, chirp_service: ChirpService, alice):
        with pytest.raises(ChirpNotFoundError):
            chirp_service.delete_chirp(alice.id, 999)
