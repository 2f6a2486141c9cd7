"""
Shared pytest fixtures for the Chirper tests.

Every test gets its own in-memory SQLite database, in-memory job queue, event
bus and mock email channel, so tests never interfere with each other.
"""

import pytest

from event_sourced.event_bus import EventBus
from event_sourced.job_queue import InMemoryJobQueue
from event_sourced.notification_service import NotificationService
from event_sourced.services.chirps import ChirpService
from event_sourced.worker import Worker
from shared.channels import EmailChannel, NotificationChannels
from shared.data_store import DataStore
from shared.database import create_db_engine, create_session_factory, initialize_database
from shared.models import User


CHIRPS_URL = "http://chirper.test/chirps"


@pytest.fixture
def engine():
    """Fresh in-memory database with the schema created."""
    engine = create_db_engine("sqlite:///:memory:")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def data_store(engine) -> DataStore:
    return DataStore(create_session_factory(engine))


@pytest.fixture
def event_bus() -> EventBus:
    """Event bus that records published events."""
    return EventBus(keep_log=True)


@pytest.fixture
def queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def email_channel() -> EmailChannel:
    """Fresh EmailChannel for each test."""
    return EmailChannel(fail_rate=0.0)


@pytest.fixture
def channels(email_channel) -> NotificationChannels:
    """Fresh NotificationChannels facade for each test."""
    return NotificationChannels(email=email_channel)


@pytest.fixture
def chirps_url() -> str:
    """Link target used in rendered emails."""
    return CHIRPS_URL


@pytest.fixture
def notification_service(event_bus, data_store, queue, channels, chirps_url):
    """Started notification service with a small page size."""
    service = NotificationService(
        event_bus=event_bus,
        data_store=data_store,
        queue=queue,
        channels=channels,
        chirps_url=chirps_url,
        page_size=2,
    )
    service.start()
    yield service
    service.stop()


@pytest.fixture
def chirp_service(event_bus, data_store) -> ChirpService:
    return ChirpService(event_bus, data_store)


@pytest.fixture
def worker(queue, notification_service) -> Worker:
    """Worker with the notification jobs registered."""
    worker = Worker(queue, worker_name="test-worker", max_attempts=3)
    notification_service.register_jobs(worker)
    return worker


# =============================================================================
# User Fixtures
# =============================================================================

@pytest.fixture
def alice(data_store) -> User:
    return data_store.create_user("Alice Johnson", "alice@example.com")


@pytest.fixture
def bob(data_store) -> User:
    return data_store.create_user("Bob Smith", "bob@example.com")


@pytest.fixture
def carol(data_store) -> User:
    return data_store.create_user("Carol White", "carol@example.com")


@pytest.fixture
def david(data_store) -> User:
    return data_store.create_user("David Brown", "david@example.com")


@pytest.fixture
def john_doe(data_store) -> User:
    return data_store.create_user("John Doe", "john.doe@example.com")
