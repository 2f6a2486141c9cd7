"""
Process wiring.

Everything is built once at process start and passed explicitly: the API, the
worker command and the demo all call build_app_context() and share nothing
through module globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from event_sourced.event_bus import EventBus
from event_sourced.job_queue import JobQueue, build_job_queue
from event_sourced.notification_service import NotificationService
from event_sourced.services.chirps import ChirpService
from event_sourced.worker import Worker
from shared.channels import EmailChannel, NotificationChannels, SendGridEmailChannel
from shared.config import Settings, get_settings
from shared.data_store import DataStore
from shared.database import create_db_engine, create_session_factory, initialize_database

logger = logging.getLogger("app_context")


@dataclass
class AppContext:
    """All long-lived components of one Chirper process."""
    settings: Settings
    engine: Engine
    data_store: DataStore
    event_bus: EventBus
    queue: JobQueue
    channels: NotificationChannels
    chirp_service: ChirpService
    notification_service: NotificationService

    def build_worker(self, worker_name: str = "worker", poll_timeout: float = 5.0) -> Worker:
        """A worker with the notification job handlers registered."""
        worker = Worker(
            self.queue,
            worker_name=worker_name,
            max_attempts=self.settings.max_job_attempts,
            poll_timeout=poll_timeout,
        )
        self.notification_service.register_jobs(worker)
        return worker

    def close(self) -> None:
        self.notification_service.stop()
        close_queue = getattr(self.queue, "close", None)
        if close_queue is not None:
            close_queue()
        self.engine.dispose()


def build_channels(settings: Settings) -> NotificationChannels:
    """SendGrid when an API key is configured, the logging mock otherwise."""
    if settings.sendgrid_api_key:
        return NotificationChannels(
            email=SendGridEmailChannel(settings.sendgrid_api_key, settings.mail_from)
        )
    logger.info("No SendGrid API key configured; emails are logged, not sent")
    return NotificationChannels(email=EmailChannel(from_addr=settings.mail_from))


def build_app_context(
    settings: Optional[Settings] = None,
    queue: Optional[JobQueue] = None,
    channels: Optional[NotificationChannels] = None,
    keep_event_log: bool = False,
) -> AppContext:
    """
    Build and start every component.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        queue: Override the configured job queue
        channels: Override the configured delivery channels
        keep_event_log: Record published events on the bus
    """
    settings = settings or get_settings()

    engine = create_db_engine(settings.database_url)
    initialize_database(engine)
    data_store = DataStore(create_session_factory(engine))

    event_bus = EventBus(keep_log=keep_event_log)
    if queue is None:
        queue = build_job_queue(settings.redis_url, settings.queue_name)
    if channels is None:
        channels = build_channels(settings)

    notification_service = NotificationService(
        event_bus=event_bus,
        data_store=data_store,
        queue=queue,
        channels=channels,
        chirps_url=settings.chirps_url,
        page_size=settings.recipient_page_size,
    )
    notification_service.start()

    return AppContext(
        settings=settings,
        engine=engine,
        data_store=data_store,
        event_bus=event_bus,
        queue=queue,
        channels=channels,
        chirp_service=ChirpService(event_bus, data_store),
        notification_service=notification_service,
    )
