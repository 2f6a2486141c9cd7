"""
Event-driven side of Chirper.

- Services publish events when things happen in their domain
- The notification service subscribes to events and defers work to a queue
- Workers drain the queue and deliver notifications
"""

from event_sourced.event_bus import Event, EventBus
from event_sourced.events import ChirpCreated
from event_sourced.job_queue import InMemoryJobQueue, Job, JobQueue, RedisJobQueue
from event_sourced.notification_service import NotificationService
from event_sourced.services.chirps import ChirpService
from event_sourced.worker import Worker

__all__ = [
    "Event",
    "EventBus",
    "ChirpCreated",
    "Job",
    "JobQueue",
    "InMemoryJobQueue",
    "RedisJobQueue",
    "NotificationService",
    "ChirpService",
    "Worker",
]
