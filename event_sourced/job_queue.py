"""
Work queue for deferred jobs.

Jobs are small JSON documents naming a handler and carrying only identifiers,
so any worker can pick one up minutes later and rebuild what it needs from
the database.

Two queue implementations share one interface:
- InMemoryJobQueue: a thread-safe deque; for tests, demos and single-process runs
- RedisJobQueue: LPUSH/BRPOP on a Redis list; durable and shared by many workers

Both store the serialized JSON, never the Python object, so anything that
works in-memory also survives the trip through Redis.

Failure taxonomy (raised by job handlers, interpreted by the worker):
- TerminalJobError: the job can never succeed (e.g. the chirp was deleted)
- RetriableJobError: the job may succeed later (e.g. email provider down)
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Optional
from uuid import uuid4

import redis
from pydantic import BaseModel, Field

logger = logging.getLogger("job_queue")


class JobError(Exception):
    """Base class for job failures."""


class RetriableJobError(JobError):
    """The job failed but running it again may succeed."""


class TerminalJobError(JobError):
    """The job failed and running it again cannot succeed."""


class Job(BaseModel):
    """
    A unit of deferred work.

    Attributes:
        job_id: Unique identifier, kept across retries
        name: Handler name the worker dispatches on
        payload: JSON-serializable arguments (identifiers only)
        attempts: How many times the job has already been tried
    """
    name: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    job_id: str = Field(default_factory=lambda: str(uuid4()))
    attempts: int = Field(default=0, ge=0)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "Job":
        return cls.model_validate_json(raw)

    def next_attempt(self) -> "Job":
        """Copy of this job with the attempt counter incremented."""
        return self.model_copy(update={"attempts": self.attempts + 1})

    def __str__(self) -> str:
        return f"Job({self.name}, id={self.job_id[:8]}, attempts={self.attempts})"


class JobQueue(ABC):
    """Interface shared by the queue implementations."""

    @abstractmethod
    def enqueue(self, job: Job) -> None:
        ...

    @abstractmethod
    def dequeue(self, timeout: float = 0) -> Optional[Job]:
        """Pop the oldest job; wait up to timeout seconds. None when empty."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryJobQueue(JobQueue):
    """
    FIFO queue held in process memory.

    Not durable: pending jobs are lost when the process exits. Use
    RedisJobQueue when workers run in separate processes.
    """

    def __init__(self):
        self._items: deque[str] = deque()
        self._ready = threading.Condition()

    def enqueue(self, job: Job) -> None:
        with self._ready:
            self._items.append(job.to_json())
            self._ready.notify()
        logger.debug(f"Enqueued {job}")

    def dequeue(self, timeout: float = 0) -> Optional[Job]:
        with self._ready:
            if not self._items and timeout > 0:
                self._ready.wait_for(lambda: bool(self._items), timeout=timeout)
            if not self._items:
                return None
            raw = self._items.popleft()
        return Job.from_json(raw)

    def peek_all(self) -> list[Job]:
        """Pending jobs, oldest first, without removing them (for tests)."""
        with self._ready:
            return [Job.from_json(raw) for raw in self._items]

    def clear(self) -> None:
        with self._ready:
            self._items.clear()

    def __len__(self) -> int:
        with self._ready:
            return len(self._items)


class RedisJobQueue(JobQueue):
    """
    Redis-backed job queue.

    Producers LPUSH onto the list and workers BRPOP from the other end, so
    jobs come out in FIFO order and each job is consumed by exactly one worker.
    """

    def __init__(self, client: "redis.Redis", queue_name: str = "queue:notifications"):
        self.client = client
        self.queue_name = queue_name

    @classmethod
    def from_url(cls, redis_url: str, queue_name: str = "queue:notifications") -> "RedisJobQueue":
        """Connect to Redis at redis_url."""
        return cls(redis.Redis.from_url(redis_url, decode_responses=True), queue_name)

    def enqueue(self, job: Job) -> None:
        self.client.lpush(self.queue_name, job.to_json())
        logger.debug(f"Enqueued {job} on {self.queue_name}")

    def dequeue(self, timeout: float = 0) -> Optional[Job]:
        """
        Pop the oldest valid job.

        Malformed entries are logged and discarded, and reading continues, so
        None always means the list is empty.
        """
        while True:
            raw = self._pop(timeout)
            if raw is None:
                return None
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            try:
                return Job.from_json(raw)
            except ValueError:
                logger.error(f"Discarding malformed job on {self.queue_name}: {raw!r}")

    def _pop(self, timeout: float):
        if timeout > 0:
            result = self.client.brpop([self.queue_name], timeout=timeout)
            return result[1] if result else None
        return self.client.rpop(self.queue_name)

    def __len__(self) -> int:
        return int(self.client.llen(self.queue_name))

    def close(self) -> None:
        self.client.close()


def build_job_queue(redis_url: Optional[str], queue_name: str) -> JobQueue:
    """Redis queue when a URL is configured, in-memory queue otherwise."""
    if redis_url:
        logger.info(f"Using Redis job queue '{queue_name}'")
        return RedisJobQueue.from_url(redis_url, queue_name)
    logger.info("No Redis URL configured; using in-memory job queue")
    return InMemoryJobQueue()

