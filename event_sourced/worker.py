"""
Worker that drains the job queue.

A worker pops jobs, looks up the handler registered for the job's name and
runs it. Several workers (threads or processes) may drain the same queue;
jobs are independent, so one failing job never holds up the others.

Retry policy:
- TerminalJobError: logged and dropped
- RetriableJobError or any unexpected exception: re-enqueued with the attempt
  counter incremented, until max_attempts is reached, then dropped
- A job with no registered handler is dropped
"""

import logging
import signal
import time
from dataclasses import dataclass
from typing import Any, Callable

from event_sourced.job_queue import Job, JobQueue, RetriableJobError, TerminalJobError

logger = logging.getLogger("worker")


JobHandler = Callable[[dict[str, Any]], Any]


@dataclass
class WorkerStats:
    """Counters kept by a worker for logging and tests."""
    processed: int = 0
    retried: int = 0
    failed: int = 0


class Worker:
    """
    Delivery worker.

    Example:
        worker = Worker(queue, worker_name="mailer-1")
        worker.register("send_chirp_notification", handler)
        worker.run_forever()
    """

    def __init__(
        self,
        queue: JobQueue,
        worker_name: str = "worker",
        max_attempts: int = 3,
        poll_timeout: float = 5.0,
    ):
        self.queue = queue
        self.worker_name = worker_name
        self.max_attempts = max_attempts
        self.poll_timeout = poll_timeout
        self.running = False
        self.stats = WorkerStats()
        self._handlers: dict[str, JobHandler] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        """Register the handler for jobs called name."""
        if name in self._handlers:
            raise ValueError(f"Handler already registered for job '{name}'")
        self._handlers[name] = handler

    @property
    def job_names(self) -> list[str]:
        return sorted(self._handlers)

    def process(self, job: Job) -> bool:
        """
        Run one job and apply the retry policy.

        Returns:
            True if the job succeeded, False otherwise
        """
        handler = self._handlers.get(job.name)
        if handler is None:
            self.stats.failed += 1
            logger.error(f"[{self.worker_name}] No handler for {job}; dropping it")
            return False

        try:
            handler(job.payload)
        except TerminalJobError as e:
            self.stats.failed += 1
            logger.warning(f"[{self.worker_name}] {job} failed permanently: {e}")
            return False
        except Exception as e:
            self._retry_or_drop(job, e)
            return False

        self.stats.processed += 1
        logger.debug(f"[{self.worker_name}] Completed {job}")
        return True

    def _retry_or_drop(self, job: Job, error: Exception) -> None:
        retry = job.next_attempt()
        expected = isinstance(error, RetriableJobError)
        if retry.attempts >= self.max_attempts:
            self.stats.failed += 1
            logger.error(
                f"[{self.worker_name}] {job} failed after {retry.attempts} attempts; dropping it: {error}",
                exc_info=not expected,
            )
            return

        self.stats.retried += 1
        logger.warning(
            f"[{self.worker_name}] {job} failed, re-enqueuing (attempt {retry.attempts}/{self.max_attempts}): {error}",
            exc_info=not expected,
        )
        self.queue.enqueue(retry)

    def run_once(self, timeout: float = 0) -> bool:
        """
        Process at most one job.

        Returns:
            True if a job was taken from the queue
        """
        job = self.queue.dequeue(timeout=timeout)
        if job is None:
            return False
        self.process(job)
        return True

    def run_until_empty(self, limit: int = 100_000) -> int:
        """
        Process jobs until the queue is empty, including jobs enqueued along the way.

        Args:
            limit: Safety cap on the number of jobs taken

        Returns:
            Number of jobs taken from the queue
        """
        taken = 0
        while taken < limit and self.run_once():
            taken += 1
        return taken

    def run_forever(self) -> None:
        """Main worker loop; stops on SIGTERM/SIGINT or stop()."""
        self._setup_signal_handlers()
        self.running = True
        logger.info(f"[{self.worker_name}] Started, handling {', '.join(self.job_names) or 'nothing'}")

        while self.running:
            try:
                self.run_once(timeout=self.poll_timeout)
            except Exception:
                # Queue backend errors (e.g. Redis restarting); keep polling
                logger.exception(f"[{self.worker_name}] Worker loop error")
                time.sleep(1)

        logger.info(
            f"[{self.worker_name}] Shutting down. "
            f"Processed: {self.stats.processed}, Retried: {self.stats.retried}, Failed: {self.stats.failed}"
        )

    def stop(self) -> None:
        self.running = False

    def _setup_signal_handlers(self) -> None:
        """Graceful shutdown on SIGTERM/SIGINT (main thread only)."""
        def shutdown_handler(signum, frame):
            logger.info(f"[{self.worker_name}] Received signal {signum}, shutting down...")
            self.running = False

        try:
            signal.signal(signal.SIGTERM, shutdown_handler)
            signal.signal(signal.SIGINT, shutdown_handler)
        except ValueError:
            logger.debug(f"[{self.worker_name}] Not in main thread; signal handlers not installed")
