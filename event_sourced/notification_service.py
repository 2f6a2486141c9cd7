"""
Notification service: fans a new chirp out to every other user by email.

The pipeline has three steps, each running at a different time:

1. ChirpCreated handler (in the request, synchronous)
   Enqueues one `fan_out_chirp` job. Nothing slow happens here.

2. `fan_out_chirp` job (on a worker)
   Reloads the chirp, streams "all users except the author" page by page and
   enqueues one `send_chirp_notification` job per recipient.

3. `send_chirp_notification` job (on a worker)
   Reloads chirp and recipient, renders the email and sends it.

Design decisions:
- Jobs carry ids only; state is always re-read from the store, so a job that
  runs late sees deletions that happened in the meantime
- Rendering is pure given (chirp, recipient) and happens right before sending;
  running a job twice at worst sends a second email, never corrupts anything
- Missing chirp/recipient is terminal; a failed send or an unreachable store
  is retriable, and the worker decides whether to retry
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from event_sourced.event_bus import EventBus
from event_sourced.events import ChirpCreated
from event_sourced.job_queue import Job, JobQueue, RetriableJobError, TerminalJobError
from event_sourced.worker import Worker
from shared.channels import NotificationChannels
from shared.data_store import DEFAULT_PAGE_SIZE, DataStore
from shared.templates import EmailMessage, NewChirpNotification

logger = logging.getLogger("notification_service")


FAN_OUT_JOB = "fan_out_chirp"
SEND_JOB = "send_chirp_notification"


def fan_out_job(chirp_id: int) -> Job:
    """Job that enumerates recipients for a chirp."""
    return Job(name=FAN_OUT_JOB, payload={"chirp_id": chirp_id})


def send_notification_job(chirp_id: int, recipient_id: int) -> Job:
    """Job that emails one recipient about one chirp."""
    return Job(name=SEND_JOB, payload={"chirp_id": chirp_id, "recipient_id": recipient_id})


class NotificationService:
    """
    Event-driven chirp notification service.

    Example:
        service = NotificationService(event_bus, data_store, queue, channels,
                                      chirps_url="https://chirper.test/chirps")
        service.start()
        service.register_jobs(worker)

        # A ChirpCreated event now enqueues a fan-out job, and the worker
        # turns it into one email per recipient.
    """

    def __init__(
        self,
        event_bus: EventBus,
        data_store: DataStore,
        queue: JobQueue,
        channels: Optional[NotificationChannels] = None,
        chirps_url: str = "http://localhost:8000/chirps",
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize the notification service.

        Args:
            event_bus: Event bus to subscribe to
            data_store: Store the jobs read chirps and users from
            queue: Queue jobs are enqueued on
            channels: Delivery channels (defaults to the mock email channel)
            chirps_url: Fixed link target for the email call to action
            page_size: Users fetched per query during fan-out
        """
        self.event_bus = event_bus
        self.data_store = data_store
        self.queue = queue
        self.channels = channels if channels is not None else NotificationChannels()
        self.chirps_url = chirps_url
        self.page_size = page_size

        self._started = False

    def start(self) -> None:
        """Subscribe to ChirpCreated."""
        if self._started:
            logger.warning("NotificationService already started")
            return

        self.event_bus.subscribe(ChirpCreated, self._handle_chirp_created)
        self._started = True
        logger.info("NotificationService started - subscribed to ChirpCreated")

    def stop(self) -> None:
        """Unsubscribe from ChirpCreated."""
        if not self._started:
            return

        self.event_bus.unsubscribe(ChirpCreated, self._handle_chirp_created)
        self._started = False
        logger.info("NotificationService stopped")

    def register_jobs(self, worker: Worker) -> None:
        """Register this service's job handlers on a worker."""
        worker.register(FAN_OUT_JOB, self._run_fan_out_job)
        worker.register(SEND_JOB, self._run_send_job)

    # =========================================================================
    # Event Handlers
    # =========================================================================

    def _handle_chirp_created(self, event: ChirpCreated) -> None:
        """Defer the fan-out; never send from the request path."""
        logger.info(f"Handling ChirpCreated: chirp={event.chirp_id}, author={event.author_id}")
        self.queue.enqueue(fan_out_job(event.chirp_id))

    # =========================================================================
    # Fan-out
    # =========================================================================

    def fan_out(self, chirp_id: int) -> int:
        """
        Enqueue one notification job per user other than the chirp's author.

        The chirp is read back from the store, and the recipients are streamed
        page by page, so this is safe to run long after the chirp was created
        and safe to run again.

        Returns:
            Number of notification jobs enqueued (0 if the chirp no longer exists)
        """
        chirp = self.data_store.get_chirp(chirp_id)
        if chirp is None:
            logger.warning(f"Chirp {chirp_id} no longer exists; nothing to fan out")
            return 0

        enqueued = 0
        for recipient in self.data_store.iter_users_except(chirp.author_id, page_size=self.page_size):
            self.queue.enqueue(send_notification_job(chirp.id, recipient.id))
            enqueued += 1

        logger.info(f"Fan-out for chirp {chirp_id} complete: {enqueued} notifications enqueued")
        return enqueued

    def _run_fan_out_job(self, payload: dict) -> None:
        try:
            self.fan_out(int(payload["chirp_id"]))
        except SQLAlchemyError as e:
            raise RetriableJobError(f"Record store unavailable during fan-out: {e}") from e

    # =========================================================================
    # Rendering & Delivery
    # =========================================================================

    def build_notification(self, chirp_id: int, recipient_id: int) -> NewChirpNotification:
        """
        Load the chirp and the recipient.

        Raises:
            TerminalJobError: If either no longer exists
        """
        chirp = self.data_store.get_chirp(chirp_id)
        if chirp is None:
            raise TerminalJobError(f"Chirp not found: {chirp_id}")

        recipient = self.data_store.get_user(recipient_id)
        if recipient is None:
            raise TerminalJobError(f"Recipient not found: {recipient_id}")

        return NewChirpNotification(chirp=chirp, recipient=recipient)

    def render(self, chirp_id: int, recipient_id: int) -> EmailMessage:
        """Render the email for one recipient without sending it."""
        return self.build_notification(chirp_id, recipient_id).to_mail(self.chirps_url)

    def deliver(self, chirp_id: int, recipient_id: int) -> None:
        """
        Render and send the notification on each of its channels.

        Raises:
            TerminalJobError: If the chirp or recipient is gone
            RetriableJobError: If a channel reported a failed send
        """
        notification = self.build_notification(chirp_id, recipient_id)
        mail = notification.to_mail(self.chirps_url)

        for channel in notification.via():
            result = self.channels.send(
                channel,
                notification.recipient.email,
                mail.subject,
                mail.render_text(),
                mail.render_html(),
            )
            if not result.success:
                raise RetriableJobError(
                    f"Sending {channel.value} to user {recipient_id} failed: {result.error}"
                )
            logger.info(f"Sent NEW_CHIRP notification via {channel.value} to user {recipient_id}")

    def _run_send_job(self, payload: dict) -> None:
        try:
            self.deliver(int(payload["chirp_id"]), int(payload["recipient_id"]))
        except SQLAlchemyError as e:
            raise RetriableJobError(f"Record store unavailable during delivery: {e}") from e
