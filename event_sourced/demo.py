"""
Demonstration scripts for the chirp notification pipeline.

These functions show the pipeline in action against an in-memory database,
an in-memory queue and the logging email channel.
"""

import logging

from event_sourced.app_context import AppContext, build_app_context
from event_sourced.job_queue import InMemoryJobQueue
from shared.channels import NotificationChannels
from shared.config import Settings

# Configure logging to see what's happening
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)


def _demo_context() -> AppContext:
    settings = Settings(database_url="sqlite:///:memory:", redis_url=None, sendgrid_api_key=None)
    return build_app_context(
        settings=settings,
        queue=InMemoryJobQueue(),
        channels=NotificationChannels(),
        keep_event_log=True,
    )


def run_new_chirp_demo():
    """
    Demonstrate the "New Chirp" fan-out.

    This shows:
    1. ChirpService stores a chirp and publishes ChirpCreated
    2. NotificationService enqueues a fan-out job (nothing is sent yet)
    3. A worker runs the fan-out: one job per user except the author
    4. The worker delivers each job as an email
    """
    print("\n" + "=" * 70)
    print("DEMO: New Chirp Notification Fan-out")
    print("=" * 70 + "\n")

    context = _demo_context()
    store = context.data_store

    alice = store.create_user("Alice Johnson", "alice@example.com")
    for name, email in [
        ("Bob Smith", "bob@example.com"),
        ("Carol White", "carol@example.com"),
        ("David Brown", "david@example.com"),
    ]:
        store.create_user(name, email)

    print("-" * 70)
    print("ACTION: Alice posts a chirp")
    print("-" * 70 + "\n")

    context.chirp_service.create_chirp(alice.id, "Hello from the demo!")
    print(f"\nJobs waiting after the request returned: {len(context.queue)}")

    worker = context.build_worker(worker_name="demo-worker")
    worker.run_until_empty()

    print("\nNotifications sent:")
    for msg in context.channels.get_all_sent_messages():
        print(f"  {msg}")

    context.close()
    return context.channels.get_all_sent_messages()


def run_deleted_recipient_demo():
    """
    Demonstrate that fan-out reads current state.

    A user deleted between the chirp being posted and the worker running is
    not notified.
    """
    print("\n" + "=" * 70)
    print("DEMO: Recipient Deleted Before Fan-out")
    print("=" * 70 + "\n")

    context = _demo_context()
    store = context.data_store

    alice = store.create_user("Alice Johnson", "alice@example.com")
    bob = store.create_user("Bob Smith", "bob@example.com")
    store.create_user("Carol White", "carol@example.com")

    context.chirp_service.create_chirp(alice.id, "Is anyone there?")

    print("ACTION: Bob deletes his account before the worker picks up the job\n")
    store.delete_user(bob.id)

    context.build_worker(worker_name="demo-worker").run_until_empty()

    print("\nNotifications sent:")
    for msg in context.channels.get_all_sent_messages():
        print(f"  {msg}")

    context.close()
    return context.channels.get_all_sent_messages()


if __name__ == "__main__":
    run_new_chirp_demo()
    run_deleted_recipient_demo()
