"""
Tests for the HTTP API.

The app is built around a test context (in-memory database, queue and mock
email channel) with the background worker disabled, so each test drains the
queue explicitly.
"""

import time

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from event_sourced.app_context import build_app_context
from event_sourced.job_queue import InMemoryJobQueue
from shared.channels import NotificationChannels
from shared.config import Settings


@pytest.fixture
def context():
    settings = Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        app_url="http://chirper.test",
        redis_url=None,
        sendgrid_api_key=None,
    )
    context = build_app_context(settings, queue=InMemoryJobQueue(), channels=NotificationChannels())
    yield context
    context.close()


@pytest.fixture
def client(context):
    with TestClient(create_app(context, run_worker=False)) as client:
        yield client


@pytest.fixture
def users(client):
    """Register four users through the API."""
    created = {}
    for key, name in [("a", "Alice"), ("b", "Bob"), ("c", "Carol"), ("d", "David")]:
        response = client.post("/users", json={"name": name, "email": f"{key}@example.com"})
        assert response.status_code == 201
        created[key] = response.json()
    return created


def auth(user: dict) -> dict:
    return {"X-User-Id": str(user["id"])}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "chirper", "pending_jobs": 0}


class TestUsersEndpoint:
    """Tests for registration."""

    def test_duplicate_email_conflict(self, client, users):
        response = client.post("/users", json={"name": "Alice Again", "email": "a@example.com"})

        assert response.status_code == 409

    def test_invalid_email(self, client):
        response = client.post("/users", json={"name": "Nobody", "email": "not-an-email"})

        assert response.status_code == 422


class TestChirpsEndpoints:
    """Tests for /chirps."""

    def test_requires_authentication(self, client, users):
        assert client.get("/chirps").status_code == 401
        assert client.post("/chirps", json={"message": "Hi"}).status_code == 401
        assert client.get("/chirps", headers={"X-User-Id": "999"}).status_code == 401

    def test_create_chirp(self, client, users):
        response = client.post("/chirps", json={"message": "Hello!"}, headers=auth(users["a"]))

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Hello!"
        assert body["author_id"] == users["a"]["id"]
        assert body["author_name"] == "Alice"

    @pytest.mark.parametrize("message", ["", "   ", "x" * 256])
    def test_create_rejects_invalid_message(self, client, context, users, message):
        response = client.post("/chirps", json={"message": message}, headers=auth(users["a"]))

        assert response.status_code == 422
        assert len(context.queue) == 0

    def test_list_chirps_latest_first(self, client, users):
        client.post("/chirps", json={"message": "one"}, headers=auth(users["a"]))
        client.post("/chirps", json={"message": "two"}, headers=auth(users["b"]))

        response = client.get("/chirps", headers=auth(users["c"]))

        assert response.status_code == 200
        assert [c["message"] for c in response.json()] == ["two", "one"]

    def test_update_own_chirp(self, client, users):
        chirp = client.post("/chirps", json={"message": "Draft"}, headers=auth(users["a"])).json()

        response = client.patch(f"/chirps/{chirp['id']}", json={"message": "Final"}, headers=auth(users["a"]))

        assert response.status_code == 200
        assert response.json()["message"] == "Final"

    def test_update_someone_elses_chirp(self, client, users):
        chirp = client.post("/chirps", json={"message": "Mine"}, headers=auth(users["a"])).json()

        response = client.patch(f"/chirps/{chirp['id']}", json={"message": "Ours"}, headers=auth(users["b"]))

        assert response.status_code == 403

    def test_update_missing_chirp(self, client, users):
        response = client.patch("/chirps/999", json={"message": "?"}, headers=auth(users["a"]))

        assert response.status_code == 404

    def test_delete_chirp(self, client, users):
        chirp = client.post("/chirps", json={"message": "Bye"}, headers=auth(users["a"])).json()

        assert client.delete(f"/chirps/{chirp['id']}", headers=auth(users["b"])).status_code == 403
        assert client.delete(f"/chirps/{chirp['id']}", headers=auth(users["a"])).status_code == 204
        assert client.delete(f"/chirps/{chirp['id']}", headers=auth(users["a"])).status_code == 404


class TestChirpNotifications:
    """Tests for the notification side effect of POST /chirps."""

    def test_post_enqueues_and_returns_before_sending(self, client, context, users):
        response = client.post("/chirps", json={"message": "Hello"}, headers=auth(users["a"]))

        assert response.status_code == 201
        assert len(context.queue) == 1
        assert context.channels.get_total_sent_count() == 0

    def test_worker_emails_everyone_but_the_author(self, client, context, users):
        client.post("/chirps", json={"message": "Hello, world!"}, headers=auth(users["a"]))

        context.build_worker(worker_name="test").run_until_empty()

        sent = context.channels.get_all_sent_messages()
        assert sorted(m.recipient for m in sent) == ["b@example.com", "c@example.com", "d@example.com"]
        assert all(m.subject == "New Chirp from Alice" for m in sent)
        assert all("Go to Chirper: http://chirper.test/chirps" in m.body for m in sent)


class TestInProcessWorker:
    """Tests for the worker thread run by the app itself."""

    def test_in_memory_queue_drained_in_background(self, context):
        with TestClient(create_app(context, run_worker=True)) as client:
            alice = client.post("/users", json={"name": "Alice", "email": "a@example.com"}).json()
            client.post("/users", json={"name": "Bob", "email": "b@example.com"})

            client.post("/chirps", json={"message": "Background"}, headers=auth(alice))

            for _ in range(100):
                if context.channels.get_total_sent_count():
                    break
                time.sleep(0.05)

        sent = context.channels.get_all_sent_messages()
        assert [m.recipient for m in sent] == ["b@example.com"]
