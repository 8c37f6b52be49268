import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_messaging
from app.consumers.outbox_processor import BatchResult
from app.jobs.scheduler import JobAlreadyRunning, OUTBOX_CLEANUP_JOB
from app.main import app
from app.models.inbox import InboxStatus
from app.models.outbox import OutboxStatus
from app.testing.testing_mocks import AsyncMockUtil

from conftest import NOW


@pytest.fixture
def messaging():
    messaging = MagicMock()
    messaging.outbox_store.list_by_status = AsyncMockUtil(return_value=[])
    messaging.outbox_store.get_by_id = AsyncMockUtil(return_value=None)
    messaging.outbox_store.count_by_status = AsyncMockUtil(return_value={"PENDING": 2, "PUBLISHED": 5, "DEAD": 1})
    messaging.inbox_store.list_by_status = AsyncMockUtil(return_value=[])
    messaging.scheduler.run_outbox_publish = AsyncMockUtil(return_value=BatchResult(published=2, failed=1))
    messaging.scheduler.run_cleanup = AsyncMockUtil(return_value={"outbox": 3, "inbox": 0})
    messaging.scheduler.trigger = AsyncMockUtil(return_value=3)
    messaging.scheduler.describe.return_value = []
    return messaging


@pytest.fixture
def client(messaging):
    app.dependency_overrides[get_messaging] = lambda: messaging
    yield TestClient(app)
    app.dependency_overrides.clear()


def dead_message():
    return SimpleNamespace(
        id=uuid.uuid4(),
        message_type="Ghost",
        content="{}",
        status=OutboxStatus.DEAD,
        occurred_on_utc=NOW,
        created_on_utc=NOW,
        processed_on_utc=None,
        error="Type Ghost is not registered.",
        attempts=0,
    )


class TestOutboxRoutes:
    def test_list_defaults_to_dead_messages(self, client, messaging):
        messaging.outbox_store.list_by_status.return_value = [dead_message()]

        response = client.get("/api/v1/outbox/messages")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["count"] == 1
        assert data["items"][0]["status"] == "DEAD"
        assert data["items"][0]["error"] == "Type Ghost is not registered."
        messaging.outbox_store.list_by_status.assert_awaited_once_with(OutboxStatus.DEAD, limit=50)

    def test_get_missing_message(self, client):
        response = client.get(f"/api/v1/outbox/messages/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "http_error"

    def test_stats(self, client):
        response = client.get("/api/v1/outbox/stats")

        assert response.status_code == 200
        assert response.json()["data"]["counts"]["PENDING"] == 2

    def test_invalid_status_filter(self, client):
        response = client.get("/api/v1/outbox/messages", params={"status": "LOST"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"


class TestInboxRoutes:
    def test_list_defaults_to_failed_messages(self, client, messaging):
        response = client.get("/api/v1/inbox/messages")

        assert response.status_code == 200
        assert response.json()["data"]["count"] == 0
        messaging.inbox_store.list_by_status.assert_awaited_once_with(InboxStatus.FAILED, limit=50)


class TestJobRoutes:
    def test_run_outbox_publish(self, client, messaging):
        response = client.post("/api/v1/jobs/outbox/publish", params={"max_batch": 25})

        assert response.status_code == 200
        assert response.json()["data"]["published"] == 2
        messaging.scheduler.run_outbox_publish.assert_awaited_once_with(25)

    def test_publish_already_running(self, client, messaging):
        messaging.scheduler.run_outbox_publish.side_effect = JobAlreadyRunning("busy")

        response = client.post("/api/v1/jobs/outbox/publish")

        assert response.status_code == 409

    def test_run_cleanup_with_retention_override(self, client, messaging):
        response = client.post("/api/v1/jobs/cleanup", json={"retention_days": 14})

        assert response.status_code == 200
        assert response.json()["data"]["deleted"] == {"outbox": 3, "inbox": 0}
        messaging.scheduler.run_cleanup.assert_awaited_once_with(14)

    def test_trigger_job(self, client, messaging):
        response = client.post(f"/api/v1/jobs/{OUTBOX_CLEANUP_JOB}/trigger")

        assert response.status_code == 200
        assert response.json()["data"] == {"job_id": OUTBOX_CLEANUP_JOB, "result": 3}

    def test_trigger_unknown_job(self, client, messaging):
        messaging.scheduler.trigger.side_effect = KeyError("messaging.nope")

        response = client.post("/api/v1/jobs/messaging.nope/trigger")

        assert response.status_code == 404
