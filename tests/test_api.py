import json
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from resumescreen import api, config, db
from resumescreen.models import Screening
from resumescreen.notifications import NotificationChannel
from resumescreen.pipeline.ingestion_stage import IngestionStage
from resumescreen.pipeline.orchestrator import PROCESS_RESUME, PipelineOrchestrator
from resumescreen.pipeline.screening_stage import ScreeningStage

from conftest import FakeEmbedder, FakeExtractor, FakeJobStore, FakeRepository, FakeStorage


class ListingRepository(FakeRepository):
    async def list_screenings(self, job_id):
        return [s for s in self.screenings if s.jd_id == job_id]


@pytest.fixture()
def queued():
    return []


@pytest.fixture()
def repository():
    return ListingRepository()


@pytest.fixture()
def client(jd_j1, notifier, pipeline_store, queued, repository):
    jobs = FakeJobStore(jd_j1)
    orchestrator = PipelineOrchestrator(
        ingestion=IngestionStage(
            storage=FakeStorage(),
            jobs=jobs,
            extractor=FakeExtractor(),
            embedder=FakeEmbedder(),
            repository=repository,
        ),
        screening=ScreeningStage(jobs=jobs, embedder=FakeEmbedder(), repository=repository),
        store=pipeline_store,
        notifier=notifier,
        enqueue=lambda task, job_id: queued.append((task, job_id)),
    )
    api.app.dependency_overrides[api.get_orchestrator] = lambda: orchestrator
    api.app.dependency_overrides[api.get_job_descriptions] = lambda: jobs
    api.app.dependency_overrides[api.get_repository] = lambda: repository
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


class TestProcessJob:
    def test_accepted(self, client, queued):
        response = client.post("/jobs/j1/process")

        assert response.status_code == 202
        body = response.json()
        assert body["job_id"] == "j1"
        assert body["status"] == "queued"
        assert queued == [(PROCESS_RESUME, "j1")]

    def test_unknown_job_description(self, client, queued):
        response = client.post("/jobs/nope/process")

        assert response.status_code == 404
        assert queued == []

    def test_already_in_flight(self, client, queued):
        client.post("/jobs/j1/process")

        response = client.post("/jobs/j1/process")

        assert response.status_code == 409
        assert len(queued) == 1

    def test_force_takes_over_a_stuck_run(self, client, queued):
        client.post("/jobs/j1/process")

        response = client.post("/jobs/j1/process?force=true")

        assert response.status_code == 202
        assert response.json()["status"] == "queued"
        assert queued == [(PROCESS_RESUME, "j1"), (PROCESS_RESUME, "j1")]


class TestJobStatus:
    def test_status_after_submit(self, client):
        client.post("/jobs/j1/process")

        response = client.get("/jobs/j1/status")

        assert response.status_code == 200
        assert response.json()["status"] == "queued"

    def test_no_run_yet(self, client):
        assert client.get("/jobs/j1/status").status_code == 404


class TestScreenings:
    def test_lists_screenings(self, client, repository):
        repository.screenings = [
            Screening(id="s1", jd_id="j1", candidate_id="c1", rank=1),
            Screening(id="s2", jd_id="j1", candidate_id="c2", rank=2),
        ]

        response = client.get("/jobs/j1/screenings")

        assert response.status_code == 200
        body = response.json()
        assert body["job_id"] == "j1"
        assert [s["candidate_id"] for s in body["screenings"]] == ["c1", "c2"]

    def test_empty(self, client):
        assert client.get("/jobs/j1/screenings").json()["screenings"] == []


class TestHealth:
    def test_root(self, client):
        assert client.get("/").status_code == 200

    def test_degraded_when_redis_down(self, client, monkeypatch, tmp_path):
        class DownRedis:
            def ping(self):
                raise ConnectionError("connection refused")

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'health.db'}", poolclass=NullPool)
        monkeypatch.setattr(config, "get_redis", lambda: DownRedis())
        monkeypatch.setattr(db, "get_engine", lambda: engine)

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["redis"].startswith("unhealthy")
        assert body["database"] == "healthy"


class QueuedPubSub:
    """Hands out queued messages, then idles like a quiet channel."""

    def __init__(self, messages=()):
        self.messages = list(messages)
        self.subscribed = []
        self.closed = False

    def subscribe(self, channel):
        self.subscribed.append(channel)

    def get_message(self, timeout):
        if self.messages:
            return self.messages.pop(0)
        time.sleep(timeout)
        return None

    def close(self):
        self.closed = True


def wait_until(condition, seconds=5.0):
    deadline = time.monotonic() + seconds
    while not condition() and time.monotonic() < deadline:
        time.sleep(0.01)
    return condition()


class TestNotificationsSocket:
    @pytest.fixture()
    def pubsub(self, client, monkeypatch):
        pubsub = QueuedPubSub()
        redis = SimpleNamespace(pubsub=lambda **kwargs: pubsub)
        channel = NotificationChannel(channel="test-events", client_factory=lambda: redis)
        monkeypatch.setattr(config, "NOTIFICATION_POLL_SECONDS", 0.01)
        api.app.dependency_overrides[api.get_notifier] = lambda: channel
        return pubsub

    def test_relays_completion_events(self, client, pubsub):
        event = {"event": "screening:complete", "data": {"jobId": "j1"}}
        pubsub.messages.append({"type": "message", "data": json.dumps(event)})

        with client.websocket_connect("/ws/notifications") as ws:
            assert ws.receive_json() == event

        assert pubsub.subscribed == ["test-events"]

    def test_disconnect_closes_subscription(self, client, pubsub):
        with client.websocket_connect("/ws/notifications"):
            assert wait_until(lambda: pubsub.subscribed)

        assert wait_until(lambda: pubsub.closed)
