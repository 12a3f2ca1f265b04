"""Tests for the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from eventhub.api.server import AppContext, create_app
from eventhub.models.cache import MediaCacheConfig
from eventhub.models.config import EventHubConfig
from eventhub.models.jobs import JobStatus


@pytest.fixture
def config():
    return EventHubConfig(media_cache=MediaCacheConfig(max_cache_size_mb=10))


@pytest.fixture
def context(config):
    return AppContext.from_config(config)


@pytest.fixture
def client(context):
    return TestClient(create_app(context))


class TestHealthEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert len(data["checks"]) == 3

    def test_health_degraded_still_200(self, client, context):
        for _ in range(context.config.jobs.active_jobs_warning + 1):
            context.tracker.create_job("email_notification")

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_ready(self, client):
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_live(self, client):
        assert client.get("/live").json()["alive"] is True

    def test_metrics(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "eventhub_media_cache_operations_total" in response.text

    def test_root(self, client):
        assert client.get("/").json()["endpoints"]["jobs"] == "/jobs"


class TestJobEndpoints:
    def test_active_jobs(self, client, context):
        job = context.tracker.create_job("email_notification")

        response = client.get("/jobs")

        assert response.status_code == 200
        assert [j["id"] for j in response.json()] == [job.id]
        assert response.json()[0]["status"] == "pending"

    def test_history(self, client, context):
        ids = []
        for i in range(3):
            job = context.tracker.create_job(f"job{i}")
            context.tracker.complete_job(job.id, JobStatus.PARTIAL)
            ids.append(job.id)

        response = client.get("/jobs/history", params={"limit": 2})

        assert response.status_code == 200
        assert [j["id"] for j in response.json()] == [ids[2], ids[1]]
        assert response.json()[0]["status"] == "partial"

    def test_history_limit_validated(self, client):
        assert client.get("/jobs/history", params={"limit": 0}).status_code == 422

    def test_get_job(self, client, context):
        job = context.tracker.create_job("bulk_notification", {"initiator_id": "u1"})

        response = client.get(f"/jobs/{job.id}")

        assert response.status_code == 200
        assert response.json()["metadata"] == {"initiator_id": "u1"}

    def test_get_unknown_job(self, client):
        assert client.get("/jobs/missing").status_code == 404


class TestCacheEndpoints:
    def test_cache_stats(self, client, context):
        context.cache.put("a.jpg", b"data")
        context.cache.get("a.jpg")

        data = client.get("/cache/stats").json()

        assert data["item_count"] == 1
        assert data["hits"] == 1
        assert data["hit_rate"] == 100.0
        assert data["max_size"] == "10.00 MB"

    def test_cached_media_without_loader(self, client, context):
        context.cache.put("event42/cover.jpg", b"jpeg")

        response = client.get("/media/image/event42/cover.jpg")

        assert response.status_code == 200
        assert response.content == b"jpeg"
        assert response.headers["etag"] == context.cache.get_etag("event42/cover.jpg")
        assert response.headers["x-cache"] == "HIT"
        assert response.headers["content-type"] == "image/jpeg"

    def test_uncached_media_without_loader(self, client):
        assert client.get("/media/image/missing.jpg").status_code == 404

    def test_unknown_category(self, client):
        assert client.get("/media/audio/a.mp3").status_code == 422

    def test_not_modified(self, client, context):
        context.cache.put("a.jpg", b"jpeg")
        etag = context.cache.get_etag("a.jpg")

        response = client.get("/media/image/a.jpg", headers={"If-None-Match": etag})

        assert response.status_code == 304
        assert response.content == b""
        assert response.headers["etag"] == etag


class TestMediaLoader:
    @pytest.fixture
    def loads(self):
        return []

    @pytest.fixture
    def loader_client(self, config, loads):
        async def loader(name):
            loads.append(name)
            if name == "gone.jpg":
                raise FileNotFoundError(name)
            return b"from-storage"

        context = AppContext.from_config(config, media_loader=loader)
        return TestClient(create_app(context))

    def test_loader_then_cache(self, loader_client, loads):
        first = loader_client.get("/media/video/clip.mp4")
        second = loader_client.get("/media/video/clip.mp4")

        assert first.status_code == 200
        assert first.headers["x-cache"] == "MISS"
        assert first.headers["vary"] == "Accept-Encoding, Range"
        assert second.headers["x-cache"] == "HIT"
        assert loads == ["clip.mp4"]

    def test_loader_not_found(self, loader_client):
        assert loader_client.get("/media/image/gone.jpg").status_code == 404


class TestLifespan:
    def test_scheduler_started_and_stopped(self, config):
        context = AppContext.from_config(config, with_scheduler=True)
        job_ids = {job["id"] for job in context.scheduler.get_jobs()}
        assert job_ids == {"media_cache_health", "job_history_report"}

        with TestClient(create_app(context)) as client:
            assert context.scheduler.is_running is True
            assert client.get("/live").status_code == 200

        assert context.scheduler.is_running is False
