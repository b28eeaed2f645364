"""
Tests for the FastAPI run triggers.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app, get_services
from normalization.dedup import DedupCache
from orchestration.runner import Services
from storage import InMemoryBudgetStore, InMemoryJobStore, InMemoryUserStore


@pytest.fixture
def services(settings, clock, make_job, make_user):
    jobs = InMemoryJobStore()
    jobs.upsert_jobs([make_job(), make_job()])
    return Services(
        settings=settings,
        clock=clock,
        jobs=jobs,
        users=InMemoryUserStore([make_user()]),
        budget=InMemoryBudgetStore(),
        dedup=DedupCache(clock),
    )


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_deliver_returns_outcomes(self, client, services):
        response = client.post("/runs/deliver")

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["status"] == "completed"
        assert body["outcomes"][0]["status"] == "delivered"
        assert body["outcomes"][0]["delivered"] == 2
        assert services.users.get("user@example.com").delivery_count == 1

    def test_ingest_without_sources_completes(self, client):
        response = client.post("/runs/ingest")

        assert response.status_code == 200
        assert response.json()["metrics"]["num_fetch_tasks"] == 0

    def test_ingest_with_bad_config_is_422(self, client, settings):
        with open(settings.sources_path, "w") as f:
            f.write("sources:\n  - source_id: broken\n    source_type: adzuna\n")

        response = client.post("/runs/ingest")

        assert response.status_code == 422
        assert "Invalid" in response.json()["detail"]["error"]
