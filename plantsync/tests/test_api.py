"""API endpoint tests"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from plantsync.api.deps import get_adapters, get_config, get_db
from plantsync.core.config import Settings
from plantsync.core.errors import UpstreamUnavailable
from plantsync.main import app
from plantsync.services.registry_service import RegistryService
from plantsync.tests.conftest import FakeAdapter, provider_plant


def fake_adapters(config):
    return {
        "csi": FakeAdapter(
            config,
            "csi",
            plants=[
                provider_plant("csi", 10, "Fazenda Alfa", daily_energy=30.0),
                provider_plant("csi", 11, "Fazenda Alpha"),
            ],
            day_energy={10: 31.5},
        ),
        "phb": FakeAdapter(config, "phb", listing_error=UpstreamUnavailable("phb", "HTTP 401")),
    }


class TestAPI:
    """Test API endpoints"""

    @pytest.fixture
    def settings(self):
        return Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="dev", CRON_KEY="secret")

    @pytest.fixture
    def client(self, registry, session_factory, settings):
        """Create test client bound to the in-memory database"""

        def override_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_config] = lambda: settings
        app.dependency_overrides[get_adapters] = lambda: fake_adapters(settings)
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_daily_requires_key(self, client):
        response = client.get("/cron/daily")
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "unauthorized"}

    def test_daily_rejects_wrong_key(self, client):
        response = client.get("/cron/daily", params={"key": "nope"})
        assert response.status_code == 401

    def test_daily_summary_shape(self, client):
        response = client.get("/cron/daily", params={"key": "secret"})
        assert response.status_code == 200

        body = response.json()
        assert body["ok"] is True
        assert body["daySelector"] == "today"
        assert body["registryTotal"] == 3
        assert body["providers"]["csi"] == {"total": 2, "matched": 1, "saved": 1, "error": None}
        assert body["providers"]["phb"]["error"] == "phb: HTTP 401"
        assert body["saved"] == 1
        assert body["notFound"] == ["Fazenda Alpha"]
        assert body["duplicateKeys"] == []
        assert body["perItemErrors"] == []
        for key in ("date", "runId", "skipped", "failed", "registryCollisions"):
            assert key in body

    def test_daily_key_in_header(self, client):
        response = client.post("/cron/daily", params={"day": "yesterday"}, headers={"X-Cron-Key": "secret"})
        assert response.status_code == 200
        assert response.json()["daySelector"] == "yesterday"

    def test_daily_invalid_day(self, client):
        response = client.get("/cron/daily", params={"key": "secret", "day": "tomorrow"})
        assert response.status_code == 422

    def test_registry_failure_is_500(self, client, monkeypatch):
        def boom(self):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(RegistryService, "list_plants", boom)

        response = client.get("/cron/daily", params={"key": "secret"})
        assert response.status_code == 500
        assert response.json()["ok"] is False

    def test_sync_history_shape(self, client):
        response = client.post("/cron/sync-history", params={"key": "secret"})
        assert response.status_code == 200

        body = response.json()
        assert body["ok"] is True
        assert body["epsilon"] == 0.05
        assert body["windows"] == {"csi": [], "phb": []}
        assert body["diffs"] == []
        assert body["providers"]["csi"]["matched"] == 1

    def test_review_lists_unmatched(self, client):
        response = client.get("/cron/review/csi", params={"key": "secret"})
        assert response.status_code == 200

        body = response.json()
        assert body["matched"] == 1
        candidate = body["unmatched"][0]
        assert candidate["rawName"] == "Fazenda Alpha"
        assert candidate["bestRegistryId"] == 1
        assert 0 < candidate["similarity"] < 1

    def test_review_unknown_provider(self, client):
        response = client.get("/cron/review/nope", params={"key": "secret"})
        assert response.status_code == 404

    def test_review_upstream_failure(self, client):
        response = client.get("/cron/review/phb", params={"key": "secret"})
        assert response.status_code == 502

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_readiness(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_plants(self, client):
        response = client.get("/data/plants")
        assert response.status_code == 200
        assert response.json()[1] == {"id": 2, "name": "Sítio Beta II", "canonical_key": "sitio beta 2"}

    def test_generation_after_sync(self, client):
        client.get("/cron/daily", params={"key": "secret"})

        response = client.get("/data/generation", params={"plant_id": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 1
        assert body["data"][0]["energy_kwh"] == 31.5

        day = body["data"][0]["day"]
        single = client.get(f"/data/generation/1/{day}")
        assert single.status_code == 200
        assert single.json()["energy_kwh"] == 31.5

    def test_generation_missing_day(self, client):
        response = client.get("/data/generation/1/2020-01-01")
        assert response.status_code == 404

    def test_generation_bad_range(self, client):
        response = client.get("/data/generation", params={"start": "2026-10-18", "end": "2026-10-01"})
        assert response.status_code == 400

    def test_stats_after_sync(self, client):
        client.get("/cron/daily", params={"key": "secret"})

        response = client.get("/stats", params={"kind": "daily"})
        assert response.status_code == 200
        runs = response.json()
        assert runs[0]["status"] == "success"
        assert runs[0]["records_processed"] == 1

        latest = client.get("/stats/latest")
        assert latest.status_code == 200
        assert latest.json()["summary"]["saved"] == 1

    def test_provider_systems(self, client):
        response = client.get("/providers/csi/systems")
        assert response.status_code == 200

        body = response.json()
        assert body["total"] == 2
        assert body["items"][0]["externalId"] == "10"
        assert body["items"][0]["dailyEnergyKwh"] == 30.0

    def test_provider_realtime_total(self, client):
        response = client.get("/providers/csi/total-realtime")
        assert response.status_code == 200

        body = response.json()
        assert body["totalKw"] == 0.0
        assert [s["externalId"] for s in body["systems"]] == ["10", "11"]

    def test_provider_previous_day_total(self, client):
        response = client.get("/providers/csi/total-prev-day")
        assert response.status_code == 200

        body = response.json()
        assert body["kwh"] == 31.5
        assert body["reported"] == 1
        assert body["missing"] == ["Fazenda Alpha"]

    def test_provider_unknown(self, client):
        assert client.get("/providers/acme/total-realtime").status_code == 404

    def test_provider_listing_failure(self, client):
        assert client.get("/providers/phb/systems").status_code == 502

    def test_invalid_endpoint(self, client):
        response = client.get("/invalid")
        assert response.status_code == 404


class TestCronAuthorization:
    """Test shared secret policy without a configured key"""

    def _client(self, registry, session_factory, env):
        settings = Settings(_env_file=None, DATABASE_URL="sqlite://", ENV=env, CRON_KEY=None)

        def override_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_config] = lambda: settings
        app.dependency_overrides[get_adapters] = lambda: fake_adapters(settings)
        return TestClient(app)

    def test_dev_allows_without_key(self, registry, session_factory):
        try:
            response = self._client(registry, session_factory, "dev").get("/cron/daily")
            assert response.status_code == 200
        finally:
            app.dependency_overrides.clear()

    def test_prod_denies_without_key(self, registry, session_factory):
        try:
            response = self._client(registry, session_factory, "prod").get("/cron/daily")
            assert response.status_code == 401
        finally:
            app.dependency_overrides.clear()
