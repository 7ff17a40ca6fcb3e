"""History backfill tests"""

from datetime import date

import pytest
from sqlalchemy import select

from plantsync.core.errors import ErrorKind, PersistenceFailure, UpstreamUnavailable
from plantsync.models import DailyGeneration, SyncRun
from plantsync.schemas.plants import HistoryPoint
from plantsync.services.sync_service import SyncService
from plantsync.services.upsert import UpsertCoordinator
from plantsync.tests.conftest import NOW, FakeAdapter, provider_plant


def energy(db, plant_id, day):
    db.expire_all()
    return db.execute(
        select(DailyGeneration.energy_kwh).where(DailyGeneration.plant_id == plant_id, DailyGeneration.day == day)
    ).scalar_one_or_none()


def history_adapters(config):
    csi = FakeAdapter(
        config,
        "csi",
        plants=[provider_plant("csi", 10, "Fazenda Alfa")],
        months=[(2026, 10), (2026, 9)],
        history={
            (10, 2026, 10): [
                HistoryPoint(day=date(2026, 10, 1), kwh=5.0),
                HistoryPoint(day=date(2026, 10, 2), kwh=6.0),
                HistoryPoint(day=date(2026, 10, 3), kwh=7.0),
                HistoryPoint(day=date(2026, 10, 30), kwh=0.0),
            ],
            (10, 2026, 9): UpstreamUnavailable("csi", "HTTP 504"),
        },
    )
    growatt = FakeAdapter(config, "growatt", plants=[provider_plant("growatt", "g1", "Sitio Beta II")])
    return {"csi": csi, "growatt": growatt}


class TestHistoryBackfill:
    """Test epsilon-guarded history reconciliation"""

    @pytest.fixture
    def seeded(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, date(2026, 10, 1), {"energy_kwh": 5.02})
        upserter.persist(1, date(2026, 10, 2), {"energy_kwh": 5.0})
        return registry

    @pytest.mark.asyncio
    async def test_summary(self, seeded, config):
        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        assert summary.ok is True
        assert summary.now == date(2026, 10, 18)
        assert summary.epsilon == 0.05
        assert summary.windows == {"csi": ["2026-10", "2026-09"], "growatt": []}
        assert summary.providers["csi"].matched == 1
        assert summary.providers["csi"].updated == 2
        assert summary.providers["csi"].skipped == 1
        assert summary.providers["growatt"].matched == 1
        assert summary.providers["growatt"].updated == 0

    @pytest.mark.asyncio
    async def test_diffs_and_writes(self, seeded, config):
        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        diffs = {(d.date, d.previous_value, d.new_value) for d in summary.diffs}
        assert diffs == {
            (date(2026, 10, 2), 5.0, 6.0),
            (date(2026, 10, 3), None, 7.0),
        }
        assert all(d.source == "csi" and d.plant_name == "UFV Fazenda Alfa" for d in summary.diffs)

        # within epsilon: untouched
        assert energy(seeded, 1, date(2026, 10, 1)) == 5.02
        assert energy(seeded, 1, date(2026, 10, 2)) == 6.0
        assert energy(seeded, 1, date(2026, 10, 3)) == 7.0
        # future day ignored
        assert energy(seeded, 1, date(2026, 10, 30)) is None

    @pytest.mark.asyncio
    async def test_month_error_recorded_and_run_continues(self, seeded, config):
        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        assert len(summary.errors) == 1
        error = summary.errors[0]
        assert error.month == "2026-09"
        assert error.external_id == "10"
        assert "HTTP 504" in error.error
        assert error.kind == ErrorKind.UPSTREAM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_second_pass_has_no_diffs(self, seeded, config):
        await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)
        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        assert summary.diffs == []
        assert summary.providers["csi"].skipped == 3

    @pytest.mark.asyncio
    async def test_listing_failure_reported(self, registry, config):
        adapters = {"csi": FakeAdapter(config, "csi", months=[(2026, 10)], listing_error=UpstreamUnavailable("csi", "down"))}

        summary = await SyncService(registry, config, adapters).run_history(now=NOW)

        assert "down" in summary.providers["csi"].error
        assert summary.windows["csi"] == ["2026-10"]
        assert summary.diffs == []

    @pytest.mark.asyncio
    async def test_run_recorded(self, seeded, config):
        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        run = seeded.execute(select(SyncRun)).scalar_one()
        assert run.kind == "history"
        assert run.status == "success"
        assert run.records_processed == len(summary.diffs)

    @pytest.mark.asyncio
    async def test_write_failure_tagged_and_run_continues(self, seeded, config, monkeypatch):
        def broken(self, registry_id, day, kwh, epsilon, timezone=None):
            raise PersistenceFailure(f"plant={registry_id} day={day}: database is locked")

        monkeypatch.setattr(UpsertCoordinator, "persist_history_point", broken)

        summary = await SyncService(seeded, config, history_adapters(config)).run_history(now=NOW)

        kinds = [e.kind for e in summary.errors]
        assert kinds.count(ErrorKind.PERSISTENCE_FAILURE) == 3
        assert kinds.count(ErrorKind.UPSTREAM_UNAVAILABLE) == 1
        assert summary.diffs == []
