"""Idempotent plant-day persistence tests"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from plantsync.core.errors import PersistenceFailure
from plantsync.models import DailyGeneration
from plantsync.services.upsert import UpsertCoordinator
from plantsync.tests.conftest import TODAY


def row(db, plant_id=1, day=TODAY):
    db.expire_all()
    return db.execute(
        select(DailyGeneration).where(DailyGeneration.plant_id == plant_id, DailyGeneration.day == day)
    ).scalar_one_or_none()


def row_count(db):
    return db.execute(select(func.count()).select_from(DailyGeneration)).scalar()


def fail_execute(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("database is locked"))


class TestPersist:
    """Test insert-or-update of resolved fields"""

    def test_insert_applies_defaults(self, registry):
        outcome = UpsertCoordinator(registry).persist(1, TODAY, {"energy_kwh": 10.0, "temperature_c": 21.0})

        assert outcome.status == "saved"
        saved = row(registry)
        assert saved.energy_kwh == 10.0
        assert saved.temperature_c == 21.0
        assert saved.power_w == 0.0
        assert saved.income == 0.0
        assert saved.weather is None
        assert saved.updated_at is None

    def test_missing_energy_is_skipped(self, registry):
        outcome = UpsertCoordinator(registry).persist(1, TODAY, {"temperature_c": 21.0}, provider="csi", external_id=10)

        assert outcome.status == "skipped"
        assert "csi:10" in outcome.reason
        assert row_count(registry) == 0

    def test_update_keeps_unresolved_fields(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, TODAY, {"energy_kwh": 10.0, "temperature_c": 21.0, "power_w": 1500.0, "weather": "Sunny"})

        outcome = upserter.persist(1, TODAY, {"energy_kwh": 12.0, "temperature_c": None})

        assert outcome.status == "saved"
        saved = row(registry)
        assert saved.energy_kwh == 12.0
        assert saved.temperature_c == 21.0
        assert saved.power_w == 1500.0
        assert saved.weather == "Sunny"
        assert saved.updated_at is not None
        assert row_count(registry) == 1

    def test_identical_rerun_leaves_row_untouched(self, registry):
        upserter = UpsertCoordinator(registry)
        fields = {"energy_kwh": 10.0, "power_w": 1500.0, "network_status": "NORMAL"}

        upserter.persist(1, TODAY, fields)
        first = row(registry)
        first_created = first.created_at

        outcome = upserter.persist(1, TODAY, dict(fields))

        assert outcome.status == "saved"
        second = row(registry)
        assert second.updated_at is None
        assert second.created_at == first_created
        assert (second.energy_kwh, second.power_w, second.network_status) == (10.0, 1500.0, "NORMAL")
        assert row_count(registry) == 1

    def test_insert_only_values_ignored_on_update(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, TODAY, {"energy_kwh": 10.0}, insert_only={"timezone": "America/Sao_Paulo"})
        upserter.persist(1, TODAY, {"energy_kwh": 11.0}, insert_only={"timezone": "UTC"})

        assert row(registry).timezone == "America/Sao_Paulo"

    def test_database_error_reported_not_raised(self, registry, monkeypatch):
        upserter = UpsertCoordinator(registry)
        monkeypatch.setattr(registry, "execute", fail_execute)

        outcome = upserter.persist(1, TODAY, {"energy_kwh": 10.0})

        assert outcome.status == "failed"
        assert "database is locked" in outcome.reason

    def test_unsupported_dialect_reported_not_raised(self, registry, monkeypatch):
        def no_dialect(self):
            raise PersistenceFailure("Unsupported database dialect: mssql")

        monkeypatch.setattr(UpsertCoordinator, "_insert", no_dialect)

        outcome = UpsertCoordinator(registry).persist(1, TODAY, {"energy_kwh": 10.0})

        assert outcome.status == "failed"
        assert "mssql" in outcome.reason
        assert row_count(registry) == 0


class TestPersistHistoryPoint:
    """Test epsilon-guarded backfill writes"""

    def test_absent_value_written(self, registry):
        written, previous = UpsertCoordinator(registry).persist_history_point(1, TODAY, 8.0, 0.05, "America/Sao_Paulo")

        assert (written, previous) == (True, None)
        saved = row(registry)
        assert saved.energy_kwh == 8.0
        assert saved.timezone == "America/Sao_Paulo"

    def test_small_difference_skipped(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, TODAY, {"energy_kwh": 10.0})

        written, previous = upserter.persist_history_point(1, TODAY, 10.03, 0.05)

        assert (written, previous) == (False, 10.0)
        assert row(registry).energy_kwh == 10.0
        assert row(registry).updated_at is None

    def test_large_difference_overwrites_energy_only(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, TODAY, {"energy_kwh": 10.0, "temperature_c": 22.0})

        written, previous = upserter.persist_history_point(1, TODAY, 10.5, 0.05)

        assert (written, previous) == (True, 10.0)
        saved = row(registry)
        assert saved.energy_kwh == 10.5
        assert saved.temperature_c == 22.0
        assert saved.updated_at is not None

    def test_difference_equal_to_epsilon_written(self, registry):
        upserter = UpsertCoordinator(registry)
        upserter.persist(1, TODAY, {"energy_kwh": 10.0})

        written, previous = upserter.persist_history_point(1, TODAY, 10.25, 0.25)

        assert (written, previous) == (True, 10.0)
        assert row(registry).energy_kwh == 10.25

    def test_database_error_raises(self, registry, monkeypatch):
        monkeypatch.setattr(registry, "execute", fail_execute)

        with pytest.raises(PersistenceFailure):
            UpsertCoordinator(registry).persist_history_point(1, TODAY, 8.0, 0.05)
