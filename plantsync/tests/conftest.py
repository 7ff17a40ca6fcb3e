"""Shared fixtures: in-memory SQLite database, settings and fake providers."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "dev")

from datetime import date, datetime, timezone  # noqa: E402
from typing import Any, Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from plantsync.core.config import Settings  # noqa: E402
from plantsync.core.errors import UpstreamUnavailable  # noqa: E402
from plantsync.ingestion.base import ProviderAdapter  # noqa: E402
from plantsync.models import Base, Plant  # noqa: E402
from plantsync.schemas.plants import ExternalId, HistoryPoint, PlantMetrics, ProviderPlant  # noqa: E402

# 12:00 in Sao Paulo
NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)
TODAY = date(2026, 10, 18)
YESTERDAY = date(2026, 10, 17)


def provider_plant(provider: str, external_id: ExternalId, name: str, **metrics: Any) -> ProviderPlant:
    return ProviderPlant(provider=provider, external_id=external_id, raw_name=name, metrics=PlantMetrics(**metrics))


class FakeAdapter(ProviderAdapter):
    """In-memory provider; values that are exceptions get raised."""

    def __init__(
        self,
        config: Settings,
        name: str,
        plants: Optional[List[ProviderPlant]] = None,
        day_energy: Optional[Dict[ExternalId, Any]] = None,
        history: Optional[Dict[Tuple[ExternalId, int, int], Any]] = None,
        months: Optional[List[Tuple[int, int]]] = None,
        listing_error: Optional[Exception] = None,
        power: Optional[Dict[ExternalId, Any]] = None,
    ):
        super().__init__(config)
        self.name = name
        self.plants = plants or []
        self.day_energy_values = day_energy or {}
        self.history = history or {}
        self.months = months or []
        self.listing_error = listing_error
        self.power = power or {}
        self.day_calls: List[Tuple[ExternalId, date]] = []

    async def list_plants(self) -> List[ProviderPlant]:
        if self.listing_error:
            raise self.listing_error
        return list(self.plants)

    async def daily_energy(self, external_id: ExternalId, day: date) -> float:
        self.day_calls.append((external_id, day))
        value = self.day_energy_values.get(external_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise UpstreamUnavailable(self.name, f"no value for {external_id}")
        return value

    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        value = self.history.get((external_id, year, month), [])
        if isinstance(value, Exception):
            raise value
        return value

    async def realtime_power(self, external_id: ExternalId, day: date) -> Optional[float]:
        self.day_calls.append((external_id, day))
        value = self.power.get(external_id)
        if isinstance(value, Exception):
            raise value
        return value

    def history_months(self, today: date) -> List[Tuple[int, int]]:
        return list(self.months)


@pytest.fixture
def config():
    return Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="dev", CRON_KEY=None, HTTP_TIMEOUT_SECONDS=1.0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def registry(db):
    """Three registry plants; the third has no counterpart at any provider."""
    db.add_all(
        [
            Plant(id=1, name="UFV Fazenda Alfa"),
            Plant(id=2, name="Sítio Beta II"),
            Plant(id=3, name="Gamma Comercial"),
        ]
    )
    db.commit()
    return db
