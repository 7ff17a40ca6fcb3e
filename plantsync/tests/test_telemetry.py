"""Portfolio telemetry tests"""

import asyncio

import pytest

from plantsync.core.config import Settings
from plantsync.core.errors import UpstreamUnavailable
from plantsync.services.telemetry import TelemetryService
from plantsync.tests.conftest import NOW, TODAY, YESTERDAY, FakeAdapter, provider_plant


def csi_adapter(config, **kwargs):
    return FakeAdapter(
        config,
        "csi",
        plants=[
            provider_plant("csi", 10, "Fazenda Alfa", daily_energy=30.0, instant_power=1200.0, status_code="NORMAL"),
            provider_plant("csi", 11, "Sitio Beta", instant_power=750.0),
            provider_plant("csi", 12, "Gamma"),
        ],
        **kwargs,
    )


class SlowAdapter(FakeAdapter):
    """Records how many power calls overlap."""

    def __init__(self, *args, delay=0.01, **kwargs):
        super().__init__(*args, **kwargs)
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def realtime_power(self, external_id, day):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return 1000.0
        finally:
            self.in_flight -= 1


class TestSystems:
    """Test the provider systems listing"""

    @pytest.mark.asyncio
    async def test_snapshot_in_storage_units(self, config):
        sep = FakeAdapter(config, "sep", plants=[provider_plant("sep", 7, "Fazenda Alfa", instant_power=2.5, status_code=1)])

        response = await TelemetryService({"sep": sep}, config).systems("sep")

        assert response.total == 1
        system = response.items[0]
        assert system.external_id == "7"
        assert system.power_w == 2500.0
        assert system.network_status == "NORMAL"
        assert system.daily_energy_kwh is None

    @pytest.mark.asyncio
    async def test_unknown_provider(self, config):
        with pytest.raises(KeyError):
            await TelemetryService({}, config).systems("acme")

    @pytest.mark.asyncio
    async def test_listing_failure_raises(self, config):
        down = FakeAdapter(config, "phb", listing_error=UpstreamUnavailable("phb", "HTTP 401"))

        with pytest.raises(UpstreamUnavailable):
            await TelemetryService({"phb": down}, config).systems("phb")


class TestRealtimeTotal:
    """Test the live power total"""

    @pytest.mark.asyncio
    async def test_sums_readings_with_snapshot_fallback(self, config):
        adapter = csi_adapter(config, power={10: 1500.0, 11: UpstreamUnavailable("csi", "HTTP 502")})

        response = await TelemetryService({"csi": adapter}, config).realtime_total("csi", now=NOW)

        assert response.date == TODAY
        assert response.total_kw == 2.25
        by_id = {s.external_id: s for s in response.systems}
        assert (by_id["10"].kw, by_id["10"].source, by_id["10"].error) == (1.5, "realtime", None)
        assert (by_id["11"].kw, by_id["11"].source) == (0.75, "snapshot")
        assert "HTTP 502" in by_id["11"].error
        assert (by_id["12"].kw, by_id["12"].source) == (0.0, None)
        assert {day for _, day in adapter.day_calls} == {TODAY}

    @pytest.mark.asyncio
    async def test_empty_portfolio(self, config):
        response = await TelemetryService({"csi": FakeAdapter(config, "csi")}, config).realtime_total("csi", now=NOW)

        assert response.total_kw == 0.0
        assert response.systems == []

    @pytest.mark.asyncio
    async def test_calls_bounded_by_history_concurrency(self):
        config = Settings(_env_file=None, DATABASE_URL="sqlite://", HISTORY_CONCURRENCY=2)
        plants = [provider_plant("csi", i, f"Plant {i}") for i in range(8)]
        adapter = SlowAdapter(config, "csi", plants=plants)

        response = await TelemetryService({"csi": adapter}, config).realtime_total("csi", now=NOW)

        assert response.total_kw == 8.0
        assert adapter.peak == 2

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self):
        config = Settings(_env_file=None, DATABASE_URL="sqlite://", HTTP_TIMEOUT_SECONDS=0.05)
        plants = [provider_plant("csi", 10, "Fazenda Alfa", instant_power=400.0)]
        adapter = SlowAdapter(config, "csi", plants=plants, delay=5)

        response = await TelemetryService({"csi": adapter}, config).realtime_total("csi", now=NOW)

        system = response.systems[0]
        assert system.error == "timed out"
        assert (system.kw, system.source) == (0.4, "snapshot")


class TestPreviousDayTotal:
    """Test the previous-day energy total"""

    @pytest.mark.asyncio
    async def test_sums_reported_days(self, config):
        adapter = csi_adapter(config, day_energy={10: 31.5, 11: 12.25})

        response = await TelemetryService({"csi": adapter}, config).previous_day_total("csi", now=NOW)

        assert response.date == YESTERDAY
        assert response.kwh == 43.75
        assert response.systems == 3
        assert response.reported == 2
        assert response.missing == ["Gamma"]
        assert {day for _, day in adapter.day_calls} == {YESTERDAY}

    @pytest.mark.asyncio
    async def test_provider_without_history(self, config):
        adapter = FakeAdapter(config, "growatt", plants=[provider_plant("growatt", "g1", "Beta")])

        response = await TelemetryService({"growatt": adapter}, config).previous_day_total("growatt", now=NOW)

        assert response.kwh == 0.0
        assert response.reported == 0
        assert response.missing == ["Beta"]
