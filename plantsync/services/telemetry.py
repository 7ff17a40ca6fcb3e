"""Read-only portfolio views straight from one provider portal."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from plantsync.core.config import Settings
from plantsync.core.dates import day_context
from plantsync.core.logging import get_logger
from plantsync.ingestion.base import ProviderAdapter
from plantsync.schemas.api import (
    PrevDayTotalResponse,
    ProviderSystem,
    RealtimeTotalResponse,
    SystemPower,
    SystemsResponse,
)
from plantsync.schemas.plants import ProviderPlant
from plantsync.services.metric_resolver import MetricResolver, _finite, map_status

log = get_logger("telemetry")


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return str(exc) or type(exc).__name__


class TelemetryService:
    """Systems listing, live power total and previous-day energy total.

    Nothing is written. Per-plant calls run concurrently, at most
    ``history_concurrency`` at a time, each bounded by ``HTTP_TIMEOUT_SECONDS``.
    A failing plant is reported and left out of the total. A failing listing
    raises ``UpstreamUnavailable``; an unknown provider raises ``KeyError``.
    """

    def __init__(self, adapters: Mapping[str, ProviderAdapter], config: Settings):
        self.adapters = adapters
        self.config = config
        self.resolver = MetricResolver(adapters, config)

    async def _per_plant(
        self,
        plants: List[ProviderPlant],
        call: Callable[[ProviderPlant], Awaitable[Any]],
    ) -> List[Any]:
        semaphore = asyncio.Semaphore(self.config.history_concurrency)
        timeout = self.config.HTTP_TIMEOUT_SECONDS

        async def bounded(plant: ProviderPlant) -> Any:
            async with semaphore:
                return await asyncio.wait_for(call(plant), timeout=timeout)

        results = await asyncio.gather(*(bounded(plant) for plant in plants), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        return results

    async def systems(self, provider: str) -> SystemsResponse:
        plants = await self.adapters[provider].list_plants()
        profile = self.resolver.profile(provider)
        items = [
            ProviderSystem(
                external_id=str(plant.external_id),
                name=plant.raw_name,
                daily_energy_kwh=self.resolver.energy_kwh(provider, plant.metrics.daily_energy),
                power_w=self.resolver.power_w(provider, plant.metrics.instant_power),
                network_status=map_status(profile, plant.metrics.status_code),
            )
            for plant in plants
        ]
        return SystemsResponse(provider=provider, total=len(items), items=items)

    async def realtime_total(self, provider: str, now: Optional[datetime] = None) -> RealtimeTotalResponse:
        """Sum of the latest power reading of every system, in kW.

        The per-plant reading wins; the listing snapshot fills in when the
        portal has no reading or the call fails.
        """
        adapter = self.adapters[provider]
        ctx = day_context("today", self.config.SYNC_TZ, now)
        plants = await adapter.list_plants()
        results = await self._per_plant(plants, lambda plant: adapter.realtime_power(plant.external_id, ctx.day))

        systems = [self._system_power(provider, plant, result) for plant, result in zip(plants, results)]
        total_kw = round(sum(system.kw for system in systems), 3)
        log.info(f"Provider={provider} realtime total {total_kw} kW over {len(systems)} systems")
        return RealtimeTotalResponse(provider=provider, date=ctx.day, total_kw=total_kw, systems=systems)

    def _system_power(self, provider: str, plant: ProviderPlant, result: Any) -> SystemPower:
        system = SystemPower(external_id=str(plant.external_id), name=plant.raw_name)
        watts = None
        if isinstance(result, Exception):
            system.error = _describe(result)
        else:
            watts = self.resolver.power_w(provider, result)
            if watts is not None:
                system.source = "realtime"

        if watts is None:
            watts = self.resolver.power_w(provider, plant.metrics.instant_power)
            if watts is not None:
                system.source = "snapshot"

        system.kw = watts / 1000.0 if watts is not None else 0.0
        return system

    async def previous_day_total(self, provider: str, now: Optional[datetime] = None) -> PrevDayTotalResponse:
        """Yesterday's energy over every system, in kWh."""
        adapter = self.adapters[provider]
        ctx = day_context("yesterday", self.config.SYNC_TZ, now)
        plants = await adapter.list_plants()
        results = await self._per_plant(plants, lambda plant: adapter.daily_energy(plant.external_id, ctx.day))

        total = 0.0
        missing: List[str] = []
        for plant, result in zip(plants, results):
            kwh = None if isinstance(result, Exception) else _finite(result)
            if kwh is None:
                if isinstance(result, Exception):
                    log.debug(f"{provider}:{plant.external_id} {ctx.day} unavailable: {_describe(result)}")
                missing.append(plant.raw_name)
                continue
            total += kwh

        log.info(f"Provider={provider} {ctx.day} total {total:.3f} kWh, {len(missing)} systems missing")
        return PrevDayTotalResponse(
            provider=provider,
            date=ctx.day,
            kwh=round(total, 3),
            systems=len(plants),
            reported=len(plants) - len(missing),
            missing=missing,
        )
