"""Energy resolution with fallback, unit normalization and auxiliary field merge."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from plantsync.core.config import Settings
from plantsync.core.dates import DayContext
from plantsync.core.logging import get_logger
from plantsync.ingestion.base import ProviderAdapter
from plantsync.schemas.plants import Match, PlantMetrics, ProviderPlant

log = get_logger("metric_resolver")

NORMAL = "NORMAL"
ALL_OFFLINE = "ALL_OFFLINE"
UNKNOWN = "UNKNOWN"

POWER_FACTORS = {"W": 1.0, "kW": 1000.0}
ENERGY_FACTORS = {"Wh": 0.001, "kWh": 1.0, "MWh": 1000.0}

AUX_FIELDS = (
    "power_w",
    "temperature_c",
    "income",
    "warning_status",
    "business_status",
    "network_status",
    "source_updated_at",
    "timezone",
    "weather",
)


@dataclass(frozen=True)
class ProviderProfile:
    """How to read one provider: snapshot units, day endpoint, status codes."""

    power_unit: str = "W"
    energy_unit: str = "kWh"
    authoritative_day: bool = True
    status_map: Mapping[Any, str] = field(default_factory=dict)


PROFILES: Dict[str, ProviderProfile] = {
    "csi": ProviderProfile(
        power_unit="W",
        status_map={"NORMAL": NORMAL, "ALL_OFFLINE": ALL_OFFLINE, "OFFLINE": ALL_OFFLINE},
    ),
    "phb": ProviderProfile(
        power_unit="W",
        status_map={1: NORMAL, 0: NORMAL, -1: ALL_OFFLINE},
    ),
    "sep": ProviderProfile(
        power_unit="kW",
        status_map={1: NORMAL, 0: ALL_OFFLINE},
    ),
    "growatt": ProviderProfile(
        power_unit="kW",
        authoritative_day=False,
        status_map={1: NORMAL, 0: ALL_OFFLINE},
    ),
}


@dataclass
class EnergyResolution:
    value: Optional[float]
    origin: Optional[str] = None  # authoritative | snapshot
    reasons: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.value is not None


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def map_status(profile: ProviderProfile, code: Any) -> Optional[str]:
    if code is None or code == "":
        return None
    if code in profile.status_map:
        return profile.status_map[code]
    if isinstance(code, str) and code.lstrip("-").isdigit() and int(code) in profile.status_map:
        return profile.status_map[int(code)]
    return UNKNOWN


class MetricResolver:
    """Resolves the day's energy per match and merges auxiliary telemetry.

    Energy: the provider's authoritative per-plant day call first, the list
    snapshot second, otherwise unresolved. Auxiliary fields: first provider in
    ``AUX_PRIORITY`` that has a value.
    """

    def __init__(self, adapters: Mapping[str, ProviderAdapter], config: Settings):
        self.adapters = adapters
        self.config = config

    @staticmethod
    def profile(provider: str) -> ProviderProfile:
        return PROFILES.get(provider, ProviderProfile())

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------
    def energy_kwh(self, provider: str, value: Any) -> Optional[float]:
        number = _finite(value)
        if number is None:
            return None
        return number * ENERGY_FACTORS[self.profile(provider).energy_unit]

    def power_w(self, provider: str, value: Any) -> Optional[float]:
        number = _finite(value)
        if number is None:
            return None
        return number * POWER_FACTORS[self.profile(provider).power_unit]

    def normalize(self, provider: str, metrics: PlantMetrics) -> Dict[str, Any]:
        """Snapshot metrics in storage units and column names."""
        profile = self.profile(provider)
        updated = _finite(metrics.last_update_epoch)
        return {
            "energy_kwh": self.energy_kwh(provider, metrics.daily_energy),
            "power_w": self.power_w(provider, metrics.instant_power),
            "temperature_c": _finite(metrics.temperature_c),
            "income": _finite(metrics.income),
            "warning_status": metrics.warning_status,
            "business_status": metrics.business_status,
            "network_status": map_status(profile, metrics.status_code),
            "source_updated_at": datetime.fromtimestamp(updated, tz=timezone.utc) if updated is not None else None,
            "timezone": metrics.timezone,
            "weather": metrics.weather,
        }

    # -------------------------------------------------------------------------
    # Energy
    # -------------------------------------------------------------------------
    async def resolve_daily_energy(self, match: Match, snapshot: ProviderPlant, ctx: DayContext) -> EnergyResolution:
        reasons: List[str] = []
        adapter = self.adapters.get(match.provider)

        if adapter is not None and self.profile(match.provider).authoritative_day:
            timeout = self.config.HTTP_TIMEOUT_SECONDS
            try:
                value = _finite(await asyncio.wait_for(adapter.daily_energy(match.external_id, ctx.day), timeout=timeout))
                if value is not None:
                    return EnergyResolution(value, "authoritative")
                reasons.append("authoritative value is not a finite number")
            except asyncio.TimeoutError:
                reasons.append(f"authoritative call timed out after {timeout:g}s")
            except Exception as exc:  # noqa: BLE001
                reasons.append(f"authoritative call failed: {exc}")
            log.debug(f"{match.provider}:{match.external_id} falling back to snapshot ({reasons[-1]})")

        if not ctx.is_today:
            reasons.append(f"snapshot describes {ctx.today.isoformat()}, not {ctx.day.isoformat()}")
            return EnergyResolution(None, reasons=reasons)

        value = self.energy_kwh(match.provider, snapshot.metrics.daily_energy)
        if value is not None:
            return EnergyResolution(value, "snapshot", reasons)

        reasons.append("snapshot has no daily energy")
        return EnergyResolution(None, reasons=reasons)

    # -------------------------------------------------------------------------
    # Auxiliary fields
    # -------------------------------------------------------------------------
    def merge_fields(self, snapshots: Mapping[str, ProviderPlant]) -> Dict[str, Any]:
        """Auxiliary columns resolved this run; absent keys mean "not resolved"."""
        normalized = {
            provider: self.normalize(provider, snapshots[provider].metrics)
            for provider in self.config.AUX_PRIORITY
            if provider in snapshots
        }
        merged: Dict[str, Any] = {}
        for column in AUX_FIELDS:
            for provider in self.config.AUX_PRIORITY:
                value = normalized.get(provider, {}).get(column)
                if value is not None:
                    merged[column] = value
                    break
        return merged
