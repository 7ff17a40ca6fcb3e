"""Provider routes - Read-only systems listing and portfolio totals."""

from typing import Awaitable, Callable, Dict, TypeVar

from fastapi import APIRouter, Depends, HTTPException

from plantsync.api.deps import get_adapters, get_config
from plantsync.core.config import Settings
from plantsync.core.errors import UpstreamUnavailable
from plantsync.ingestion import ProviderAdapter
from plantsync.schemas.api import PrevDayTotalResponse, RealtimeTotalResponse, SystemsResponse
from plantsync.services.telemetry import TelemetryService

router = APIRouter(prefix="/providers", tags=["providers"])

T = TypeVar("T")


async def _answer(provider: str, view: Callable[[], Awaitable[T]]) -> T:
    try:
        return await view()
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Provider '{provider}' is not enabled")
    except UpstreamUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.get("/{provider}/systems", response_model=SystemsResponse)
async def list_systems(
    provider: str,
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """List every system the provider portal reports, with its snapshot."""
    service = TelemetryService(adapters, config)
    return await _answer(provider, lambda: service.systems(provider))


@router.get("/{provider}/total-realtime", response_model=RealtimeTotalResponse)
async def realtime_total(
    provider: str,
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """
    Current power of the whole portfolio in kW.

    One reading per system, fetched with bounded concurrency. Systems whose
    call fails fall back to the listing snapshot and carry an `error`.
    """
    service = TelemetryService(adapters, config)
    return await _answer(provider, lambda: service.realtime_total(provider))


@router.get("/{provider}/total-prev-day", response_model=PrevDayTotalResponse)
async def previous_day_total(
    provider: str,
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """Yesterday's energy of the whole portfolio in kWh (sync timezone)."""
    service = TelemetryService(adapters, config)
    return await _answer(provider, lambda: service.previous_day_total(provider))
