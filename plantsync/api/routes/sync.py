"""Cron routes - Trigger the daily sync, the history backfill and name review."""

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from plantsync.api.deps import get_adapters, get_config, get_db, verify_cron_key
from plantsync.core.config import Settings
from plantsync.core.dates import DaySelector
from plantsync.core.errors import UpstreamUnavailable
from plantsync.core.logging import get_logger
from plantsync.ingestion import ProviderAdapter
from plantsync.schemas.api import DailySyncSummary, HistorySyncSummary, ReviewResponse
from plantsync.services.sync_service import SyncService

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_key)])
log = get_logger("sync_routes")


def _run_failed(job: str, exc: Exception) -> JSONResponse:
    log.error(f"{job} aborted: {exc}")
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})


@router.api_route("/daily", methods=["GET", "POST"], response_model=DailySyncSummary)
async def trigger_daily_sync(
    day: DaySelector = Query("today", description="Which local day to sync (today, yesterday)"),
    db: Session = Depends(get_db),
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """
    Run the daily generation sync.

    1. List plants from every enabled provider concurrently
    2. Match them to the registry by canonical name
    3. Resolve the day's energy (authoritative call, then snapshot)
    4. Upsert one row per plant-day

    Provider and per-plant failures are reported in the body with `ok: true`.
    Only a registry read failure answers 500.
    """
    log.info(f"Daily sync triggered for day={day}")
    try:
        return await SyncService(db, config, adapters).run_daily(day)
    except Exception as exc:  # noqa: BLE001
        return _run_failed("Daily sync", exc)


@router.api_route("/sync-history", methods=["GET", "POST"], response_model=HistorySyncSummary)
async def trigger_history_sync(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """
    Re-read monthly history and correct stored values.

    A day is rewritten when it is missing or differs by at least
    `HIST_EPSILON` kWh; every rewrite is listed in `diffs`.
    """
    log.info("History backfill triggered")
    try:
        return await SyncService(db, config, adapters).run_history()
    except Exception as exc:  # noqa: BLE001
        return _run_failed("History backfill", exc)


@router.get("/review/{provider}", response_model=ReviewResponse)
async def review_unmatched(
    provider: str,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_config),
    adapters: Dict[str, ProviderAdapter] = Depends(get_adapters),
):
    """
    List a provider's unmatched plant names with the most similar registry
    plant, for fixing names by hand. Similarity never creates a match.
    """
    try:
        return await SyncService(db, config, adapters).review(provider)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Provider '{provider}' is not enabled")
    except UpstreamUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc))
