"""Stats routes - Sync run observability."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from plantsync.api.deps import get_db
from plantsync.models.runs import SyncRun
from plantsync.schemas.api import StatsResponse
from plantsync.services.data_service import DataService

router = APIRouter(prefix="/stats", tags=["stats"])


def _to_stats(run: SyncRun) -> StatsResponse:
    return StatsResponse(
        run_id=str(run.run_id),
        kind=run.kind,
        status=run.status,
        records_processed=run.records_processed,
        error_message=run.error_message,
        started_at=run.started_at,
        ended_at=run.ended_at,
    )


@router.get("", response_model=list[StatsResponse])
def get_sync_stats(
    kind: Optional[Literal["daily", "history"]] = Query(None, description="Filter by run kind"),
    status: Optional[str] = Query(None, description="Filter by status (running, success, failure)"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """
    Get recent sync run statistics.

    Shows records processed, status, and error messages.
    """
    runs = DataService(db).get_sync_runs(kind=kind, status=status, limit=limit)
    return [_to_stats(run) for run in runs]


@router.get("/latest")
def get_latest_summary(
    kind: Literal["daily", "history"] = Query("daily", description="Run kind"),
    db: Session = Depends(get_db),
):
    """Full JSON summary stored with the most recent run of a kind."""
    run = DataService(db).get_latest_sync_run(kind=kind)
    if run is None:
        raise HTTPException(status_code=404, detail=f"No {kind} run recorded")
    return {"run": _to_stats(run), "summary": run.meta}
