"""Data routes - Registry plants and stored daily generation with request metadata."""

import time
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from plantsync.api.deps import get_db
from plantsync.core.naming import canonicalize
from plantsync.schemas.api import DailyGenerationOut, GenerationResponse, PlantOut
from plantsync.services.data_service import DataService

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/plants", response_model=list[PlantOut])
def get_plants(
    name: Optional[str] = Query(None, description="Filter by name (case-insensitive partial match)"),
    db: Session = Depends(get_db),
):
    """Registry plants with the canonical key used for matching."""
    plants = DataService(db).get_plants(name=name)
    return [PlantOut(id=p.id, name=p.name, canonical_key=canonicalize(p.name or "")) for p in plants]


@router.get("/generation", response_model=GenerationResponse)
def get_generation(
    plant_id: Optional[int] = Query(None, description="Filter by registry plant id"),
    start: Optional[date] = Query(None, description="First day, inclusive (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last day, inclusive (YYYY-MM-DD)"),
    limit: int = Query(50, ge=1, le=500, description="Number of records to return (max 500)"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
):
    """
    Stored daily generation, newest day first.

    Includes request metadata (request_id, latency_ms).
    """
    started = time.perf_counter()
    request_id = str(uuid.uuid4())

    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")

    service = DataService(db)
    rows = service.get_generation(plant_id=plant_id, start=start, end=end, limit=limit, offset=offset)
    total = service.get_generation_count(plant_id=plant_id, start=start, end=end)

    return GenerationResponse(
        request_id=request_id,
        api_latency_ms=int((time.perf_counter() - started) * 1000),
        total_count=total,
        data=[DailyGenerationOut.model_validate(r) for r in rows],
    )


@router.get("/generation/{plant_id}/{day}", response_model=DailyGenerationOut)
def get_plant_day(plant_id: int, day: date, db: Session = Depends(get_db)):
    """A single plant-day row."""
    row = DataService(db).get_plant_day(plant_id, day)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No generation stored for plant {plant_id} on {day}")
    return DailyGenerationOut.model_validate(row)
