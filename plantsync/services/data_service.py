"""Data Service - Query logic for the read endpoints."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from plantsync.core.logging import get_logger
from plantsync.models.generation import DailyGeneration
from plantsync.models.plant import Plant
from plantsync.models.runs import SyncRun

log = get_logger("data_service")


class DataService:
    """Handles all data query operations - reads from DB only, no writes."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------
    def get_plants(self, name: Optional[str] = None) -> List[Plant]:
        stmt = select(Plant)
        if name:
            stmt = stmt.where(Plant.name.ilike(f"%{name}%"))
        return list(self.db.execute(stmt.order_by(Plant.id)).scalars().all())

    # -------------------------------------------------------------------------
    # Daily generation
    # -------------------------------------------------------------------------
    def _generation_query(self, plant_id: Optional[int], start: Optional[date], end: Optional[date]):
        stmt = select(DailyGeneration)
        if plant_id is not None:
            stmt = stmt.where(DailyGeneration.plant_id == plant_id)
        if start:
            stmt = stmt.where(DailyGeneration.day >= start)
        if end:
            stmt = stmt.where(DailyGeneration.day <= end)
        return stmt

    def get_generation(
        self,
        plant_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DailyGeneration]:
        """Daily rows, newest day first."""
        stmt = self._generation_query(plant_id, start, end)
        stmt = stmt.order_by(DailyGeneration.day.desc(), DailyGeneration.plant_id).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def get_generation_count(
        self,
        plant_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> int:
        stmt = select(func.count()).select_from(self._generation_query(plant_id, start, end).subquery())
        return self.db.execute(stmt).scalar() or 0

    def get_plant_day(self, plant_id: int, day: date) -> Optional[DailyGeneration]:
        stmt = select(DailyGeneration).where(DailyGeneration.plant_id == plant_id, DailyGeneration.day == day)
        return self.db.execute(stmt).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Sync runs
    # -------------------------------------------------------------------------
    def get_sync_runs(
        self,
        kind: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[SyncRun]:
        """Get recent sync runs with optional filtering."""
        stmt = select(SyncRun)

        if kind:
            stmt = stmt.where(SyncRun.kind == kind)
        if status:
            stmt = stmt.where(SyncRun.status == status)

        stmt = stmt.order_by(SyncRun.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_latest_sync_run(self, kind: Optional[str] = None) -> Optional[SyncRun]:
        runs = self.get_sync_runs(kind=kind, limit=1)
        return runs[0] if runs else None
