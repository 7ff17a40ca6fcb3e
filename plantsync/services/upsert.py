"""Idempotent per plant-day writes to ``daily_generation``."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Literal, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from plantsync.core.errors import PersistenceFailure
from plantsync.core.logging import get_logger
from plantsync.models.generation import DailyGeneration
from plantsync.schemas.plants import ExternalId

log = get_logger("upsert")

OutcomeStatus = Literal["saved", "skipped", "failed"]

# Applied on first insert only, never on update.
INSERT_DEFAULTS: Dict[str, Any] = {"power_w": 0.0, "income": 0.0}

WRITABLE_COLUMNS = (
    "energy_kwh",
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


@dataclass
class Outcome:
    status: OutcomeStatus
    reason: Optional[str] = None
    changed: bool = False


class UpsertCoordinator:
    """Writes resolved plant-day values without clobbering earlier ones.

    Only columns present in ``fields`` are written on conflict, and only when
    one of them differs from what is stored; an identical rerun leaves the
    row, ``updated_at`` included, untouched.
    """

    def __init__(self, db: Session):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise PersistenceFailure(f"Unsupported database dialect: {dialect}")

    def _upsert(self, values: Dict[str, Any], update_columns) -> int:
        stmt = self._insert()(DailyGeneration).values(**values)
        set_ = {column: stmt.excluded[column] for column in update_columns}
        set_["updated_at"] = func.now()
        changed = or_(*(getattr(DailyGeneration, column).is_distinct_from(stmt.excluded[column]) for column in update_columns))
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyGeneration.plant_id, DailyGeneration.day],
            set_=set_,
            where=changed,
        )
        return self.db.execute(stmt).rowcount

    def persist(
        self,
        registry_id: int,
        day: date,
        fields: Dict[str, Any],
        insert_only: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
        external_id: Optional[ExternalId] = None,
    ) -> Outcome:
        """Upsert one plant-day.

        ``fields`` holds the columns resolved this run; ``energy_kwh`` is
        mandatory. ``insert_only`` values are used when the row is created and
        ignored on update.
        """
        resolved = {k: v for k, v in fields.items() if k in WRITABLE_COLUMNS and v is not None}
        if resolved.get("energy_kwh") is None:
            return Outcome("skipped", f"no energy value for {provider}:{external_id}")

        values = {**INSERT_DEFAULTS, **(insert_only or {}), **resolved, "plant_id": registry_id, "day": day}
        try:
            rowcount = self._upsert(values, resolved.keys())
            self.db.commit()
        except (SQLAlchemyError, PersistenceFailure) as exc:
            self.db.rollback()
            log.error(f"Persist failed for plant={registry_id} day={day}: {exc}")
            return Outcome("failed", str(exc))

        log.debug(f"Persisted plant={registry_id} day={day} columns={sorted(resolved)} changed={rowcount > 0}")
        return Outcome("saved", changed=rowcount > 0)

    def stored_energy(self, registry_id: int, day: date) -> Optional[float]:
        stmt = select(DailyGeneration.energy_kwh).where(
            DailyGeneration.plant_id == registry_id,
            DailyGeneration.day == day,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def persist_history_point(
        self,
        registry_id: int,
        day: date,
        kwh: float,
        epsilon: float,
        timezone: Optional[str] = None,
    ) -> Tuple[bool, Optional[float]]:
        """Write a backfill value if absent or off by at least ``epsilon``.

        Read and write share one transaction. Returns ``(written, previous)``.
        Raises ``PersistenceFailure`` on database errors.
        """
        try:
            previous = self.db.execute(
                select(DailyGeneration.energy_kwh)
                .where(DailyGeneration.plant_id == registry_id, DailyGeneration.day == day)
                .with_for_update()
            ).scalar_one_or_none()

            if previous is not None and abs(previous - kwh) < epsilon:
                self.db.rollback()
                return False, previous

            values = {**INSERT_DEFAULTS, "plant_id": registry_id, "day": day, "energy_kwh": kwh}
            if timezone:
                values["timezone"] = timezone
            self._upsert(values, ["energy_kwh"])
            self.db.commit()
        except PersistenceFailure:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceFailure(f"plant={registry_id} day={day}: {exc}") from exc

        return True, previous
