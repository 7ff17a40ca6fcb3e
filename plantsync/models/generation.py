"""One row per plant per calendar day, upserted by the sync jobs."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from plantsync.models.base import Base


class DailyGeneration(Base):
    """Daily generation of a registry plant.

    ``(plant_id, day)`` is the natural key used by every upsert. Columns other
    than ``energy_kwh`` are only written when a provider supplied them in the
    run that touched the row; ``updated_at`` moves only when a stored value
    actually changed.
    """

    __tablename__ = "daily_generation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    plant_id: Mapped[int] = mapped_column(ForeignKey("plants.id"), nullable=False, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    energy_kwh: Mapped[float] = mapped_column(Float, nullable=False)
    power_w: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    income: Mapped[float | None] = mapped_column(Float, nullable=True)

    warning_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    business_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    network_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    source_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last update time reported by the vendor portal",
    )
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    weather: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (UniqueConstraint("plant_id", "day", name="uq_daily_generation_plant_day"),)
