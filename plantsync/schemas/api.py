import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from plantsync.core.errors import ErrorKind


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire (the cron summary contract)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# -----------------------------------------------------------------------------
# Cron summaries
# -----------------------------------------------------------------------------


class PerItemError(CamelModel):
    plant: str
    registry_id: Optional[int] = None
    provider: str
    external_id: Optional[str] = None
    kind: ErrorKind
    error: str


class ProviderDailyStats(CamelModel):
    total: int = 0
    matched: int = 0
    saved: int = 0
    error: Optional[str] = None


class DailySyncSummary(CamelModel):
    ok: bool = True
    run_id: str
    date: dt.date
    day_selector: str
    registry_total: int = 0
    providers: Dict[str, ProviderDailyStats] = Field(default_factory=dict)
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    not_found: List[str] = Field(default_factory=list)
    duplicate_keys: List[str] = Field(default_factory=list)
    registry_collisions: List[str] = Field(default_factory=list)
    per_item_errors: List[PerItemError] = Field(default_factory=list)


class HistoryDiff(CamelModel):
    source: str
    plant_name: str
    date: dt.date
    previous_value: Optional[float] = None
    new_value: float


class HistoryError(CamelModel):
    source: str
    plant: str
    external_id: str
    month: Optional[str] = None
    kind: ErrorKind = ErrorKind.UPSTREAM_UNAVAILABLE
    error: str


class ProviderHistoryStats(CamelModel):
    total: int = 0
    matched: int = 0
    updated: int = 0
    skipped: int = 0
    error: Optional[str] = None


class HistorySyncSummary(CamelModel):
    ok: bool = True
    run_id: str
    now: dt.date
    epsilon: float
    windows: Dict[str, List[str]] = Field(default_factory=dict)
    providers: Dict[str, ProviderHistoryStats] = Field(default_factory=dict)
    diffs: List[HistoryDiff] = Field(default_factory=list)
    errors: List[HistoryError] = Field(default_factory=list)


class ReviewCandidate(CamelModel):
    raw_name: str
    canonical_key: str
    best_registry_id: Optional[int] = None
    best_registry_name: Optional[str] = None
    similarity: float = 0.0


class ReviewResponse(CamelModel):
    provider: str
    total: int
    matched: int
    unmatched: List[ReviewCandidate]


# -----------------------------------------------------------------------------
# Provider telemetry
# -----------------------------------------------------------------------------


class ProviderSystem(CamelModel):
    external_id: str
    name: str
    daily_energy_kwh: Optional[float] = None
    power_w: Optional[float] = None
    network_status: Optional[str] = None


class SystemsResponse(CamelModel):
    provider: str
    total: int
    items: List[ProviderSystem]


class SystemPower(CamelModel):
    external_id: str
    name: str
    kw: float = 0.0
    source: Optional[str] = None  # realtime | snapshot
    error: Optional[str] = None


class RealtimeTotalResponse(CamelModel):
    provider: str
    date: dt.date
    total_kw: float
    systems: List[SystemPower]


class PrevDayTotalResponse(CamelModel):
    provider: str
    date: dt.date
    kwh: float
    systems: int
    reported: int
    missing: List[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Read API
# -----------------------------------------------------------------------------


class PlantOut(BaseModel):
    id: int
    name: str
    canonical_key: str


class DailyGenerationOut(BaseModel):
    plant_id: int
    day: dt.date
    energy_kwh: float
    power_w: Optional[float] = None
    temperature_c: Optional[float] = None
    income: Optional[float] = None
    warning_status: Optional[str] = None
    business_status: Optional[str] = None
    network_status: Optional[str] = None
    source_updated_at: Optional[dt.datetime] = None
    timezone: Optional[str] = None
    weather: Optional[str] = None

    class Config:
        from_attributes = True


class GenerationResponse(BaseModel):
    request_id: str
    api_latency_ms: int
    total_count: int
    data: list[DailyGenerationOut]


class HealthResponse(BaseModel):
    database: str
    last_sync_status: str | None


class StatsResponse(BaseModel):
    run_id: str
    kind: str
    status: str
    records_processed: int
    error_message: str | None = None
    started_at: dt.datetime
    ended_at: dt.datetime | None

    class Config:
        from_attributes = True
