"""Plant-side schemas shared by adapters, reconciler and resolver."""

from datetime import date
from typing import List, Optional, Union

from pydantic import BaseModel, Field

ExternalId = Union[int, str]


class RegistryPlant(BaseModel):
    """A row of the local registry."""

    id: int
    display_name: str

    class Config:
        from_attributes = True


class PlantMetrics(BaseModel):
    """Snapshot values as a portal lists them, in the portal's own units."""

    daily_energy: Optional[float] = None
    instant_power: Optional[float] = None
    temperature_c: Optional[float] = None
    weather: Optional[str] = None
    income: Optional[float] = None
    status_code: Optional[Union[int, str]] = None
    warning_status: Optional[str] = None
    business_status: Optional[str] = None
    last_update_epoch: Optional[float] = None
    timezone: Optional[str] = None


class ProviderPlant(BaseModel):
    """One plant from a provider listing. Ephemeral, never persisted."""

    provider: str
    external_id: ExternalId
    raw_name: str
    metrics: PlantMetrics = Field(default_factory=PlantMetrics)


class HistoryPoint(BaseModel):
    day: date
    kwh: float


class Match(BaseModel):
    registry_id: int
    registry_name: str
    provider: str
    external_id: ExternalId
    external_name: str
    aux_weather: Optional[str] = None


class ReconcileResult(BaseModel):
    matches: List[Match] = Field(default_factory=list)
    unmatched: List[str] = Field(default_factory=list)
    duplicates: List[str] = Field(default_factory=list)
