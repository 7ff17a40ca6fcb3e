"""Abstract provider interface for vendor portals."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from plantsync.core.config import Settings
from plantsync.core.dates import YearMonth
from plantsync.core.errors import UpstreamUnavailable
from plantsync.schemas.plants import ExternalId, HistoryPoint, ProviderPlant

BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36"


class ProviderAdapter(ABC):
    """Base class for vendor portals.

    Subclasses set ``name`` and implement the listing and history calls. Every
    HTTP call goes through ``_request`` so that timeouts and transport errors
    surface uniformly as ``UpstreamUnavailable``.
    """

    name: str

    def __init__(self, config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def tz(self) -> str:
        return self.config.SYNC_TZ

    @abstractmethod
    async def list_plants(self) -> List[ProviderPlant]:
        """Full plant listing with snapshot metrics, all pages."""

    @abstractmethod
    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        """Daily kWh series for one plant and one calendar month."""

    @abstractmethod
    def history_months(self, today: date) -> List[YearMonth]:
        """Months the backfill covers for this provider."""

    async def daily_energy(self, external_id: ExternalId, day: date) -> float:
        """Authoritative kWh for one plant-day, picked from the month series."""
        series = await self.month_history(external_id, day.year, day.month)
        for point in series:
            if point.day == day:
                return point.kwh
        raise UpstreamUnavailable(self.name, f"no {day.isoformat()} value for plant {external_id}")

    async def realtime_power(self, external_id: ExternalId, day: date) -> Optional[float]:
        """Latest power reading of the day in the provider's unit, None before the first one."""
        raise UpstreamUnavailable(self.name, "no per-plant power endpoint")

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.HTTP_TIMEOUT_SECONDS, transport=self._transport)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body."""
        try:
            async with self._client() as client:
                resp = await client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailable(self.name, f"HTTP {exc.response.status_code} from {url}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(self.name, f"{type(exc).__name__} calling {url}: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable(self.name, f"invalid JSON from {url}") from exc

    @staticmethod
    def _bearer(token: Optional[str]) -> Optional[str]:
        token = (token or "").strip()
        if not token:
            return None
        return token if token.startswith("Bearer") else f"Bearer {token}"

    # -------------------------------------------------------------------------
    # Parsing helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _to_float(value: Any) -> Optional[float]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            result = float(value)
        except (TypeError, ValueError):
            return None
        return result if math.isfinite(result) else None

    @staticmethod
    def _to_epoch(value: Any) -> Optional[float]:
        """Epoch seconds from epoch seconds, epoch millis or an ISO string."""
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value / 1000.0 if value > 1e12 else float(value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return ProviderAdapter._to_epoch(int(text))
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.timestamp()
        return None

    @staticmethod
    def _points(rows: List[Dict[str, Any]]) -> List[HistoryPoint]:
        """Drop rows without a date or a finite kWh value."""
        return [HistoryPoint(day=row["day"], kwh=row["kwh"]) for row in rows if row.get("day") and row.get("kwh") is not None]
