"""CSI monitoring portal."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from plantsync.core.dates import YearMonth, months_back, parse_day
from plantsync.core.errors import UpstreamUnavailable
from plantsync.core.logging import get_logger
from plantsync.schemas.plants import ExternalId, HistoryPoint, PlantMetrics, ProviderPlant
from .base import BROWSER_UA, ProviderAdapter

log = get_logger("ingestion.csi")

SEARCH_FILTER = {
    "powerTypeList": ["PV"],
    "region": {"level1": None, "level2": None, "level3": None, "level4": None, "level5": None, "nationId": None},
    "tagId": None,
    "keyword": None,
}


class CSIProvider(ProviderAdapter):
    """Lists stations through the operating search and reads monthly stats."""

    name = "csi"

    @property
    def tz(self) -> str:
        return self.config.CSI_TZ

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Language": "pt-PT,pt;q=0.9,en-US;q=0.8,en;q=0.7",
            "User-Agent": BROWSER_UA,
            "X-Requested-With": "XMLHttpRequest",
            "Referer": f"{self.config.CSI_BASE}/maintain/home",
        }
        if self.config.CSI_COOKIE:
            headers["Cookie"] = self.config.CSI_COOKIE
        bearer = self._bearer(self.config.CSI_BEARER)
        if bearer:
            headers["Authorization"] = bearer
        return headers

    async def _fetch_page(self, page: int) -> Tuple[int, List[Dict[str, Any]]]:
        url = f"{self.config.CSI_BASE}/maintain-s/operating/station/search"
        params = {
            "page": page,
            "size": self.config.CSI_PAGE_SIZE,
            "order.direction": "ASC",
            "order.property": "name",
        }
        try:
            body = await self._request("POST", url, params=params, json=SEARCH_FILTER, headers=self._headers())
        except UpstreamUnavailable as exc:
            # Some tenants only accept the search as GET
            log.warning(f"CSI search POST failed on page {page}, retrying as GET: {exc}")
            body = await self._request("GET", url, params=params, headers=self._headers())

        body = body or {}
        data = body.get("data") or []
        total = body.get("total") or len(data)
        return int(total), data

    async def list_plants(self) -> List[ProviderPlant]:
        page = 1
        total, rows = await self._fetch_page(page)
        collected = list(rows)
        while len(collected) < total and rows:
            page += 1
            total, rows = await self._fetch_page(page)
            collected.extend(rows)

        plants = [self._to_plant(row) for row in collected if row.get("id") is not None]
        log.info(f"Fetched {len(plants)} stations from CSI")
        return plants

    def _to_plant(self, row: Dict[str, Any]) -> ProviderPlant:
        return ProviderPlant(
            provider=self.name,
            external_id=row["id"],
            raw_name=row.get("name") or "",
            metrics=PlantMetrics(
                daily_energy=self._to_float(row.get("generationValue")),
                instant_power=self._to_float(row.get("generationPower")),
                temperature_c=self._to_float(row.get("temperature")),
                weather=row.get("weather"),
                income=self._to_float(row.get("incomeValue")),
                status_code=row.get("networkStatus"),
                warning_status=row.get("warningStatus"),
                business_status=row.get("businessStatus"),
                last_update_epoch=self._to_epoch(row.get("lastUpdateTime")),
                timezone=self.tz,
            ),
        )

    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        url = f"{self.config.CSI_BASE}/maintain-s/history/power/{external_id}/stats/month"
        body = await self._request("GET", url, params={"year": year, "month": month}, headers=self._headers())
        body = body or {}
        records = (body.get("data") or {}).get("records") if isinstance(body.get("data"), dict) else None
        if records is None:
            records = body.get("records") or []

        return self._points(
            [
                {
                    "day": parse_day(str(rec.get("acceptDay") or "")),
                    "kwh": self._to_float(rec.get("generationValue")),
                }
                for rec in records
            ]
        )

    async def realtime_power(self, external_id: ExternalId, day: date) -> Optional[float]:
        url = f"{self.config.CSI_BASE}/maintain-s/history/power/{external_id}/record"
        params = {"year": day.year, "month": day.month, "day": day.day}
        body = await self._request("GET", url, params=params, headers=self._headers()) or {}
        data = body.get("data")
        records = data.get("records") if isinstance(data, dict) else data
        if not isinstance(records, list):
            records = body.get("records") or []

        # Records are in time order; the last reading with a value is the current one
        for rec in reversed(records):
            power = self._to_float(rec.get("generationPower")) if isinstance(rec, dict) else None
            if power is not None:
                return power
        return None

    def history_months(self, today: date) -> List[YearMonth]:
        return months_back(today, self.config.HIST_MONTHS_BACK)
