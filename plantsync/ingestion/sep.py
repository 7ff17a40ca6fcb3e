"""SEP (smart energy) portal."""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List

from plantsync.core.dates import YearMonth, months_since, parse_day
from plantsync.core.logging import get_logger
from plantsync.schemas.plants import ExternalId, HistoryPoint, PlantMetrics, ProviderPlant
from .base import BROWSER_UA, ProviderAdapter

log = get_logger("ingestion.sep")

MAX_PAGES = 200

SEARCH_FILTER: Dict[str, Any] = {
    "area": None,
    "city": None,
    "country": None,
    "favorite": None,
    "plantName": "",
    "plantTypes": None,
    "province": None,
    "queryCapacityMax": None,
    "queryCapacityMin": None,
    "status": None,
    "street": None,
    "systemTypes": None,
    "tagId": [],
}


def extract_list(body: Any) -> List[Dict[str, Any]]:
    """The page endpoint wraps its rows differently per tenant."""
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []
    data = body.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("list", "records", "rows"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


class SEPProvider(ProviderAdapter):
    name = "sep"

    @property
    def tz(self) -> str:
        return self.config.SEP_TZ

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": "pt-BR",
            "Content-Type": "application/json;charset=UTF-8",
            "Origin": self.config.SEP_ORIGIN,
            "Referer": self.config.SEP_REFERER,
            "User-Agent": BROWSER_UA,
        }
        bearer = self._bearer(self.config.SEP_BEARER)
        if bearer:
            headers["Authorization"] = bearer
        if self.config.SEP_APPVERSION:
            headers["appVersion"] = self.config.SEP_APPVERSION
        return headers

    def _search_filter(self) -> Dict[str, Any]:
        search = dict(SEARCH_FILTER)
        raw = (self.config.SEP_PAYLOAD or "").strip()
        if raw:
            try:
                search.update(json.loads(raw))
            except ValueError:
                log.warning("SEP_PAYLOAD is not valid JSON; using the default filter")
        return search

    async def list_plants(self) -> List[ProviderPlant]:
        url = f"{self.config.SEP_BASE}/api/bps/plant/page"
        size = self.config.SEP_PAGE_SIZE
        search = self._search_filter()
        rows: List[Dict[str, Any]] = []

        for page in range(1, MAX_PAGES + 1):
            payload = {
                "currentPage": page,
                "pageSize": size,
                "orderByPropertyName": None,
                "orderByRule": 2,
                "data": search,
            }
            batch = extract_list(await self._request("POST", url, json=payload, headers=self._headers()))
            log.debug(f"SEP page={page} -> {len(batch)} items")
            rows.extend(batch)
            if len(batch) < size:
                break

        plants = [self._to_plant(row) for row in rows if row.get("plantId") is not None]
        log.info(f"Fetched {len(plants)} plants from SEP")
        return plants

    def _to_plant(self, row: Dict[str, Any]) -> ProviderPlant:
        return ProviderPlant(
            provider=self.name,
            external_id=row["plantId"],
            raw_name=row.get("plantName") or "",
            metrics=PlantMetrics(
                daily_energy=self._to_float(row.get("dayElectric")),
                instant_power=self._to_float(row.get("realTimePower")),
                weather=row.get("weatherLabel"),
                status_code=row.get("status"),
                business_status=row.get("statusName"),
                last_update_epoch=self._to_epoch(row.get("lastReportTimeOrigin") or row.get("lastReportTime")),
                timezone=row.get("timeZone") or self.tz,
            ),
        )

    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        url = f"{self.config.SEP_BASE}/api/bps/plant/power/histogram"
        headers = {**self._headers(), "X-Plant-Id": str(external_id)}
        params = {"type": self.config.SEP_HIST_TYPE, "date": f"{year}-{month:02d}"}
        body = await self._request("GET", url, params=params, headers=headers) or {}
        rows = body.get("data") if isinstance(body, dict) else None
        if not isinstance(rows, list):
            return []
        return self._points([{"day": parse_day(str(r.get("time") or "")), "kwh": self._to_float(r.get("data"))} for r in rows])

    def history_months(self, today: date) -> List[YearMonth]:
        return months_since(today, self.config.SEP_HISTORY_ANCHOR_MONTH)
