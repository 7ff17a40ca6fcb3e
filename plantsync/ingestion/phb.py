"""PHB (SEMS based) monitoring portal."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from plantsync.core.dates import YearMonth, end_of_month, months_back, parse_day
from plantsync.core.logging import get_logger
from plantsync.schemas.plants import ExternalId, HistoryPoint, PlantMetrics, ProviderPlant
from .base import BROWSER_UA, ProviderAdapter

log = get_logger("ingestion.phb")

MAX_PAGES = 200


def extract_weather(weather: Any) -> Tuple[Optional[str], Optional[float]]:
    """Condition text and temperature from the portal's HeWeather6 block."""
    if not isinstance(weather, dict):
        return None, None
    blocks = weather.get("HeWeather6") or []
    now = blocks[0].get("now") if blocks and isinstance(blocks[0], dict) else None
    if not isinstance(now, dict):
        return None, None
    return now.get("cond_txt"), ProviderAdapter._to_float(now.get("tmp"))


class PHBProvider(ProviderAdapter):
    name = "phb"

    @property
    def tz(self) -> str:
        return self.config.PHB_TZ

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, */*; q=0.01",
            "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
            "User-Agent": BROWSER_UA,
            "Content-Type": "application/json",
            "Origin": self.config.PHB_ORIGIN,
            "Referer": self.config.PHB_REFERER,
            "X-Requested-With": "XMLHttpRequest",
        }
        if self.config.PHB_COOKIE:
            headers["Cookie"] = self.config.PHB_COOKIE
        if self.config.PHB_TOKEN:
            headers["Token"] = self.config.PHB_TOKEN
        bearer = self._bearer(self.config.PHB_BEARER)
        if bearer:
            headers["Authorization"] = bearer
        return headers

    def _charts_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "Content-Type": "application/json",
            "Origin": self.config.PHB_ORIGIN,
            "Referer": self.config.PHB_REFERER,
            "User-Agent": BROWSER_UA,
        }
        if self.config.PHB_COOKIE:
            headers["Cookie"] = self.config.PHB_COOKIE
        # The charts host expects the token header in lowercase
        if self.config.PHB_TOKEN:
            headers["token"] = self.config.PHB_TOKEN
        if self.config.PHB_NEUTRAL:
            headers["neutral"] = "1"
        return headers

    def _search_payload(self, page: int) -> Dict[str, Any]:
        return {
            "adcode": "",
            "condition": "",
            "key": "",
            "orderby": "",
            "org_id": self.config.PHB_ORG_ID,
            "page_index": page,
            "page_size": self.config.PHB_PAGE_SIZE,
            "powerstation_id": "",
            "powerstation_status": "",
            "powerstation_type": "",
        }

    async def list_plants(self) -> List[ProviderPlant]:
        url = f"{self.config.PHB_BASE}/api/PowerStationMonitor/QueryPowerStationMonitor"
        rows: List[Dict[str, Any]] = []
        page = 1

        while page <= MAX_PAGES:
            body = await self._request("POST", url, json=self._search_payload(page), headers=self._headers()) or {}
            if body.get("hasError") or body.get("code") != 0:
                log.warning(f"PHB listing stopped on page {page}: code={body.get('code')} msg={body.get('msg')}")
                break

            batch = (body.get("data") or {}).get("list") or []
            rows.extend(batch)
            if len(batch) < self.config.PHB_PAGE_SIZE:
                break
            page += 1

        plants = [self._to_plant(row) for row in rows if row.get("powerstation_id")]
        log.info(f"Fetched {len(plants)} stations from PHB")
        return plants

    def _to_plant(self, row: Dict[str, Any]) -> ProviderPlant:
        condition, temperature = extract_weather(row.get("weather"))
        return ProviderPlant(
            provider=self.name,
            external_id=str(row["powerstation_id"]),
            raw_name=row.get("stationname") or "",
            metrics=PlantMetrics(
                daily_energy=self._to_float(row.get("eday")),
                instant_power=self._to_float(row.get("pac")),
                temperature_c=temperature,
                weather=condition,
                income=self._to_float(row.get("eday_income")),
                status_code=row.get("status"),
                timezone=self.tz,
            ),
        )

    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        """The charts endpoint returns a sliding window; anchor it on the month's last day."""
        url = f"{self.config.PHB_CHARTS_BASE}/api/v2/Charts/GetChartByPlant"
        payload = {
            "id": str(external_id),
            "date": end_of_month(year, month).isoformat(),
            "range": 2,
            "chartIndexId": "3",
            "isDetailFull": "",
        }
        body = await self._request("POST", url, json=payload, headers=self._charts_headers()) or {}
        if str(body.get("code")) != "0" or body.get("hasError"):
            return []

        line = next(
            (
                ln
                for ln in (body.get("data") or {}).get("lines") or []
                if "pvgeneration" in (ln.get("name") or "").lower() or "generation" in (ln.get("label") or "").lower()
            ),
            None,
        )
        if not line:
            return []

        points = self._points([{"day": parse_day(str(p.get("x") or "")), "kwh": self._to_float(p.get("y"))} for p in line.get("xy") or []])
        return [p for p in points if (p.day.year, p.day.month) == (year, month)]

    def history_months(self, today: date) -> List[YearMonth]:
        return months_back(today, self.config.HIST_MONTHS_BACK)
