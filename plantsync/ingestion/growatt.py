"""Growatt server portal (form-encoded, cookie session)."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from plantsync.core.dates import YearMonth
from plantsync.core.errors import UpstreamUnavailable
from plantsync.core.logging import get_logger
from plantsync.schemas.plants import ExternalId, HistoryPoint, PlantMetrics, ProviderPlant
from .base import BROWSER_UA, ProviderAdapter

log = get_logger("ingestion.growatt")

MAX_PAGES = 100

# Tenants expose the plant list under different paths
LIST_PATHS = (
    "/selectPlant/getPlantListAjax",
    "/selectPlant/plantListAjax",
    "/selectPlant/getPlantList",
    "/selectPlant",
)


class GrowattProvider(ProviderAdapter):
    """Snapshot-only provider: no per-day endpoint and no monthly history."""

    name = "growatt"

    @property
    def tz(self) -> str:
        return self.config.GROWATT_TZ

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
            "Origin": self.config.GROWATT_BASE,
            "Referer": self.config.GROWATT_REFERER,
            "X-Requested-With": "XMLHttpRequest",
            "User-Agent": BROWSER_UA,
        }
        if self.config.GROWATT_COOKIE:
            headers["Cookie"] = self.config.GROWATT_COOKIE.strip()
        return headers

    def _form(self, page: int) -> Dict[str, str]:
        return {
            "currPage": str(page),
            "plantType": "-1",
            "orderType": "2",
            "plantName": "",
            "pageSize": str(self.config.GROWATT_PAGE_SIZE),
        }

    async def _post_page(self, url: str, page: int) -> Dict[str, Any]:
        body = await self._request("POST", url, data=self._form(page), headers=self._headers())
        return body if isinstance(body, dict) else {}

    async def _first_page(self) -> tuple[str, Dict[str, Any]]:
        last_error: Optional[UpstreamUnavailable] = None
        for path in LIST_PATHS:
            url = f"{self.config.GROWATT_BASE}{path}"
            try:
                return url, await self._post_page(url, 1)
            except UpstreamUnavailable as exc:
                log.debug(f"Growatt endpoint {path} rejected the listing: {exc}")
                last_error = exc
        raise last_error or UpstreamUnavailable(self.name, "no plant list endpoint answered")

    async def list_plants(self) -> List[ProviderPlant]:
        url, first = await self._first_page()
        rows: List[Dict[str, Any]] = list(first.get("datas") or [])
        total_pages = int(first.get("pages") or 1)

        page = 2
        while rows and page <= min(total_pages, MAX_PAGES):
            batch = (await self._post_page(url, page)).get("datas") or []
            if not batch:
                break
            rows.extend(batch)
            page += 1

        plants = [self._to_plant(row) for row in rows if row.get("id")]
        log.info(f"Fetched {len(plants)} plants from Growatt")
        return plants

    def _to_plant(self, row: Dict[str, Any]) -> ProviderPlant:
        online = self._to_float(row.get("onlineNum"))
        return ProviderPlant(
            provider=self.name,
            external_id=str(row["id"]),
            raw_name=row.get("plantName") or "",
            metrics=PlantMetrics(
                daily_energy=self._to_float(row.get("eToday")),
                instant_power=self._to_float(row.get("currentPac")),
                status_code=None if online is None else int(online > 0),
                timezone=self.tz,
            ),
        )

    async def daily_energy(self, external_id: ExternalId, day: date) -> float:
        raise UpstreamUnavailable(self.name, "no per-plant day endpoint")

    async def month_history(self, external_id: ExternalId, year: int, month: int) -> List[HistoryPoint]:
        return []

    def history_months(self, today: date) -> List[YearMonth]:
        return []
