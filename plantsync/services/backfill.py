"""Monthly history backfill with epsilon-guarded overwrites."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import List, Mapping, Tuple, Union

from plantsync.core.config import Settings
from plantsync.core.dates import YearMonth
from plantsync.core.errors import ErrorKind, PersistenceFailure
from plantsync.core.logging import get_logger
from plantsync.ingestion.base import ProviderAdapter
from plantsync.ingestion.runner import ProviderListing
from plantsync.schemas.api import HistoryDiff, HistoryError, HistorySyncSummary, ProviderHistoryStats
from plantsync.schemas.plants import HistoryPoint, Match
from plantsync.services.reconciler import Reconciler
from plantsync.services.upsert import UpsertCoordinator

MonthResult = Union[List[HistoryPoint], BaseException]


def month_label(ym: YearMonth) -> str:
    return f"{ym[0]:04d}-{ym[1]:02d}"


class BackfillReconciler:
    """Re-reads monthly series and corrects stored values that drifted.

    A stored value is overwritten when it is missing or differs from the
    provider's by at least ``HIST_EPSILON`` kWh. Months of one plant are
    fetched concurrently (bounded); writes happen one plant-day at a time.
    """

    def __init__(
        self,
        upserter: UpsertCoordinator,
        adapters: Mapping[str, ProviderAdapter],
        config: Settings,
        run_id: str = "-",
    ):
        self.upserter = upserter
        self.adapters = adapters
        self.config = config
        self.log = get_logger("backfill", run_id=run_id)

    async def run(
        self,
        summary: HistorySyncSummary,
        reconciler: Reconciler,
        listings: Mapping[str, ProviderListing],
        today: date,
    ) -> HistorySyncSummary:
        for name, adapter in self.adapters.items():
            listing = listings.get(name) or ProviderListing(name, error="not listed")
            stats = summary.providers.setdefault(name, ProviderHistoryStats())
            months = adapter.history_months(today)
            summary.windows[name] = [month_label(ym) for ym in months]

            if not listing.ok:
                stats.error = listing.error
                continue

            result = reconciler.reconcile(listing.plants)
            stats.total = len(listing.plants)
            stats.matched = len(result.matches)

            if not months:
                self.log.info(f"Provider={name} has no history window; skipping backfill")
                continue

            for match in result.matches:
                fetched = await self._fetch_months(adapter, match, months)
                for ym, outcome in fetched:
                    self._apply(summary, stats, match, ym, outcome, today)

            self.log.info(f"Provider={name} backfill updated={stats.updated} skipped={stats.skipped}")

        return summary

    async def _fetch_months(
        self, adapter: ProviderAdapter, match: Match, months: List[YearMonth]
    ) -> List[Tuple[YearMonth, MonthResult]]:
        semaphore = asyncio.Semaphore(self.config.history_concurrency)
        timeout = self.config.HTTP_TIMEOUT_SECONDS

        async def fetch(ym: YearMonth) -> List[HistoryPoint]:
            async with semaphore:
                return await asyncio.wait_for(adapter.month_history(match.external_id, *ym), timeout=timeout)

        results = await asyncio.gather(*(fetch(ym) for ym in months), return_exceptions=True)
        return list(zip(months, results))

    def _apply(
        self,
        summary: HistorySyncSummary,
        stats: ProviderHistoryStats,
        match: Match,
        ym: YearMonth,
        outcome: MonthResult,
        today: date,
    ) -> None:
        label = month_label(ym)
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            error = str(outcome) or type(outcome).__name__
            self.log.warning(f"{match.provider}:{match.external_id} {label} history failed: {error}")
            kind = getattr(outcome, "kind", None) or ErrorKind.UPSTREAM_UNAVAILABLE
            summary.errors.append(self._error(match, label, error, kind))
            return

        for point in outcome:
            # Days after today are still open on the vendor side.
            if point.day > today:
                continue
            try:
                written, previous = self.upserter.persist_history_point(
                    match.registry_id,
                    point.day,
                    point.kwh,
                    self.config.HIST_EPSILON,
                    timezone=self.config.SYNC_TZ,
                )
            except PersistenceFailure as exc:
                summary.errors.append(self._error(match, label, str(exc), exc.kind))
                continue

            if not written:
                stats.skipped += 1
                self.log.debug(f"{match.registry_name} {point.day} unchanged ({previous} ~ {point.kwh})")
                continue

            stats.updated += 1
            summary.diffs.append(
                HistoryDiff(
                    source=match.provider,
                    plant_name=match.registry_name,
                    date=point.day,
                    previous_value=previous,
                    new_value=point.kwh,
                )
            )

    @staticmethod
    def _error(match: Match, month: str, error: str, kind: ErrorKind) -> HistoryError:
        return HistoryError(
            source=match.provider,
            plant=match.registry_name,
            external_id=str(match.external_id),
            month=month,
            kind=kind,
            error=error,
        )
