"""Daily sync and history backfill orchestration."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from plantsync.core.config import Settings, settings
from plantsync.core.dates import DayContext, DaySelector, day_context, local_today
from plantsync.core.errors import ErrorKind
from plantsync.core.logging import get_logger
from plantsync.core.naming import canonicalize
from plantsync.ingestion import IngestionRunner, ProviderAdapter, build_adapters
from plantsync.ingestion.runner import ProviderListing
from plantsync.models.runs import SyncRun
from plantsync.schemas.api import (
    DailySyncSummary,
    HistorySyncSummary,
    PerItemError,
    ProviderDailyStats,
    ReviewCandidate,
    ReviewResponse,
)
from plantsync.schemas.plants import Match, ProviderPlant
from plantsync.services.backfill import BackfillReconciler
from plantsync.services.metric_resolver import EnergyResolution, MetricResolver
from plantsync.services.reconciler import Reconciler
from plantsync.services.registry_service import RegistryService
from plantsync.services.upsert import UpsertCoordinator

Candidate = Tuple[Match, ProviderPlant]


class SyncService:
    """Runs one daily sync or one history backfill.

    Responsibilities:
    - Track every run in ``sync_runs``
    - Fetch provider listings concurrently and reconcile them by name
    - Resolve and persist one plant-day at a time
    - Turn every recoverable failure into a report entry

    Only a registry read failure propagates; the caller answers 500.
    """

    def __init__(
        self,
        db: Session,
        config: Settings = settings,
        adapters: Optional[Mapping[str, ProviderAdapter]] = None,
    ):
        self.db = db
        self.config = config
        self.adapters = adapters if adapters is not None else build_adapters(config)

    # -------------------------------------------------------------------------
    # Run bookkeeping
    # -------------------------------------------------------------------------
    def _start_run(self, kind: str) -> SyncRun:
        run = SyncRun(kind=kind, status="running", records_processed=0)
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        return run

    def _finish_run(
        self,
        run: SyncRun,
        status: str,
        records: int = 0,
        summary: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        if error is not None:
            self.db.rollback()
        run.status = status
        run.records_processed = records
        run.meta = summary
        run.error_message = error
        run.ended_at = datetime.now(timezone.utc)
        self.db.add(run)
        self.db.commit()

    def _load_registry(self, run: SyncRun, log) -> Reconciler:
        try:
            registry = RegistryService(self.db).list_plants()
        except Exception as exc:
            log.error(f"Registry read failed: {exc}")
            self._finish_run(run, "failure", error=f"registry read failed: {exc}")
            raise
        log.info(f"Registry loaded: {len(registry)} plants")
        return Reconciler(registry)

    async def _list_all(self) -> Dict[str, ProviderListing]:
        return await IngestionRunner(list(self.adapters.values())).run()

    # -------------------------------------------------------------------------
    # Daily sync
    # -------------------------------------------------------------------------
    async def run_daily(self, selector: DaySelector = "today", now: Optional[datetime] = None) -> DailySyncSummary:
        ctx = day_context(selector, self.config.SYNC_TZ, now)
        run = self._start_run("daily")
        log = get_logger("sync_service", run_id=str(run.run_id))
        log.info(f"Daily sync started for {ctx.day} ({ctx.selector})")

        reconciler = self._load_registry(run, log)
        summary = DailySyncSummary(
            run_id=str(run.run_id),
            date=ctx.day,
            day_selector=ctx.selector,
            registry_total=reconciler.registry_total,
            registry_collisions=list(reconciler.collisions),
        )

        try:
            listings = await self._list_all()
            candidates = self._collect(summary, reconciler, listings)

            resolver = MetricResolver(self.adapters, self.config)
            upserter = UpsertCoordinator(self.db)
            for registry_id, plant_candidates in candidates.items():
                await self._sync_plant(summary, resolver, upserter, ctx, registry_id, plant_candidates)
        except Exception as exc:
            log.error(f"Daily sync failed: {exc}")
            self._finish_run(run, "failure", summary.saved, error=str(exc))
            raise

        self._finish_run(run, "success", summary.saved, summary.model_dump(mode="json", by_alias=True))
        log.info(
            f"Daily sync finished: saved={summary.saved} skipped={summary.skipped} failed={summary.failed} "
            f"not_found={len(summary.not_found)} duplicates={len(summary.duplicate_keys)}"
        )
        return summary

    def _collect(
        self,
        summary: DailySyncSummary,
        reconciler: Reconciler,
        listings: Mapping[str, ProviderListing],
    ) -> Dict[int, List[Candidate]]:
        """Reconcile every listing; group matches per registry plant in provider order."""
        candidates: Dict[int, List[Candidate]] = {}
        for name in self.adapters:
            listing = listings.get(name) or ProviderListing(name, error="not listed")
            stats = summary.providers.setdefault(name, ProviderDailyStats())
            if not listing.ok:
                stats.error = listing.error
                continue

            stats.total = len(listing.plants)
            snapshots = {str(plant.external_id): plant for plant in listing.plants}
            result = reconciler.reconcile(listing.plants)
            stats.matched = len(result.matches)
            summary.not_found.extend(result.unmatched)
            summary.duplicate_keys.extend(result.duplicates)

            for match in result.matches:
                candidates.setdefault(match.registry_id, []).append((match, snapshots[str(match.external_id)]))
        return candidates

    async def _sync_plant(
        self,
        summary: DailySyncSummary,
        resolver: MetricResolver,
        upserter: UpsertCoordinator,
        ctx: DayContext,
        registry_id: int,
        candidates: List[Candidate],
    ) -> None:
        """First provider (``SYNC_PROVIDERS`` order) with a resolved energy value wins."""
        attempts: List[Tuple[Match, EnergyResolution]] = []
        winner: Optional[Tuple[Match, EnergyResolution]] = None
        for match, snapshot in candidates:
            resolution = await resolver.resolve_daily_energy(match, snapshot, ctx)
            attempts.append((match, resolution))
            if resolution.resolved:
                winner = (match, resolution)
                break

        if winner is None:
            summary.skipped += 1
            for match, resolution in attempts:
                summary.per_item_errors.append(
                    _item_error(match, ErrorKind.UNRESOLVED_METRIC, "; ".join(resolution.reasons) or "no energy value")
                )
            return

        match, resolution = winner
        fields: Dict[str, Any] = {"energy_kwh": resolution.value}
        # Snapshot telemetry describes the current day only.
        if ctx.is_today:
            fields.update(resolver.merge_fields({m.provider: snap for m, snap in candidates}))
        else:
            fields["timezone"] = ctx.tz

        outcome = upserter.persist(registry_id, ctx.day, fields, provider=match.provider, external_id=match.external_id)
        if outcome.status == "saved":
            summary.saved += 1
            summary.providers[match.provider].saved += 1
        elif outcome.status == "skipped":
            summary.skipped += 1
            summary.per_item_errors.append(_item_error(match, ErrorKind.UNRESOLVED_METRIC, outcome.reason or "no energy value"))
        else:
            summary.failed += 1
            summary.per_item_errors.append(_item_error(match, ErrorKind.PERSISTENCE_FAILURE, outcome.reason or "persist failed"))

    # -------------------------------------------------------------------------
    # History backfill
    # -------------------------------------------------------------------------
    async def run_history(self, now: Optional[datetime] = None) -> HistorySyncSummary:
        today = local_today(self.config.SYNC_TZ, now)
        run = self._start_run("history")
        run_id = str(run.run_id)
        log = get_logger("sync_service", run_id=run_id)
        log.info(f"History backfill started at {today} epsilon={self.config.HIST_EPSILON}")

        reconciler = self._load_registry(run, log)
        summary = HistorySyncSummary(run_id=run_id, now=today, epsilon=self.config.HIST_EPSILON)

        try:
            listings = await self._list_all()
            backfill = BackfillReconciler(UpsertCoordinator(self.db), self.adapters, self.config, run_id=run_id)
            await backfill.run(summary, reconciler, listings, today)
        except Exception as exc:
            log.error(f"History backfill failed: {exc}")
            self._finish_run(run, "failure", len(summary.diffs), error=str(exc))
            raise

        self._finish_run(run, "success", len(summary.diffs), summary.model_dump(mode="json", by_alias=True))
        log.info(f"History backfill finished: diffs={len(summary.diffs)} errors={len(summary.errors)}")
        return summary

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------
    async def review(self, provider: str) -> ReviewResponse:
        """Unmatched names of one provider with their closest registry plant.

        Raises ``KeyError`` for a provider that is not enabled and
        ``UpstreamUnavailable`` when the listing fails.
        """
        adapter = self.adapters[provider]
        reconciler = Reconciler(RegistryService(self.db).list_plants())
        plants = await adapter.list_plants()
        result = reconciler.reconcile(plants)

        unmatched = []
        for raw_name in result.unmatched:
            best, score = reconciler.closest(raw_name)
            unmatched.append(
                ReviewCandidate(
                    raw_name=raw_name,
                    canonical_key=canonicalize(raw_name),
                    best_registry_id=best.id if best else None,
                    best_registry_name=best.display_name if best else None,
                    similarity=round(score, 4),
                )
            )
        unmatched.sort(key=lambda c: c.similarity, reverse=True)
        return ReviewResponse(provider=provider, total=len(plants), matched=len(result.matches), unmatched=unmatched)


def _item_error(match: Match, kind: ErrorKind, error: str) -> PerItemError:
    return PerItemError(
        plant=match.registry_name,
        registry_id=match.registry_id,
        provider=match.provider,
        external_id=str(match.external_id),
        kind=kind,
        error=error,
    )
