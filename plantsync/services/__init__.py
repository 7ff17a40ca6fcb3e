# Services package
from plantsync.services.backfill import BackfillReconciler
from plantsync.services.data_service import DataService
from plantsync.services.metric_resolver import MetricResolver
from plantsync.services.reconciler import Reconciler, reconcile
from plantsync.services.registry_service import RegistryService
from plantsync.services.sync_service import SyncService
from plantsync.services.telemetry import TelemetryService
from plantsync.services.upsert import Outcome, UpsertCoordinator

__all__ = [
    "BackfillReconciler",
    "DataService",
    "MetricResolver",
    "Outcome",
    "Reconciler",
    "RegistryService",
    "SyncService",
    "TelemetryService",
    "UpsertCoordinator",
    "reconcile",
]
