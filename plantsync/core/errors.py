"""Error taxonomy for sync runs.

Only ``AuthorizationFailure`` ends a request before any work starts. The other
exceptions are raised close to where things go wrong and caught by the
services, which turn them into report entries tagged with an ``ErrorKind``.
Unmatched and duplicate names are not errors; they have their own lists in
the daily summary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UNRESOLVED_METRIC = "unresolved_metric"
    PERSISTENCE_FAILURE = "persistence_failure"


class PlantSyncError(Exception):
    """Base class for all sync errors."""

    kind: ErrorKind | None = None


class UpstreamUnavailable(PlantSyncError):
    """A vendor portal call failed (network, auth, non-2xx, bad envelope)."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class PersistenceFailure(PlantSyncError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class AuthorizationFailure(PlantSyncError):
    """The trigger request did not carry a valid shared secret."""
