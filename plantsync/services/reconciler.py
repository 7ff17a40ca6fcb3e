"""Name-based reconciliation of provider listings against the registry."""

from __future__ import annotations

from typing import Dict, Iterable, List, Set

from plantsync.core.logging import get_logger
from plantsync.core.naming import canonicalize, similarity
from plantsync.schemas.plants import Match, ProviderPlant, ReconcileResult, RegistryPlant

log = get_logger("reconciler")


class Reconciler:
    """Matches provider plants to registry plants by exact canonical key.

    The registry index is built once in the constructor and only read
    afterwards. When two registry plants share a canonical key the later one
    wins; the overwritten names are kept in ``collisions`` so the run report
    can surface them.

    Usage:
        reconciler = Reconciler(registry)
        result = reconciler.reconcile(csi_plants)
        result = reconciler.reconcile(phb_plants)  # duplicates tracked per call
    """

    def __init__(self, registry: Iterable[RegistryPlant]):
        self.index: Dict[str, RegistryPlant] = {}
        self.collisions: List[str] = []
        self.registry_total = 0

        for plant in registry:
            self.registry_total += 1
            key = canonicalize(plant.display_name)
            if not key:
                continue
            previous = self.index.get(key)
            if previous is not None:
                log.warning(f"Registry plants {previous.id} '{previous.display_name}' and {plant.id} '{plant.display_name}' share key '{key}'; keeping {plant.id}")
                self.collisions.append(previous.display_name)
            self.index[key] = plant

    def reconcile(self, provider_plants: Iterable[ProviderPlant]) -> ReconcileResult:
        """Classify one provider's listing into matches, unmatched and duplicates.

        Listing order decides which of two same-key entries is the duplicate.
        Empty keys are skipped without being reported.
        """
        result = ReconcileResult()
        seen: Set[str] = set()

        for item in provider_plants:
            key = canonicalize(item.raw_name)
            if not key:
                continue

            if key in seen:
                result.duplicates.append(item.raw_name)
                continue
            seen.add(key)

            plant = self.index.get(key)
            if plant is None:
                result.unmatched.append(item.raw_name)
                continue

            result.matches.append(
                Match(
                    registry_id=plant.id,
                    registry_name=plant.display_name,
                    provider=item.provider,
                    external_id=item.external_id,
                    external_name=item.raw_name,
                    aux_weather=item.metrics.weather,
                )
            )

        log.info(f"Reconciled: matched={len(result.matches)} unmatched={len(result.unmatched)} duplicates={len(result.duplicates)}")
        return result

    def closest(self, raw_name: str) -> tuple[RegistryPlant | None, float]:
        """Most similar registry plant for manual review; never used for matching."""
        best, best_score = None, 0.0
        for plant in self.index.values():
            score = similarity(raw_name, plant.display_name)
            if score > best_score:
                best, best_score = plant, score
        return best, best_score


def reconcile(registry: Iterable[RegistryPlant], provider_plants: Iterable[ProviderPlant]) -> ReconcileResult:
    return Reconciler(registry).reconcile(provider_plants)
