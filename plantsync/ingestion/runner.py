"""Concurrent collection of provider listings."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from plantsync.core.logging import get_logger
from plantsync.schemas.plants import ProviderPlant
from .base import ProviderAdapter

log = get_logger("ingestion.runner")


@dataclass
class ProviderListing:
    provider: str
    plants: List[ProviderPlant] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionRunner:
    """Fetches every provider's plant list at once; one outage never blocks the others."""

    def __init__(self, adapters: List[ProviderAdapter]):
        self.adapters = adapters

    async def run(self) -> Dict[str, ProviderListing]:
        results = await asyncio.gather(
            *(adapter.list_plants() for adapter in self.adapters),
            return_exceptions=True,
        )

        listings: Dict[str, ProviderListing] = {}
        for adapter, result in zip(self.adapters, results):
            if isinstance(result, Exception):
                log.error(f"Provider={adapter.name} listing failed: {result}")
                listings[adapter.name] = ProviderListing(adapter.name, error=str(result))
            elif isinstance(result, BaseException):
                raise result
            else:
                log.info(f"Provider={adapter.name} listed={len(result)}")
                listings[adapter.name] = ProviderListing(adapter.name, plants=result)
        return listings
