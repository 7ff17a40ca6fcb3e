from typing import Dict, Optional, Type

import httpx

from plantsync.core.config import Settings
from plantsync.ingestion.base import ProviderAdapter
from plantsync.ingestion.csi import CSIProvider
from plantsync.ingestion.growatt import GrowattProvider
from plantsync.ingestion.phb import PHBProvider
from plantsync.ingestion.runner import IngestionRunner, ProviderListing
from plantsync.ingestion.sep import SEPProvider

PROVIDERS: Dict[str, Type[ProviderAdapter]] = {
    CSIProvider.name: CSIProvider,
    PHBProvider.name: PHBProvider,
    SEPProvider.name: SEPProvider,
    GrowattProvider.name: GrowattProvider,
}


def build_adapters(config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, ProviderAdapter]:
    """Adapters for the enabled providers, in ``SYNC_PROVIDERS`` order."""
    unknown = [name for name in config.SYNC_PROVIDERS if name not in PROVIDERS]
    if unknown:
        raise ValueError(f"Unknown providers in SYNC_PROVIDERS: {', '.join(unknown)}")
    return {name: PROVIDERS[name](config, transport=transport) for name in config.SYNC_PROVIDERS}


__all__ = [
    "PROVIDERS",
    "ProviderAdapter",
    "ProviderListing",
    "IngestionRunner",
    "build_adapters",
]
