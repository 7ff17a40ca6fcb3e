from plantsync.models.base import Base
from plantsync.models.plant import Plant
from plantsync.models.generation import DailyGeneration
from plantsync.models.runs import SyncRun

__all__ = [
    "Base",
    "Plant",
    "DailyGeneration",
    "SyncRun",
]
