from plantsync.api.routes.data import router as data_router
from plantsync.api.routes.health import router as health_router
from plantsync.api.routes.providers import router as providers_router
from plantsync.api.routes.stats import router as stats_router
from plantsync.api.routes.sync import router as sync_router

__all__ = ["data_router", "health_router", "providers_router", "stats_router", "sync_router"]
