from pathlib import Path
from contextlib import asynccontextmanager
import asyncio
from typing import Optional

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from plantsync.api.routes import data, health, providers, stats, sync
from plantsync.core.config import settings
from plantsync.core.db import SessionLocal
from plantsync.core.errors import AuthorizationFailure
from plantsync.core.logging import get_logger
from plantsync.services.sync_service import SyncService


log = get_logger("app")

# Background task handle
_sync_task: Optional[asyncio.Task] = None


def run_migrations() -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


async def run_daily_sync() -> None:
    """Run one daily sync for today."""
    db = SessionLocal()
    try:
        summary = await SyncService(db).run_daily("today")
        log.info(f"Scheduled sync saved={summary.saved} skipped={summary.skipped} failed={summary.failed}")
    except Exception as exc:
        log.exception(f"Scheduled sync failed: {exc}")
    finally:
        db.close()


async def scheduled_sync_task() -> None:
    """Background task that runs the daily sync at the configured interval."""
    interval = settings.SYNC_INTERVAL_SECONDS
    log.info(f"Scheduled sync task started (interval: {interval}s)")

    while True:
        try:
            await run_daily_sync()
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            log.info("Scheduled sync task cancelled")
            break


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _sync_task

    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, cron key required")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup
    try:
        run_migrations()
    except Exception:
        log.exception("Failed to apply migrations on startup")
        raise

    if settings.SYNC_SCHEDULE_ENABLED:
        log.info("Starting scheduled sync background task...")
        _sync_task = asyncio.create_task(scheduled_sync_task())
    else:
        log.info("Scheduled sync is disabled (SYNC_SCHEDULE_ENABLED=false); use /cron/daily")

    yield

    # Shutdown
    if _sync_task:
        log.info("Cancelling scheduled sync task...")
        _sync_task.cancel()
        try:
            await _sync_task
        except asyncio.CancelledError:
            pass

    log.info("Application shutdown complete")


app = FastAPI(
    title="PlantSync",
    description="Daily solar generation sync across vendor monitoring portals",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.debug_enabled,
)


@app.exception_handler(AuthorizationFailure)
async def unauthorized_handler(request: Request, exc: AuthorizationFailure) -> JSONResponse:
    log.warning(f"Rejected {request.method} {request.url.path}: missing or invalid cron key")
    return JSONResponse(status_code=401, content={"ok": False, "error": "unauthorized"})


app.include_router(data.router)
app.include_router(health.router)
app.include_router(providers.router)
app.include_router(stats.router)
app.include_router(sync.router)
