"""Sync entrypoint - Standalone script for running sync jobs.

Usage:
    python -m plantsync.sync_entrypoint                      # Daily sync for today
    python -m plantsync.sync_entrypoint daily yesterday      # Daily sync for yesterday
    python -m plantsync.sync_entrypoint history              # Monthly history backfill
"""

import asyncio
import sys

from plantsync.core.db import SessionLocal
from plantsync.core.logging import get_logger
from plantsync.services.sync_service import SyncService

logger = get_logger("sync_entrypoint")

JOBS = ("daily", "history")
DAYS = ("today", "yesterday")


async def run_job(job: str, day: str):
    with SessionLocal() as db:
        service = SyncService(db)
        if job == "history":
            return await service.run_history()
        return await service.run_daily(day)  # type: ignore[arg-type]


def main(argv=None):
    """Main entry point for sync jobs."""
    args = list(sys.argv[1:] if argv is None else argv)
    job = args[0] if args else "daily"
    day = args[1] if len(args) > 1 else "today"

    if job not in JOBS:
        logger.error(f"Invalid job: {job}. Must be one of: {', '.join(JOBS)}")
        sys.exit(1)
    if day not in DAYS:
        logger.error(f"Invalid day: {day}. Must be one of: {', '.join(DAYS)}")
        sys.exit(1)

    logger.info(f"Sync job starting: {job} {day if job == 'daily' else ''}".rstrip())
    summary = asyncio.run(run_job(job, day))
    logger.info(f"Sync job completed: {summary.model_dump_json(by_alias=True)}")

    # Exit with error code if every provider failed
    if summary.providers and all(stats.error for stats in summary.providers.values()):
        sys.exit(1)

    return summary


if __name__ == "__main__":
    main()
