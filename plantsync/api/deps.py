"""API dependencies"""

import hmac
from typing import Dict, Generator, Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from plantsync.core.config import Settings, settings
from plantsync.core.db import SessionLocal
from plantsync.core.errors import AuthorizationFailure
from plantsync.ingestion import ProviderAdapter, build_adapters


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_config() -> Settings:
    return settings


def get_adapters(config: Settings = Depends(get_config)) -> Dict[str, ProviderAdapter]:
    return build_adapters(config)


def verify_cron_key(
    key: Optional[str] = Query(None, description="Shared secret"),
    x_cron_key: Optional[str] = Header(None),
    config: Settings = Depends(get_config),
) -> None:
    """Reject trigger calls without the shared secret.

    With no ``CRON_KEY`` configured, development accepts every call and
    production rejects every call.
    """
    if not config.cron_key_required:
        return
    supplied = key or x_cron_key
    if not config.CRON_KEY or not supplied or not hmac.compare_digest(supplied, config.CRON_KEY):
        raise AuthorizationFailure("unauthorized")
