"""Read access to the local plant registry."""

from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from plantsync.models.plant import Plant
from plantsync.schemas.plants import RegistryPlant


class RegistryService:
    """Loads the registry fresh for every run; nothing is cached between runs."""

    def __init__(self, db: Session):
        self.db = db

    def list_plants(self) -> List[RegistryPlant]:
        stmt = select(Plant).order_by(Plant.id)
        return [RegistryPlant(id=p.id, display_name=p.name or "") for p in self.db.execute(stmt).scalars()]
