"""Local plant registry. Owned by the back office; the sync only reads it."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from plantsync.models.base import Base


class Plant(Base):
    __tablename__ = "plants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Display name, matched against vendor names")
