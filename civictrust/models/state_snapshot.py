"""Persisted application state snapshot."""
from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class StateSnapshot(Base):
    """Single serialized copy of the whole application state, overwritten on each change."""

    __tablename__ = "state_snapshots"

    storage_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
