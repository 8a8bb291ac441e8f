"""Durable storage of the application state snapshot."""
from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from civictrust.db import session_scope
from civictrust.models.state_snapshot import StateSnapshot
from civictrust.schemas.state import AppState

logger = logging.getLogger(__name__)


class StateStore:
    """Keeps one JSON snapshot row per storage key, overwritten wholesale."""

    def __init__(self, session_factory: sessionmaker[Session], storage_key: str) -> None:
        self._session_factory = session_factory
        self.storage_key = storage_key

    def load(self) -> AppState | None:
        """Return the stored state, or ``None`` when missing or unreadable."""

        try:
            with self._session_factory() as db:
                row = db.scalar(select(StateSnapshot).where(StateSnapshot.storage_key == self.storage_key))
                if row is None:
                    return None
                payload = row.payload_json
            return AppState.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Stored state snapshot does not match the state schema, starting fresh",
                extra={"storage_key": self.storage_key, "errors": exc.error_count()},
            )
        except ValueError:
            # Column content that is not valid JSON at all.
            logger.warning("Stored state snapshot is not valid JSON, starting fresh", extra={"storage_key": self.storage_key})
        return None

    def save(self, state: AppState) -> int:
        """Persist the state and return the new revision number."""

        payload = state.model_dump(mode="json")
        with session_scope(self._session_factory) as db:
            row = db.scalar(select(StateSnapshot).where(StateSnapshot.storage_key == self.storage_key))
            if row is None:
                row = StateSnapshot(storage_key=self.storage_key, payload_json=payload, revision=1)
                db.add(row)
            else:
                row.payload_json = payload
                row.revision += 1
            db.flush()
            revision = row.revision
        logger.debug("State snapshot saved", extra={"storage_key": self.storage_key, "revision": revision})
        return revision

    def clear(self) -> None:
        with session_scope(self._session_factory) as db:
            row = db.scalar(select(StateSnapshot).where(StateSnapshot.storage_key == self.storage_key))
            if row is not None:
                db.delete(row)


__all__ = ["StateStore"]
