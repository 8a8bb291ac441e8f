"""Health check endpoint."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text

from civictrust.config import AppInfo, get_settings
from civictrust.core.runtime_state import is_scheduler_active, last_replay_at
from civictrust.db import get_engine
from civictrust.services.dispatcher import Dispatcher, get_dispatcher
from civictrust.services.remote import get_remote_stats

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


def _db_status() -> str:
    """Return 'ok' if the DB is reachable, 'error' otherwise."""

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


@router.get("", summary="Service health")
def healthcheck(dispatcher: Dispatcher = Depends(get_dispatcher)) -> dict:
    settings = get_settings()
    state = dispatcher.state
    db_status = _db_status()
    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "app": AppInfo().name,
        "version": AppInfo().version,
        "env": settings.APP_ENV,
        "db_status": db_status,
        "scheduler_active": is_scheduler_active(),
        "last_replay_at": last_replay_at(),
        "is_online": state.is_online,
        "pending_actions": len(state.pending_actions),
        "remote_sync_enabled": settings.remote_configured,
        "content_validator": settings.CONTENT_VALIDATOR_PROVIDER,
        "remote": get_remote_stats(),
    }
