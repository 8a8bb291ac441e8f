"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

_scheduler_active = False
_last_replay_at: str | None = None


def set_scheduler_active(active: bool) -> None:
    global _scheduler_active
    _scheduler_active = active


def is_scheduler_active() -> bool:
    return _scheduler_active


def mark_replay(timestamp: str) -> None:
    global _last_replay_at
    _last_replay_at = timestamp


def last_replay_at() -> str | None:
    return _last_replay_at
