"""Single owner of the application state: commits transitions and drives sync."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import BackgroundTasks

from civictrust.config import get_settings
from civictrust.core.runtime_state import mark_replay
from civictrust.db import get_sessionmaker
from civictrust.schemas.actions import PendingAction, VerifyCleanupPayload
from civictrust.schemas.auth import UserProfile
from civictrust.schemas.state import AppState
from civictrust.services import engine
from civictrust.services.remote import RemoteClient, fetch_bins, get_remote_client
from civictrust.services.state_store import StateStore
from civictrust.services.sync import sync_action
from civictrust.utils.errors import CivicError
from civictrust.utils.time import utcnow

logger = logging.getLogger(__name__)

REPLAY_DEVICE_ID = "offline-replay"


@dataclass(frozen=True)
class DispatchResult:
    action_id: str
    message: str
    queued: bool = False
    skipped: bool = False
    record_id: str | None = None

    @property
    def status(self) -> str:
        if self.queued:
            return "queued"
        return "skipped" if self.skipped else "applied"


def actor_of(action: PendingAction) -> str:
    payload = action.payload
    if isinstance(payload, VerifyCleanupPayload):
        return payload.verified_by
    return payload.user_id


class Dispatcher:
    """Holds the in-memory state behind a lock and persists every change.

    The lock only guards pure transitions and the local commit. Remote
    effects run afterwards, outside the lock, on the committed snapshot.
    """

    def __init__(
        self,
        store: StateStore,
        remote: RemoteClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = threading.Lock()
        self._store = store
        self._remote = remote
        self._clock = clock
        loaded = store.load()
        if loaded is None:
            loaded = engine.initial_state(clock())
            store.save(loaded)
            logger.info("Initialised fresh application state", extra={"storage_key": store.storage_key})
        self._state = loaded

    @property
    def state(self) -> AppState:
        return self._state

    def _commit(self, state: AppState) -> None:
        self._store.save(state)
        self._state = state

    def _transition(self, fn: Callable[[AppState], AppState]) -> AppState:
        with self._lock:
            updated = fn(self._state)
            if updated is not self._state:
                self._commit(updated)
            return self._state

    def run_action(self, action: PendingAction) -> DispatchResult:
        """Apply an action now, or queue it while offline."""

        with self._lock:
            if not self._state.is_online:
                self._commit(engine.enqueue_action(self._state, action))
                logger.info("Action queued while offline", extra={"action_id": action.id, "type": action.type.value})
                return DispatchResult(action_id=action.id, message="Queued for offline sync.", queued=True)

            try:
                result = engine.apply_action(self._state, action)
            except CivicError as exc:
                self._commit(engine.record_failure(self._state, action, exc, self._clock()))
                logger.info(
                    "Action failed",
                    extra={"action_id": action.id, "type": action.type.value, "code": exc.code},
                )
                raise

            if not result.skipped:
                self._commit(result.state)
        return DispatchResult(
            action_id=action.id,
            message=result.message,
            skipped=result.skipped,
            record_id=result.record_id,
        )

    def replay_pending(self) -> list[PendingAction]:
        """Drain the offline queue in FIFO order with the same reducer.

        Returns the actions that were actually applied so their effects can
        be synced. Failed actions are logged in the sync log and dropped.
        """

        applied: list[PendingAction] = []
        with self._lock:
            if not self._state.is_online or not self._state.pending_actions:
                return applied
            state = self._state
            for action in list(state.pending_actions):
                state = engine.dequeue_action(state, action.id)
                try:
                    result = engine.apply_action(state, action)
                except CivicError as exc:
                    state = engine.record_failure(state, action, exc, self._clock())
                    logger.info("Queued action failed on replay", extra={"action_id": action.id, "code": exc.code})
                    continue
                state = result.state
                if not result.skipped:
                    applied.append(action)
            self._commit(state)
        mark_replay(self._clock().isoformat())
        logger.info("Offline queue replayed", extra={"applied": len(applied)})
        return applied

    def set_connectivity(self, online: bool) -> AppState:
        return self._transition(lambda state: engine.set_connectivity(state, online, self._clock()))

    def review_alert(self, alert_id: str) -> AppState:
        return self._transition(lambda state: engine.review_fraud_alert(state, alert_id, self._clock()))

    def mark_redemption_used(self, redemption_id: str) -> AppState:
        return self._transition(lambda state: engine.mark_redemption_used(state, redemption_id, self._clock()))

    def expire_redemptions(self) -> list[str]:
        with self._lock:
            updated, expired = engine.expire_redemptions(self._state, self._clock())
            if expired:
                self._commit(updated)
        if expired:
            logger.info("Coupons expired", extra={"count": len(expired)})
        return expired

    async def sync_effects(self, action: PendingAction, *, user_id: str, device_id: str) -> None:
        """Replicate one committed action; never raises."""

        committed = self._state
        try:
            outcome = await sync_action(self._remote, action, committed, user_id=user_id, device_id=device_id)
        except Exception:  # noqa: BLE001
            logger.exception("Remote sync failed", extra={"action_id": action.id})
            return

        if outcome.geo is not None and not outcome.geo.valid:
            self._transition(
                lambda state: engine.record_server_geo_result(state, action.id, False, self._clock())
            )

    async def replay_and_sync(self) -> int:
        applied = self.replay_pending()
        for action in applied:
            await self.sync_effects(action, user_id=actor_of(action), device_id=REPLAY_DEVICE_ID)
        return len(applied)

    async def refresh_bins(self) -> AppState:
        """Replace the registry with the backend's bins, keeping local ones on failure."""

        bins = await fetch_bins(self._remote, self._state.bins)
        if bins is self._state.bins:
            return self._state

        def _apply(state: AppState) -> AppState:
            updated = state.model_copy(deep=True)
            updated.bins = bins
            return updated

        return self._transition(_apply)


def submit_action(
    dispatcher: Dispatcher,
    action: PendingAction,
    background_tasks: BackgroundTasks,
    profile: UserProfile,
) -> DispatchResult:
    """Run an action for a request and schedule its remote sync after the response."""

    result = dispatcher.run_action(action)
    if result.status == "applied":
        background_tasks.add_task(
            dispatcher.sync_effects, action, user_id=profile.id, device_id=profile.device_id
        )
    return result


_dispatcher: Dispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> Dispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""

    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            settings = get_settings()
            store = StateStore(get_sessionmaker(), settings.STATE_STORAGE_KEY)
            _dispatcher = Dispatcher(store, get_remote_client())
        return _dispatcher


def reset_dispatcher() -> None:
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = None


__all__ = ["Dispatcher", "DispatchResult", "actor_of", "submit_action", "get_dispatcher", "reset_dispatcher"]
