"""Connectivity and offline queue endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends

from civictrust.schemas.actions import PendingAction
from civictrust.schemas.state import ConnectivityUpdate, SyncStatusRead
from civictrust.security import require_session
from civictrust.services.dispatcher import REPLAY_DEVICE_ID, Dispatcher, actor_of, get_dispatcher

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(require_session)])


def _status(dispatcher: Dispatcher) -> SyncStatusRead:
    state = dispatcher.state
    return SyncStatusRead(
        is_online=state.is_online,
        pending_actions=len(state.pending_actions),
        sync_log=state.sync_log,
    )


def _replay(dispatcher: Dispatcher, background_tasks: BackgroundTasks) -> None:
    for action in dispatcher.replay_pending():
        background_tasks.add_task(
            dispatcher.sync_effects, action, user_id=actor_of(action), device_id=REPLAY_DEVICE_ID
        )


@router.get("/status", response_model=SyncStatusRead)
def sync_status(dispatcher: Dispatcher = Depends(get_dispatcher)) -> SyncStatusRead:
    return _status(dispatcher)


@router.get("/pending", response_model=list[PendingAction])
def pending_actions(dispatcher: Dispatcher = Depends(get_dispatcher)) -> list[PendingAction]:
    return dispatcher.state.pending_actions


@router.post("/connectivity", response_model=SyncStatusRead)
def set_connectivity(
    payload: ConnectivityUpdate,
    background_tasks: BackgroundTasks,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> SyncStatusRead:
    """Switch online/offline; coming back online drains the queue."""

    dispatcher.set_connectivity(payload.online)
    if payload.online:
        _replay(dispatcher, background_tasks)
    return _status(dispatcher)


@router.post("/replay", response_model=SyncStatusRead)
def replay(background_tasks: BackgroundTasks, dispatcher: Dispatcher = Depends(get_dispatcher)) -> SyncStatusRead:
    _replay(dispatcher, background_tasks)
    return _status(dispatcher)
