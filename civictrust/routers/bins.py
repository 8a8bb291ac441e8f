"""Bin registry endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from civictrust.schemas.actions import PendingAction, ReportBinFullPayload
from civictrust.schemas.auth import Role, UserProfile
from civictrust.schemas.bin import Bin, BinFullRead, BinFullReport
from civictrust.schemas.common import Coordinates
from civictrust.security import require_role, require_session
from civictrust.services.bins import find_bin, suggest_next_available_bin
from civictrust.services.dispatcher import Dispatcher, get_dispatcher, submit_action
from civictrust.utils.time import utcnow

router = APIRouter(prefix="/bins", tags=["bins"])


@router.get("", response_model=list[Bin], dependencies=[Depends(require_session)])
def list_bins(dispatcher: Dispatcher = Depends(get_dispatcher)) -> list[Bin]:
    return dispatcher.state.bins


@router.get("/{bin_id}", response_model=Bin, dependencies=[Depends(require_session)])
def get_bin(bin_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)) -> Bin:
    return find_bin(dispatcher.state.bins, bin_id)


@router.get("/{bin_id}/suggest", response_model=Bin | None, dependencies=[Depends(require_session)])
def suggest_bin(
    bin_id: str,
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Bin | None:
    origin = None
    if latitude is not None and longitude is not None:
        origin = Coordinates(latitude=latitude, longitude=longitude)
    return suggest_next_available_bin(dispatcher.state.bins, bin_id, origin)


@router.post("/{bin_id}/report-full", response_model=BinFullRead, status_code=status.HTTP_200_OK)
def report_bin_full(
    bin_id: str,
    payload: BinFullReport,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> BinFullRead:
    action = PendingAction.new(
        ReportBinFullPayload(
            bin_id=bin_id,
            reason=payload.reason,
            origin=payload.origin,
            user_id=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    bins = dispatcher.state.bins
    return BinFullRead(
        status=result.status,
        action_id=result.action_id,
        bin=next((item for item in bins if item.id == bin_id), None),
        suggested_bin=suggest_next_available_bin(bins, bin_id, payload.origin),
    )


@router.post("/refresh", response_model=list[Bin], dependencies=[Depends(require_role({Role.admin}))])
async def refresh_bins(dispatcher: Dispatcher = Depends(get_dispatcher)) -> list[Bin]:
    """Reload the registry from the hosted backend, keeping local bins on failure."""

    state = await dispatcher.refresh_bins()
    return state.bins
