"""Disposal submission endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from civictrust.schemas.actions import DisposePayload, PendingAction
from civictrust.schemas.auth import Role, UserProfile
from civictrust.schemas.disposal import DisposalCreate, DisposalOutcome, DisposalRecord
from civictrust.security import require_role, require_session
from civictrust.services.dispatcher import Dispatcher, get_dispatcher, submit_action
from civictrust.services.location import snapshot_from_capture
from civictrust.utils.time import utcnow

router = APIRouter(prefix="/disposals", tags=["disposals"])


@router.post("", response_model=DisposalOutcome, status_code=status.HTTP_201_CREATED)
def create_disposal(
    payload: DisposalCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_role({Role.citizen})),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> DisposalOutcome:
    action = PendingAction.new(
        DisposePayload(
            bin_id=payload.bin_id,
            qr_code_id=payload.qr_code_id,
            photo_ref=payload.photo_ref,
            waste_size=payload.waste_size,
            location=snapshot_from_capture(payload.location),
            user_id=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    if result.queued:
        response.status_code = status.HTTP_202_ACCEPTED
    return DisposalOutcome(
        status=result.status,
        action_id=result.action_id,
        message=result.message,
        disposal=next((item for item in dispatcher.state.disposals if item.id == action.id), None),
    )


@router.get("", response_model=list[DisposalRecord])
def list_disposals(
    verified: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    profile: UserProfile = Depends(require_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[DisposalRecord]:
    records = dispatcher.state.disposals
    if profile.role != Role.admin:
        records = [item for item in records if item.user_id == profile.id]
    if verified is not None:
        records = [item for item in records if item.verified == verified]
    return records[:limit]
