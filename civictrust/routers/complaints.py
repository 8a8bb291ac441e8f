"""Complaint, cleanup proof and verification endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from civictrust.schemas.actions import (
    PendingAction,
    ReportIssuePayload,
    SubmitCleanupPayload,
    VerifyCleanupPayload,
)
from civictrust.schemas.auth import Role, UserProfile
from civictrust.schemas.complaint import (
    CleanupCreate,
    CleanupDecision,
    Complaint,
    ComplaintCreate,
    ComplaintOutcome,
    ComplaintStatus,
)
from civictrust.security import require_role, require_session
from civictrust.services.dispatcher import DispatchResult, Dispatcher, get_dispatcher, submit_action
from civictrust.services.location import snapshot_from_capture
from civictrust.utils.errors import ComplaintNotFound
from civictrust.utils.time import utcnow

router = APIRouter(prefix="/complaints", tags=["complaints"])


def _outcome(result: DispatchResult, dispatcher: Dispatcher, complaint_id: str, response: Response) -> ComplaintOutcome:
    if result.queued:
        response.status_code = status.HTTP_202_ACCEPTED
    return ComplaintOutcome(
        status=result.status,
        action_id=result.action_id,
        message=result.message,
        complaint=next((item for item in dispatcher.state.complaints if item.id == complaint_id), None),
    )


@router.post("", response_model=ComplaintOutcome, status_code=status.HTTP_201_CREATED)
def create_complaint(
    payload: ComplaintCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_role({Role.citizen})),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> ComplaintOutcome:
    action = PendingAction.new(
        ReportIssuePayload(
            category=payload.category,
            description=payload.description.strip(),
            photo_ref=payload.photo_ref,
            location=snapshot_from_capture(payload.location),
            user_id=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    return _outcome(result, dispatcher, action.id, response)


@router.get("", response_model=list[Complaint], dependencies=[Depends(require_session)])
def list_complaints(
    complaint_status: ComplaintStatus | None = Query(default=None, alias="status"),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[Complaint]:
    complaints = dispatcher.state.complaints
    if complaint_status is not None:
        complaints = [item for item in complaints if item.status == complaint_status]
    return complaints


@router.get("/{complaint_id}", response_model=Complaint, dependencies=[Depends(require_session)])
def get_complaint(complaint_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)) -> Complaint:
    complaint = next((item for item in dispatcher.state.complaints if item.id == complaint_id), None)
    if complaint is None:
        raise ComplaintNotFound(complaint_id=complaint_id)
    return complaint


@router.post("/{complaint_id}/cleanup", response_model=ComplaintOutcome, status_code=status.HTTP_201_CREATED)
def submit_cleanup(
    complaint_id: str,
    payload: CleanupCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_role({Role.worker, Role.admin})),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> ComplaintOutcome:
    action = PendingAction.new(
        SubmitCleanupPayload(
            complaint_id=complaint_id,
            photo_ref=payload.photo_ref,
            location=snapshot_from_capture(payload.location),
            user_id=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    return _outcome(result, dispatcher, complaint_id, response)


@router.post("/{complaint_id}/verification", response_model=ComplaintOutcome)
def verify_cleanup(
    complaint_id: str,
    payload: CleanupDecision,
    response: Response,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_role({Role.admin})),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> ComplaintOutcome:
    action = PendingAction.new(
        VerifyCleanupPayload(
            complaint_id=complaint_id,
            accepted=payload.accepted,
            notes=payload.notes,
            verified_by=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    return _outcome(result, dispatcher, complaint_id, response)
