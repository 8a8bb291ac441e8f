"""Login and logout endpoints."""
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session

from civictrust.db import get_db
from civictrust.schemas.auth import LoginRequest, LoginResponse, UserProfile
from civictrust.security import _extract_token, require_session
from civictrust.services import auth as auth_service
from civictrust.services.remote import RemoteClient, get_remote_client
from civictrust.services.sync import sync_user_profile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    remote: RemoteClient = Depends(get_remote_client),
) -> LoginResponse:
    result = await auth_service.login(payload.email, payload.password, payload.device_id, remote)
    auth_service.open_session(db, result)
    if result.role_source == "issued":
        background_tasks.add_task(sync_user_profile, remote, result.profile)
    return LoginResponse(
        session_token=result.session_token,
        role=result.profile.role,
        role_source=result.role_source,
        profile=result.profile,
    )


@router.get("/me", response_model=UserProfile)
def me(profile: UserProfile = Depends(require_session)) -> UserProfile:
    return profile


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_session)],
)
def logout(token: str | None = Depends(_extract_token), db: Session = Depends(get_db)) -> Response:
    if token:
        auth_service.revoke_session(db, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
