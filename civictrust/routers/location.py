"""Location capture endpoint."""
from fastapi import APIRouter, Depends

from civictrust.schemas.common import LocationAdvisoryRead, PositionFix, SnapshotRead
from civictrust.security import require_session
from civictrust.services.location import snapshot_from_fix

router = APIRouter(prefix="/location", tags=["location"], dependencies=[Depends(require_session)])


@router.post("/snapshot", response_model=SnapshotRead)
def capture_snapshot(fix: PositionFix) -> SnapshotRead:
    """Derive a snapshot from a raw device fix; mocked fixes are rejected."""

    result = snapshot_from_fix(fix)
    return SnapshotRead(
        snapshot=result.snapshot,
        warnings=[LocationAdvisoryRead(code=item.code, message=item.message) for item in result.warnings],
    )
