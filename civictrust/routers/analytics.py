"""Admin analytics endpoint."""
from fastapi import APIRouter, Depends, Query

from civictrust.schemas.analytics import AnalyticsSnapshot
from civictrust.schemas.auth import Role
from civictrust.security import require_role
from civictrust.services.analytics import DEFAULT_HOTSPOT_LIMIT, AnalyticsPeriod, build_analytics, period_start
from civictrust.services.dispatcher import Dispatcher, get_dispatcher
from civictrust.utils.time import utcnow

router = APIRouter(prefix="/analytics", tags=["analytics"], dependencies=[Depends(require_role({Role.admin}))])


@router.get("", response_model=AnalyticsSnapshot)
def get_analytics(
    period: AnalyticsPeriod = Query(default=AnalyticsPeriod.all),
    hotspots: int = Query(default=DEFAULT_HOTSPOT_LIMIT, ge=1, le=50),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> AnalyticsSnapshot:
    state = dispatcher.state
    return build_analytics(
        state.disposals,
        state.complaints,
        state.bins,
        state.wallet.history,
        state.redemptions,
        since=period_start(period, utcnow()),
        hotspot_limit=hotspots,
    )
