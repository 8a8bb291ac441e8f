"""Fraud alert review endpoints."""
from fastapi import APIRouter, Depends, Query

from civictrust.schemas.auth import Role
from civictrust.schemas.fraud import AlertStatus, FraudAlert, FraudFlag
from civictrust.security import require_role
from civictrust.services.dispatcher import Dispatcher, get_dispatcher
from civictrust.utils.errors import AlertNotFound

router = APIRouter(
    prefix="/fraud-alerts",
    tags=["fraud"],
    dependencies=[Depends(require_role({Role.admin}))],
)


@router.get("", response_model=list[FraudAlert])
def list_fraud_alerts(
    alert_type: FraudFlag | None = Query(default=None, alias="type"),
    alert_status: AlertStatus | None = Query(default=None, alias="status"),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[FraudAlert]:
    alerts = dispatcher.state.fraud_alerts
    if alert_type is not None:
        alerts = [item for item in alerts if item.type == alert_type]
    if alert_status is not None:
        alerts = [item for item in alerts if item.status == alert_status]
    return alerts


@router.post("/{alert_id}/review", response_model=FraudAlert)
def review_fraud_alert(alert_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)) -> FraudAlert:
    state = dispatcher.review_alert(alert_id)
    for alert in state.fraud_alerts:
        if alert.id == alert_id:
            return alert
    raise AlertNotFound(alert_id=alert_id)
