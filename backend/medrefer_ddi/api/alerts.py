"""Drug interaction alert API endpoints."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from medrefer_ddi.api.dependencies import InteractionService, unwrap_result
from medrefer_ddi.schemas import AcknowledgeAlertRequest, AlertListResponse, AlertOut
from medrefer_ddi.services.alert_feed import AlertSubscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Alerts"])

# Keeps idle SSE connections alive through proxies
KEEPALIVE_SECONDS = 15.0


@router.get(
    "/patients/{patient_id}/alerts",
    response_model=AlertListResponse,
    summary="List patient alerts",
    description="All drug interaction alerts for a patient, acknowledged or not, most recent first.",
)
async def list_patient_alerts(patient_id: str, service: InteractionService) -> AlertListResponse:
    alerts = unwrap_result(await service.get_patient_alerts(patient_id))
    return AlertListResponse(
        patient_id=patient_id,
        total=len(alerts),
        unacknowledged=sum(1 for alert in alerts if not alert.acknowledged),
        alerts=[AlertOut.from_alert(alert) for alert in alerts],
    )


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertOut,
    summary="Acknowledge an alert",
)
async def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeAlertRequest,
    service: InteractionService,
) -> AlertOut:
    """Acknowledge an alert. Repeating the call is safe."""
    alert = unwrap_result(
        await service.acknowledge_alert(alert_id, request.acknowledged_by, request.notes)
    )
    return AlertOut.from_alert(alert)


@router.post(
    "/alerts/{alert_id}/dismiss",
    response_model=AlertOut,
    summary="Dismiss an alert",
)
async def dismiss_alert(alert_id: str, service: InteractionService) -> AlertOut:
    alert = unwrap_result(await service.dismiss_alert(alert_id))
    return AlertOut.from_alert(alert)


async def stream_alert_events(
    subscription: AlertSubscription,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    """Server-sent events for a feed subscription.

    The subscription is closed when the client disconnects.
    """
    try:
        while True:
            try:
                alert = await subscription.get(timeout=keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            if alert is None:
                return
            payload = AlertOut.from_alert(alert).model_dump(mode="json")
            yield f"event: alert\ndata: {json.dumps(payload)}\n\n"
    except asyncio.CancelledError:
        logger.debug("Alert stream client disconnected")
        raise
    finally:
        subscription.close()


@router.get(
    "/alerts/stream",
    summary="Live alert feed",
    description="Server-sent events for newly raised alerts, optionally filtered to one patient.",
)
async def alert_stream(
    service: InteractionService,
    patient_id: str | None = Query(None, description="Only stream alerts for this patient"),
) -> StreamingResponse:
    subscription = service.subscribe(patient_id)
    logger.info(f"Alert stream opened (patient_id={patient_id})")
    return StreamingResponse(
        stream_alert_events(subscription),
        media_type="text/event-stream",
    )
