"""
FastAPI route: raise, inspect and administer emergency alerts.

Provides endpoints to:
    POST  /api/v1/alerts                — raise an alert and dispatch it
    GET   /api/v1/alerts                — caller's own alerts
    GET   /api/v1/alerts/all            — every alert (admin)
    GET   /api/v1/alerts/{id}           — one alert (owner or admin)
    PATCH /api/v1/alerts/{id}/status    — move status forward (admin)
    GET   /api/v1/alerts/{id}/events    — audit trail (owner or admin)
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from backend.app.alerts.alert_service import NotificationCoordinator, build_log_entry
from backend.app.alerts.log_store import LocalLogStore
from backend.app.alerts.models import AlertRecord, AlertStatus
from backend.app.alerts.validation import build_alert, parse_location
from backend.app.api.dependencies import (
    get_coordinator,
    get_current_user,
    get_geocoder,
    get_log_store,
    get_repository,
    require_admin,
)
from backend.app.api.schemas import (
    AlertCreate,
    AlertOut,
    DispatchResponse,
    EventOut,
    OutcomeOut,
    StatusUpdate,
)
from backend.app.core.errors import AuthorizationError, NotFoundError
from backend.app.spatial.location import Geocoder
from backend.app.storage.repository import EmergencyRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


async def _load_visible_alert(
    alert_id: str,
    user_id: str,
    repo: EmergencyRepository,
) -> AlertRecord:
    alert = await repo.get_alert(alert_id)
    if alert is None:
        raise NotFoundError("Alert", id=alert_id)
    if alert.originator_id != user_id and not await repo.is_admin(user_id):
        raise AuthorizationError("Alert belongs to another user", alert_id=alert_id)
    return alert


@router.post("", response_model=DispatchResponse, status_code=201)
async def raise_alert(
    body: AlertCreate,
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
    coordinator: NotificationCoordinator = Depends(get_coordinator),
    log_store: LocalLogStore = Depends(get_log_store),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """
    Raise an emergency alert.

    Pipeline:
        1. Validate input and build a pending AlertRecord
        2. Fan out to every applicable channel and join
        3. Persist the final status and a ``dispatched`` event
        4. Append the snapshot to the local log
    """
    address = body.address.strip()
    if not address:
        point = parse_location(body.latitude, body.longitude)
        if point is not None:
            address = await geocoder.reverse(point)

    alert = build_alert(
        user_id,
        body.category.value,
        body.message,
        latitude=body.latitude,
        longitude=body.longitude,
        address=address,
    )
    contacts = await repo.list_contacts(user_id)

    result = await coordinator.dispatch(
        alert, contacts, device_tokens=body.device_tokens,
    )

    await repo.save_alert(alert)
    await repo.record_event(
        alert.id,
        "dispatched",
        alert.summary(),
        {
            "overall_success": result.overall_success,
            "final_status": result.final_status.value,
            "channels": [c.value for c in result.channels],
        },
    )

    logged = await run_in_threadpool(log_store.append, build_log_entry(alert, result))

    return DispatchResponse(
        alert=AlertOut.from_alert(alert),
        overall_success=result.overall_success,
        outcomes=[OutcomeOut.from_outcome(o) for o in result.outcomes],
        logged=logged,
    )


@router.get("", response_model=List[AlertOut])
async def list_my_alerts(
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    return [AlertOut.from_alert(a) for a in await repo.list_alerts(user_id)]


@router.get("/all", response_model=List[AlertOut])
async def list_all_alerts(
    status: Optional[AlertStatus] = Query(None, description="Filter by status"),
    _admin: str = Depends(require_admin),
    repo: EmergencyRepository = Depends(get_repository),
):
    alerts = await repo.list_all_alerts(status.value if status else None)
    return [AlertOut.from_alert(a) for a in alerts]


@router.get("/{alert_id}", response_model=AlertOut)
async def get_alert(
    alert_id: str,
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    return AlertOut.from_alert(await _load_visible_alert(alert_id, user_id, repo))


@router.patch("/{alert_id}/status", response_model=AlertOut)
async def update_status(
    alert_id: str,
    body: StatusUpdate,
    admin_id: str = Depends(require_admin),
    repo: EmergencyRepository = Depends(get_repository),
):
    """Forward-only; a backward move is rejected with 409."""
    before = await repo.get_alert(alert_id)
    if before is None:
        raise NotFoundError("Alert", id=alert_id)

    alert = await repo.update_alert_status(alert_id, body.status)
    if alert.status != before.status:
        await repo.record_event(
            alert_id,
            "status_changed",
            f"Status changed from {before.status.value} to {alert.status.value}",
            {"from": before.status.value, "to": alert.status.value, "by": admin_id},
        )
        logger.info(
            "Alert %s status %s → %s by %s",
            alert_id, before.status.value, alert.status.value, admin_id,
            extra={"alert_id": alert_id, "status": alert.status.value},
        )
    return AlertOut.from_alert(alert)


@router.get("/{alert_id}/events", response_model=List[EventOut])
async def list_alert_events(
    alert_id: str,
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    await _load_visible_alert(alert_id, user_id, repo)
    return [EventOut(**e) for e in await repo.list_events(alert_id)]
