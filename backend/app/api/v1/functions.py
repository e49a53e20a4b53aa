"""
FastAPI route: downstream notify-emergency function.

    POST /api/v1/functions/notify-emergency

Called by the Authority channel (in-process or over HTTP). Responds 401
without a caller identity and 403 when the alert is missing or owned by
someone else.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from backend.app.api.dependencies import get_optional_user, get_repository
from backend.app.api.schemas import NotifyRequest, NotifyResponse
from backend.app.storage.notifier import notify_emergency
from backend.app.storage.repository import EmergencyRepository

router = APIRouter(prefix="/api/v1/functions", tags=["functions"])


@router.post("/notify-emergency", response_model=NotifyResponse)
async def notify_emergency_endpoint(
    body: NotifyRequest,
    caller_id: Optional[str] = Depends(get_optional_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    return await notify_emergency(repo, body.alert_id, caller_id)
