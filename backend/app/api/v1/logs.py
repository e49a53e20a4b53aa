"""
FastAPI route: the local emergency log.

    GET    /api/v1/logs              — caller's entries, most recent first
    GET    /api/v1/logs/statistics   — counts by category and final status
    GET    /api/v1/logs/export       — JSON download
    DELETE /api/v1/logs/{alert_id}   — drop one of the caller's entries
    DELETE /api/v1/logs              — clear the whole log (admin)

Entries are scoped to their originator. Storage problems surface as an
empty list or ``{"success": false}``, never as an error status. The store
does blocking file I/O, so these are plain ``def`` routes (run in the
threadpool).
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from backend.app.alerts.log_store import LocalLogStore
from backend.app.alerts.models import AlertCategory, AlertStatus
from backend.app.api.dependencies import get_current_user, get_log_store, require_admin
from backend.app.api.schemas import LogEntryOut, LogStatistics, OperationResult
from backend.app.core.errors import AuthorizationError

router = APIRouter(prefix="/api/v1/logs", tags=["logs"])


@router.get("", response_model=List[LogEntryOut])
def list_logs(
    category: Optional[AlertCategory] = Query(None),
    final_status: Optional[AlertStatus] = Query(None),
    user_id: str = Depends(get_current_user),
    store: LocalLogStore = Depends(get_log_store),
):
    entries = store.read_by_originator(user_id)
    if category:
        entries = [e for e in entries if e.category == category]
    if final_status:
        entries = [e for e in entries if e.final_status == final_status]
    return [LogEntryOut.from_entry(e) for e in entries]


@router.get("/statistics", response_model=LogStatistics)
def log_statistics(
    user_id: str = Depends(get_current_user),
    store: LocalLogStore = Depends(get_log_store),
):
    return store.statistics(user_id)


@router.get("/export")
def export_logs(
    user_id: str = Depends(get_current_user),
    store: LocalLogStore = Depends(get_log_store),
):
    return Response(
        content=store.export_json(user_id),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{store.export_filename()}"',
        },
    )


@router.delete("/{alert_id}", response_model=OperationResult)
def delete_log(
    alert_id: str,
    user_id: str = Depends(get_current_user),
    store: LocalLogStore = Depends(get_log_store),
):
    owners = {e.originator_id for e in store.read_all() if e.alert_id == alert_id}
    if owners and owners != {user_id}:
        raise AuthorizationError("Log entry belongs to another user", alert_id=alert_id)
    return OperationResult(success=store.remove(alert_id))


@router.delete("", response_model=OperationResult)
def clear_logs(
    _admin: str = Depends(require_admin),
    store: LocalLogStore = Depends(get_log_store),
):
    return OperationResult(success=store.clear())
