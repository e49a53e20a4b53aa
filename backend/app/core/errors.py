"""
Error hierarchy and the FastAPI handlers that render it.

Each subclass pins its HTTP status and machine code as class attributes, so
callers only supply the message and context:

    raise NotFoundError("Alert", id=alert_id)
    raise InvalidTransition("resolved", "pending")

Every error leaves the API as

    {"error": {"code": ..., "message": ..., "status": ..., "details": {...}}}

with ``path``/``method``/``request_id`` added outside production.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class EmergencyAPIError(Exception):
    """Base class; unknown failures surface as 500 INTERNAL_ERROR."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(EmergencyAPIError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(f"{resource} not found", resource=resource, **identifiers)


class ValidationError(EmergencyAPIError):
    """Alert or contact input rejected before anything was dispatched."""

    status_code = 422
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        super().__init__(message, field=field, **details)


class AuthenticationError(EmergencyAPIError):
    """No caller identity on the request."""

    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class AuthorizationError(EmergencyAPIError):
    """Caller is known but does not own the resource and is not an admin."""

    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Access denied"


class InvalidTransition(EmergencyAPIError):
    """Status only moves forward: pending → acknowledged → resolved."""

    status_code = 409
    error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move alert status from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )


class AlertLockedError(EmergencyAPIError):
    status_code = 409
    error_code = "ALERT_LOCKED"

    def __init__(self, alert_id: str, field: str):
        super().__init__(
            f"Alert {alert_id} already dispatched; '{field}' is read-only",
            alert_id=alert_id,
            field=field,
        )


class ExternalServiceError(EmergencyAPIError):
    """Geocoder or remote notify function failed."""

    status_code = 502
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str = "", **details: Any):
        super().__init__(
            f"External service '{service}' failed: {message}", service=service, **details,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Response rendering
# ═══════════════════════════════════════════════════════════════════════════

def _error_response(request: Request, status_code: int, payload: Dict[str, Any]) -> JSONResponse:
    if not settings.is_production:
        payload["path"] = request.url.path
        payload["method"] = request.method
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": payload})


def register_error_handlers(app: FastAPI) -> None:
    """Attach handlers for the hierarchy, stray ValueErrors, and everything else."""

    @app.exception_handler(EmergencyAPIError)
    async def handle_emergency_error(request: Request, exc: EmergencyAPIError):
        logger.log(
            logging.ERROR if exc.status_code >= 500 else logging.WARNING,
            "%s on %s %s: %s",
            exc.error_code, request.method, request.url.path, exc.message,
            extra={"status_code": exc.status_code},
        )
        return _error_response(request, exc.status_code, exc.to_payload())

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("Rejected input on %s: %s", request.url.path, exc)
        return _error_response(
            request, 422, ValidationError(str(exc)).to_payload(),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical("Unhandled exception on %s", request.url.path, exc_info=exc)
        payload = EmergencyAPIError(str(exc) if settings.DEBUG else "Internal server error").to_payload()
        if settings.DEBUG:
            payload["details"] = {"traceback": traceback.format_exception(exc)}
        return _error_response(request, 500, payload)
