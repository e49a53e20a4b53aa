"""
notifier.py — Downstream notify-emergency function and its clients.

The function verifies that the caller owns the alert, looks up the
originator's contacts and records an audit event. It is reachable two ways:

    LocalEmergencyNotifier  — in-process, shares the request's repository
    HttpEmergencyNotifier   — POSTs to a remote deployment (NOTIFIER_URL)

Both surface a missing identity as AuthenticationError (401) and a foreign
or unknown alert as AuthorizationError (403).

StorageAuthorityRegistrar ties persistence and notification together for
the Authority channel: persist the alert row, commit, then notify, all in
a session separate from the request's.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.alerts.models import AlertRecord
from backend.app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
)
from backend.app.storage.repository import EmergencyRepository

logger = logging.getLogger(__name__)

NOTIFY_PATH = "/api/v1/functions/notify-emergency"


async def notify_emergency(
    repository: EmergencyRepository,
    alert_id: str,
    caller_id: Optional[str],
) -> Dict[str, Any]:
    """
    Process one emergency notification request.

    Returns
    -------
    dict
        ``{"success": True, "message": ..., "contacts_notified": int}``
    """
    if not caller_id:
        raise AuthenticationError()

    alert = await repository.get_owned_alert(alert_id, caller_id)
    if alert is None:
        logger.warning(
            "Notify rejected: alert %s not found for caller %s", alert_id, caller_id,
        )
        raise AuthorizationError("Alert not found or access denied", alert_id=alert_id)

    contacts = await repository.list_contacts(alert.originator_id)

    await repository.record_event(
        alert_id,
        "notifications_sent",
        f"Notified {len(contacts)} contacts and authorities",
        {
            "alert_type": alert.category.value,
            "contacts_notified": len(contacts),
        },
    )

    logger.info(
        "Emergency alert %s processed: type=%s location=%s contacts=%d",
        alert_id, alert.category.value, bool(alert.address), len(contacts),
        extra={"alert_id": alert_id, "recipient_count": len(contacts)},
    )
    return {
        "success": True,
        "message": "Emergency notifications sent",
        "contacts_notified": len(contacts),
    }


class EmergencyNotifier(Protocol):
    async def notify(self, alert_id: str, caller_id: Optional[str]) -> Dict[str, Any]: ...


class LocalEmergencyNotifier:
    """Runs the notify function in-process."""

    def __init__(self, repository: EmergencyRepository):
        self.repository = repository

    async def notify(self, alert_id: str, caller_id: Optional[str]) -> Dict[str, Any]:
        return await notify_emergency(self.repository, alert_id, caller_id)


class HttpEmergencyNotifier:
    """Calls a remote notify-emergency endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def notify(self, alert_id: str, caller_id: Optional[str]) -> Dict[str, Any]:
        headers = {"X-User-Id": caller_id} if caller_id else {}
        url = f"{self.base_url}{NOTIFY_PATH}"
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json={"alertId": alert_id}, headers=headers,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(
                        url, json={"alertId": alert_id}, headers=headers,
                    )
        except httpx.HTTPError as exc:
            raise ExternalServiceError("notify-emergency", str(exc))

        if response.status_code == 401:
            raise AuthenticationError()
        if response.status_code == 403:
            raise AuthorizationError("Alert not found or access denied", alert_id=alert_id)
        if response.status_code >= 400:
            raise ExternalServiceError(
                "notify-emergency", f"HTTP {response.status_code}",
                upstream_status=response.status_code,
            )
        return response.json()


class StorageAuthorityRegistrar:
    """
    Persist-then-notify registration used by the Authority channel.

    Works in a session of its own: the coordinator may cancel the channel
    at its timeout, and a cancelled statement must not leave the request's
    session in a failed transaction. Without an explicit ``notifier`` the
    notify function runs in-process on that same session.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        caller_id: Optional[str],
        *,
        notifier: Optional[EmergencyNotifier] = None,
    ):
        self.session_factory = session_factory
        self.caller_id = caller_id
        self.notifier = notifier

    async def register(self, alert: AlertRecord) -> int:
        async with self.session_factory() as session:
            repository = EmergencyRepository(session)
            await repository.save_alert(alert)
            await session.commit()

            notifier = self.notifier or LocalEmergencyNotifier(repository)
            result = await notifier.notify(alert.id, self.caller_id)
            await session.commit()
        return int(result.get("contacts_notified", 0))
