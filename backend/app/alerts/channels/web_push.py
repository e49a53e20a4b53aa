"""
web_push.py — Push notification channel.

Tokens come from the caller's session, not from the contact list, so the
channel is attempted on every dispatch. Delivery is simulated: the push
payload is built and logged per device.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from backend.app.alerts.channels.context import DispatchContext
from backend.app.alerts.models import AlertRecord, ChannelKind, ChannelOutcome

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "🚨 EMERGENCY"


def _build_push_payload(alert: AlertRecord) -> Dict[str, Any]:
    return {
        "notification": {
            "title": NOTIFICATION_TITLE,
            "body": alert.message,
            "tag": alert.id,
            "requireInteraction": True,
            "data": {
                "alert_id": alert.id,
                "category": alert.category.value,
                "url": f"/alerts/{alert.id}",
            },
        },
    }


async def send(
    alert: AlertRecord,
    recipients: Sequence[str],
    *,
    context: DispatchContext,
) -> ChannelOutcome:
    """Push the alert to every device token in ``recipients``."""
    try:
        payload = _build_push_payload(alert)
        for token in recipients:
            logger.info(
                "[PUSH] Alert %s → device %s...: %s",
                alert.id, token[:10], payload["notification"]["title"],
                extra={"alert_id": alert.id, "channel": ChannelKind.PUSH.value},
            )
        return ChannelOutcome(
            channel=ChannelKind.PUSH,
            success=True,
            detail=f"Push notifications sent to {len(recipients)} devices",
        )
    except Exception as exc:
        logger.error("[PUSH] Failed for alert %s: %s", alert.id, exc)
        return ChannelOutcome(
            channel=ChannelKind.PUSH,
            success=False,
            detail=f"Failed to send push notifications: {exc}",
        )
