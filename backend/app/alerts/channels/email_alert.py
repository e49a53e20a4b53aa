"""
email_alert.py — Email alert delivery channel.

Delivery is simulated: subject and plain-text body are rendered and the
send is logged per address.

═══════════════════════════════════════════════════════════════════════════
EMAIL TEMPLATE STRUCTURE
═══════════════════════════════════════════════════════════════════════════

    Subject: 🚨 EMERGENCY ALERT [{CATEGORY}] from {originator}
    Body:
        EMERGENCY ALERT — {CATEGORY}
        {message}

        Location: {address} ({lat}, {lng})
        Raised:   {created_at UTC}
        Alert ID: {id}
"""

from __future__ import annotations

import logging
from typing import Sequence

from backend.app.alerts.channels.context import DispatchContext
from backend.app.alerts.models import AlertRecord, ChannelKind, ChannelOutcome

logger = logging.getLogger(__name__)


def _build_subject(alert: AlertRecord) -> str:
    return f"🚨 EMERGENCY ALERT [{alert.category.value.upper()}] from {alert.originator_id}"


def _build_plain_body(alert: AlertRecord) -> str:
    if alert.location:
        where = (
            f"{alert.address or 'Unknown address'} "
            f"({alert.location.latitude:.4f}, {alert.location.longitude:.4f})"
        )
    else:
        where = alert.address or "Location unavailable"

    return (
        f"EMERGENCY ALERT — {alert.category.value.upper()}\n"
        f"{alert.message}\n\n"
        f"Location: {where}\n"
        f"Raised:   {alert.created_at.strftime('%Y-%m-%d %H:%M UTC')}\n"
        f"Alert ID: {alert.id}\n"
    )


async def send(
    alert: AlertRecord,
    recipients: Sequence[str],
    *,
    context: DispatchContext,
) -> ChannelOutcome:
    """Send the alert by email to every address in ``recipients``."""
    try:
        subject = _build_subject(alert)
        body = _build_plain_body(alert)
        for address in recipients:
            logger.info(
                "[EMAIL] Alert %s → %s: Subject='%s' (%d chars)",
                alert.id, address, subject, len(body),
                extra={"alert_id": alert.id, "channel": ChannelKind.EMAIL.value},
            )
        return ChannelOutcome(
            channel=ChannelKind.EMAIL,
            success=True,
            detail=f"Email alerts sent to {len(recipients)} contacts",
        )
    except Exception as exc:
        logger.error("[EMAIL] Failed for alert %s: %s", alert.id, exc)
        return ChannelOutcome(
            channel=ChannelKind.EMAIL,
            success=False,
            detail=f"Failed to send email alerts: {exc}",
        )
