"""
sms_gateway.py — SMS delivery channel.

Delivery is simulated: each message is rendered and logged per recipient.
A production gateway (Twilio, MSG91, ...) would slot in behind ``send``
without changing its contract.

═══════════════════════════════════════════════════════════════════════════
MESSAGE TEMPLATING
═══════════════════════════════════════════════════════════════════════════

    SMS (≤160 chars, GSM 7-bit):
        "[EMERGENCY] {CATEGORY}: {message} @ {address}"

    Example:
        "[EMERGENCY] MEDICAL: Fell down the stairs, can't move.
         @ 12 Park Ave, New York"
"""

from __future__ import annotations

import logging
from typing import Sequence

from backend.app.alerts.channels.context import DispatchContext
from backend.app.alerts.models import AlertRecord, ChannelKind, ChannelOutcome

logger = logging.getLogger(__name__)

SMS_MAX_GSM7 = 160


def _format_sms(alert: AlertRecord) -> str:
    """Format the SMS body within the 160-char GSM limit."""
    prefix = f"[EMERGENCY] {alert.category.value.upper()}: "
    suffix = f" @ {alert.address}" if alert.address else ""
    budget = SMS_MAX_GSM7 - len(prefix) - len(suffix)

    body = alert.message or "Help needed"
    if budget <= 0:
        return (prefix + body)[:SMS_MAX_GSM7]
    if len(body) > budget:
        body = body[: max(budget - 3, 0)] + "..."
    return prefix + body + suffix


def _mask_number(phone: str) -> str:
    if len(phone) <= 4:
        return phone
    return "*" * (len(phone) - 4) + phone[-4:]


async def send(
    alert: AlertRecord,
    recipients: Sequence[str],
    *,
    context: DispatchContext,
) -> ChannelOutcome:
    """
    Send the alert as SMS to every phone number in ``recipients``.

    Returns
    -------
    ChannelOutcome
        Success reports the number of contacts addressed.
    """
    try:
        text = _format_sms(alert)
        for phone in recipients:
            logger.info(
                "[SMS] Alert %s → %s: %s",
                alert.id, _mask_number(phone), text,
                extra={"alert_id": alert.id, "channel": ChannelKind.SMS.value},
            )
        return ChannelOutcome(
            channel=ChannelKind.SMS,
            success=True,
            detail=f"SMS alerts sent to {len(recipients)} contacts",
        )
    except Exception as exc:
        logger.error("[SMS] Failed for alert %s: %s", alert.id, exc)
        return ChannelOutcome(
            channel=ChannelKind.SMS,
            success=False,
            detail=f"Failed to send SMS alerts: {exc}",
        )
