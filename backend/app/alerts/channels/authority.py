"""
authority.py — Emergency-services notification channel.

Unlike the contact channels, the target is derived from the alert category:

    Category    Authority
    ────────    ──────────────────────────
    medical     medical services
    fire        fire department
    police      police department
    general     general emergency services

The channel registers the alert with the storage collaborator (persist, then
invoke the downstream notifier). Its outcome is the one that counts for
escalation. Without a registrar (console demo) the notice is simulated.
"""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from backend.app.alerts.channels.context import DispatchContext
from backend.app.alerts.models import (
    AlertCategory,
    AlertRecord,
    ChannelKind,
    ChannelOutcome,
)
from backend.app.core.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

AUTHORITY_LABELS: Dict[AlertCategory, str] = {
    AlertCategory.MEDICAL: "medical services",
    AlertCategory.FIRE:    "fire department",
    AlertCategory.POLICE:  "police department",
    AlertCategory.GENERAL: "general emergency services",
}


def authority_for(category: AlertCategory) -> str:
    return AUTHORITY_LABELS[category]


async def send(
    alert: AlertRecord,
    recipients: Sequence[str],
    *,
    context: DispatchContext,
) -> ChannelOutcome:
    """
    Notify the authority responsible for ``alert.category``.

    ``recipients`` is ignored; authorities are not drawn from contacts.
    """
    label = authority_for(alert.category)
    try:
        logger.warning(
            "[AUTHORITY] Notifying %s for alert %s (%s)",
            label, alert.id, alert.summary(),
            extra={"alert_id": alert.id, "channel": ChannelKind.AUTHORITY.value},
        )
        if context.registrar is None:
            return ChannelOutcome(
                channel=ChannelKind.AUTHORITY,
                success=True,
                detail=f"{label} has been notified (simulated)",
            )

        notified = await context.registrar.register(alert)
        return ChannelOutcome(
            channel=ChannelKind.AUTHORITY,
            success=True,
            detail=f"{label} has been notified ({notified} contacts on file)",
        )

    except (AuthenticationError, AuthorizationError) as exc:
        logger.warning(
            "[AUTHORITY] Notifier rejected alert %s: %s", alert.id, exc.message,
        )
        return ChannelOutcome(
            channel=ChannelKind.AUTHORITY,
            success=False,
            detail=f"Notifier rejected request ({exc.status_code}): {exc.message}",
            rejected=True,
        )
    except Exception as exc:
        logger.error("[AUTHORITY] Failed for alert %s: %s", alert.id, exc)
        return ChannelOutcome(
            channel=ChannelKind.AUTHORITY,
            success=False,
            detail=f"Failed to notify {label}: {exc}",
        )
