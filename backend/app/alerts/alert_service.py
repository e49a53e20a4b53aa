"""
alert_service.py — Notification fan-out and status aggregation.

The coordinator takes one AlertRecord and the originator's contacts, runs
every applicable channel, waits for all of them, and folds the outcomes
back into the alert's status.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  1. Recipients      │  phones = contacts with a phone
    │                     │  emails = contacts with an email
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  2. Channel set     │  SMS if phones, Email if emails,
    │                     │  Authority always, Push always
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  3. Fan-out / join  │  asyncio.gather over all channels,
    │                     │  each bounded by a timeout
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  4. Aggregate       │  overall_success = all(success)
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  5. Status          │  StatusPolicy satisfied → acknowledged
    │                     │  otherwise the alert stays pending
    └─────────────────────┘

═══════════════════════════════════════════════════════════════════════════
FAILURE SEMANTICS
═══════════════════════════════════════════════════════════════════════════

    • A channel never raises; its failure is an unsuccessful outcome.
    • A channel that exceeds the timeout, or leaks an exception anyway,
      is recorded as failed. Sibling channels are unaffected.
    • Partial results are never surfaced: the join waits for every channel.
    • This component never sets ``resolved``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from backend.app.alerts.channels import authority, email_alert, sms_gateway, web_push
from backend.app.alerts.channels.context import AuthorityRegistrar, DispatchContext
from backend.app.alerts.models import (
    CHANNEL_ORDER,
    AlertRecord,
    AlertStatus,
    ChannelKind,
    ChannelOutcome,
    Contact,
    DispatchResult,
    LogEntry,
)

logger = logging.getLogger(__name__)

ChannelSender = Callable[..., Awaitable[ChannelOutcome]]


class StatusPolicy(str, Enum):
    """When a dispatched alert counts as acknowledged."""
    STRICT  = "strict"    # every channel succeeded
    RELAXED = "relaxed"   # at least one channel succeeded


# ═══════════════════════════════════════════════════════════════════════════
# Channel Dispatcher Registry
# ═══════════════════════════════════════════════════════════════════════════

_CHANNEL_DISPATCHERS: Dict[ChannelKind, ChannelSender] = {
    ChannelKind.SMS:       sms_gateway.send,
    ChannelKind.EMAIL:     email_alert.send,
    ChannelKind.AUTHORITY: authority.send,
    ChannelKind.PUSH:      web_push.send,
}


def derive_recipients(
    contacts: Sequence[Contact],
    device_tokens: Sequence[str] = (),
) -> Dict[ChannelKind, List[str]]:
    """Channel-specific recipient lists."""
    return {
        ChannelKind.SMS: [c.phone.strip() for c in contacts if c.has_phone],
        ChannelKind.EMAIL: [c.email.strip() for c in contacts if c.has_email],
        ChannelKind.AUTHORITY: [],
        ChannelKind.PUSH: [t for t in device_tokens if t],
    }


def select_channels(recipients: Dict[ChannelKind, List[str]]) -> List[ChannelKind]:
    """
    Applicable channels, in reporting order.

    Contact channels with no recipients are skipped outright rather than
    recorded as vacuous outcomes.
    """
    selected = []
    for channel in CHANNEL_ORDER:
        if channel in (ChannelKind.SMS, ChannelKind.EMAIL) and not recipients[channel]:
            continue
        selected.append(channel)
    return selected


def aggregate_status(
    outcomes: Sequence[ChannelOutcome],
    policy: StatusPolicy = StatusPolicy.STRICT,
) -> bool:
    """True when the outcomes satisfy ``policy``."""
    if not outcomes:
        return False
    if policy == StatusPolicy.RELAXED:
        return any(o.success for o in outcomes)
    return all(o.success for o in outcomes)


def build_log_entry(alert: AlertRecord, result: DispatchResult) -> LogEntry:
    """Snapshot of a completed dispatch cycle for the local log."""
    return LogEntry.from_alert(alert, result.outcomes)


# ═══════════════════════════════════════════════════════════════════════════
# Coordinator
# ═══════════════════════════════════════════════════════════════════════════

class NotificationCoordinator:
    """
    Fans one alert out to its channels and aggregates the outcomes.

    Parameters
    ----------
    registrar : AuthorityRegistrar | None
        Storage/notifier collaborator used by the Authority channel.
    channel_timeout_seconds : float
        Upper bound for a single channel attempt.
    policy : StatusPolicy
        Rule that decides whether the alert becomes ``acknowledged``.
    dispatchers : dict, optional
        Override of the channel → sender table (tests, alternate providers).
    """

    def __init__(
        self,
        registrar: Optional[AuthorityRegistrar] = None,
        *,
        channel_timeout_seconds: float = 10.0,
        policy: StatusPolicy = StatusPolicy.STRICT,
        dispatchers: Optional[Dict[ChannelKind, ChannelSender]] = None,
    ):
        self.registrar = registrar
        self.channel_timeout_seconds = channel_timeout_seconds
        self.policy = StatusPolicy(policy)
        self._dispatchers = dict(_CHANNEL_DISPATCHERS)
        if dispatchers:
            self._dispatchers.update(dispatchers)

    async def _attempt(
        self,
        channel: ChannelKind,
        alert: AlertRecord,
        recipients: Sequence[str],
        context: DispatchContext,
    ) -> ChannelOutcome:
        """Run one channel under the timeout; anything escaping becomes a failure."""
        sender = self._dispatchers[channel]
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(
                sender(alert, recipients, context=context),
                timeout=self.channel_timeout_seconds,
            )
            failure: Optional[str] = None
        except asyncio.TimeoutError:
            outcome = None
            failure = f"Timed out after {self.channel_timeout_seconds:.1f}s"
        except Exception as exc:
            outcome = None
            failure = f"Unexpected error: {exc}"

        duration_ms = (time.perf_counter() - start) * 1000

        if outcome is None:
            logger.error(
                "Channel %s failed for alert %s: %s",
                channel.value, alert.id, failure,
                extra={"alert_id": alert.id, "channel": channel.value},
            )
            return ChannelOutcome(
                channel=channel,
                success=False,
                detail=failure or "No outcome",
                duration_ms=duration_ms,
            )

        return ChannelOutcome(
            channel=channel,
            success=outcome.success,
            detail=outcome.detail,
            rejected=outcome.rejected,
            duration_ms=duration_ms,
        )

    async def dispatch(
        self,
        alert: AlertRecord,
        contacts: Sequence[Contact],
        *,
        device_tokens: Sequence[str] = (),
    ) -> DispatchResult:
        """
        Run one dispatch cycle for ``alert``.

        Returns
        -------
        DispatchResult
            Outcomes in channel order, the aggregate flag, and the status the
            alert holds after the cycle.
        """
        alert.mark_dispatched()

        recipients = derive_recipients(contacts, device_tokens)
        channels = select_channels(recipients)
        context = DispatchContext(
            device_tokens=tuple(recipients[ChannelKind.PUSH]),
            registrar=self.registrar,
        )

        logger.info(
            "Dispatching alert %s [%s] via %s (%d contacts)",
            alert.id, alert.category.value,
            [c.value for c in channels], len(contacts),
            extra={"alert_id": alert.id, "category": alert.category.value},
        )
        started = time.perf_counter()

        outcomes: Tuple[ChannelOutcome, ...] = tuple(
            await asyncio.gather(*(
                self._attempt(channel, alert, recipients[channel], context)
                for channel in channels
            ))
        )

        overall_success = all(o.success for o in outcomes)
        if aggregate_status(outcomes, self.policy) and alert.status == AlertStatus.PENDING:
            alert.set_status(AlertStatus.ACKNOWLEDGED)

        result = DispatchResult(
            overall_success=overall_success,
            outcomes=outcomes,
            final_status=alert.status,
        )

        logger.info(
            "Alert %s dispatch complete: %d/%d channels succeeded, status=%s, %.1fms",
            alert.id,
            sum(1 for o in outcomes if o.success), len(outcomes),
            alert.status.value,
            (time.perf_counter() - started) * 1000,
            extra={"alert_id": alert.id, "status": alert.status.value},
        )
        return result
