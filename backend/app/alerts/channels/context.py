"""
context.py — Per-dispatch inputs shared by every channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

from backend.app.alerts.models import AlertRecord


class AuthorityRegistrar(Protocol):
    """
    Side-effecting registration behind the Authority channel.

    Implementations persist the alert and then invoke the downstream
    notifier; both steps must be safe to retry. Returns the number of
    contacts the notifier reported.
    """

    async def register(self, alert: AlertRecord) -> int: ...


@dataclass(frozen=True)
class DispatchContext:
    """
    Attributes
    ----------
    device_tokens : tuple of str
        Push tokens of the caller's session.
    registrar : AuthorityRegistrar | None
        Storage + notifier collaborator. None → authority notice is simulated.
    """
    device_tokens: Tuple[str, ...] = field(default_factory=tuple)
    registrar: Optional[AuthorityRegistrar] = None
