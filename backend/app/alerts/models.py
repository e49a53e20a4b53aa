"""
models.py — Shared data structures for the emergency alert system.

Defines:
    • AlertCategory  — kind of emergency (closed set)
    • AlertStatus    — forward-only lifecycle
    • ChannelKind    — delivery channel enum
    • Contact        — an originator's emergency contact (read-only here)
    • AlertRecord    — one emergency event raised by a user
    • ChannelOutcome — result of one channel attempt
    • DispatchResult — aggregate of one dispatch cycle
    • LogEntry       — immutable snapshot of a completed dispatch cycle

═══════════════════════════════════════════════════════════════════════════
ALERT LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    pending ──► acknowledged ──► resolved
       │                            ▲
       └────────────────────────────┘

    • pending       set at construction
    • acknowledged  set by the coordinator after a successful dispatch
    • resolved      set by the administrative workflow only

Status never moves backward. The message may be edited by its owner
until the first dispatch; everything else is fixed at construction.

═══════════════════════════════════════════════════════════════════════════
CHANNEL APPLICABILITY
═══════════════════════════════════════════════════════════════════════════

    Channel      Recipients                 Applicable when
    ─────────    ────────────────────────   ──────────────────────────
    SMS          contacts with a phone      at least one phone
    Email        contacts with an email     at least one email
    Authority    derived from category      always
    Push         caller's device tokens     always
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.app.core.errors import AlertLockedError, InvalidTransition
from backend.app.spatial.location import Coordinate


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class AlertCategory(str, Enum):
    """Kind of emergency."""
    MEDICAL = "medical"
    FIRE    = "fire"
    POLICE  = "police"
    GENERAL = "general"


class AlertStatus(str, Enum):
    """Alert lifecycle state; ordering follows the lifecycle."""
    PENDING      = "pending"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED     = "resolved"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK: Dict[AlertStatus, int] = {
    AlertStatus.PENDING: 0,
    AlertStatus.ACKNOWLEDGED: 1,
    AlertStatus.RESOLVED: 2,
}


class ChannelKind(str, Enum):
    """Available notification channels."""
    SMS       = "sms"
    EMAIL     = "email"
    AUTHORITY = "authority"
    PUSH      = "push"


# Order in which outcomes are reported
CHANNEL_ORDER: Tuple[ChannelKind, ...] = (
    ChannelKind.SMS,
    ChannelKind.EMAIL,
    ChannelKind.AUTHORITY,
    ChannelKind.PUSH,
)


def _generate_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Contacts
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Contact:
    """
    An emergency contact belonging to the alert's originator.

    Attributes
    ----------
    contact_id : str
    name : str
    phone : str | None
        Phone number for SMS (E.164 preferred).
    email : str | None
    relationship : str
        Free-form label ("mother", "neighbour", ...).
    priority : int
        Rank 1–5; higher is contacted first by the notifier.
    """
    contact_id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    relationship: str = ""
    priority: int = 1

    @property
    def has_phone(self) -> bool:
        return bool(self.phone and self.phone.strip())

    @property
    def has_email(self) -> bool:
        return bool(self.email and self.email.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.contact_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "relationship": self.relationship,
            "priority": self.priority,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Alert Record
# ═══════════════════════════════════════════════════════════════════════════

class AlertRecord:
    """
    One emergency event raised by a user.

    Identity (``id``, ``originator_id``), ``category``, ``location`` and
    ``created_at`` are fixed at construction. ``status`` moves forward only,
    through :meth:`set_status`. ``message`` is editable until the record has
    been dispatched once.
    """

    def __init__(
        self,
        originator_id: str,
        category: AlertCategory | str,
        message: str,
        location: Optional[Coordinate] = None,
        address: str = "",
    ):
        self._id = _generate_id()
        self._originator_id = originator_id
        self._category = AlertCategory(category)
        self._message = message
        self._location = location
        self._address = address
        self._status = AlertStatus.PENDING
        self._created_at = _now()
        self._acknowledged_at: Optional[datetime] = None
        self._resolved_at: Optional[datetime] = None
        self._dispatched = False

    @classmethod
    def restore(
        cls,
        *,
        alert_id: str,
        originator_id: str,
        category: AlertCategory | str,
        message: str,
        status: AlertStatus | str,
        created_at: datetime,
        location: Optional[Coordinate] = None,
        address: str = "",
        acknowledged_at: Optional[datetime] = None,
        resolved_at: Optional[datetime] = None,
    ) -> "AlertRecord":
        """Rebuild a stored alert without generating a new id or timestamp."""
        record = cls(originator_id, category, message, location, address)
        record._id = alert_id
        record._status = AlertStatus(status)
        record._created_at = created_at
        record._acknowledged_at = acknowledged_at
        record._resolved_at = resolved_at
        record._dispatched = True
        return record

    # ── Read access ──

    @property
    def id(self) -> str:
        return self._id

    @property
    def originator_id(self) -> str:
        return self._originator_id

    @property
    def category(self) -> AlertCategory:
        return self._category

    @property
    def location(self) -> Optional[Coordinate]:
        return self._location

    @property
    def address(self) -> str:
        return self._address

    @property
    def status(self) -> AlertStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def acknowledged_at(self) -> Optional[datetime]:
        return self._acknowledged_at

    @property
    def resolved_at(self) -> Optional[datetime]:
        return self._resolved_at

    @property
    def is_dispatched(self) -> bool:
        return self._dispatched

    # ── Controlled mutation ──

    @property
    def message(self) -> str:
        return self._message

    @message.setter
    def message(self, value: str) -> None:
        if self._dispatched:
            raise AlertLockedError(self._id, "message")
        self._message = value

    def set_status(self, new_status: AlertStatus | str) -> None:
        """
        Move the alert forward in its lifecycle.

        Raises
        ------
        InvalidTransition
            If ``new_status`` precedes the current status.
        """
        target = AlertStatus(new_status)
        if target.rank < self._status.rank:
            raise InvalidTransition(self._status.value, target.value)
        if target == self._status:
            return

        now = _now()
        if target.rank >= AlertStatus.ACKNOWLEDGED.rank and self._acknowledged_at is None:
            self._acknowledged_at = now
        if target == AlertStatus.RESOLVED:
            self._resolved_at = now
        self._status = target

    def mark_dispatched(self) -> None:
        self._dispatched = True

    # ── Views ──

    def summary(self) -> str:
        return f"Alert [{self._category.value}] - {self._message} at {self._address}"

    def to_row(self) -> Dict[str, Any]:
        """Field mapping for the storage collaborator."""
        return {
            "id": self._id,
            "user_id": self._originator_id,
            "type": self._category.value,
            "status": self._status.value,
            "message": self._message,
            "latitude": self._location.latitude if self._location else None,
            "longitude": self._location.longitude if self._location else None,
            "location_address": self._address,
            "created_at": self._created_at,
            "acknowledged_at": self._acknowledged_at,
            "resolved_at": self._resolved_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "originator_id": self._originator_id,
            "category": self._category.value,
            "message": self._message,
            "location": self._location.to_dict() if self._location else None,
            "address": self._address,
            "status": self._status.value,
            "created_at": self._created_at.isoformat(),
            "acknowledged_at": (
                self._acknowledged_at.isoformat() if self._acknowledged_at else None
            ),
            "resolved_at": (
                self._resolved_at.isoformat() if self._resolved_at else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"AlertRecord(id={self._id!r}, category={self._category.value!r}, "
            f"status={self._status.value!r})"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChannelOutcome:
    """Result of one channel attempt within one dispatch cycle."""
    channel: ChannelKind
    success: bool
    detail: str
    rejected: bool = False      # downstream notifier refused the caller (401/403)
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "detail": self.detail,
            "rejected": self.rejected,
            "duration_ms": round(self.duration_ms, 2),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelOutcome":
        return cls(
            channel=ChannelKind(data["channel"]),
            success=bool(data["success"]),
            detail=str(data.get("detail", "")),
            rejected=bool(data.get("rejected", False)),
            duration_ms=float(data.get("duration_ms", 0.0)),
        )


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate of one fan-out-and-join pass."""
    overall_success: bool
    outcomes: Tuple[ChannelOutcome, ...]
    final_status: AlertStatus

    @property
    def any_success(self) -> bool:
        return any(o.success for o in self.outcomes)

    @property
    def channels(self) -> List[ChannelKind]:
        return [o.channel for o in self.outcomes]

    def outcome_for(self, channel: ChannelKind) -> Optional[ChannelOutcome]:
        for outcome in self.outcomes:
            if outcome.channel == channel:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_success": self.overall_success,
            "final_status": self.final_status.value,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# ═══════════════════════════════════════════════════════════════════════════
# Log Entry
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    """Immutable snapshot written once per completed dispatch cycle."""
    alert_id: str
    originator_id: str
    category: AlertCategory
    message: str
    created_at: datetime
    final_status: AlertStatus
    location: Optional[Coordinate] = None
    address: str = ""
    outcomes: Tuple[ChannelOutcome, ...] = field(default_factory=tuple)

    @classmethod
    def from_alert(
        cls,
        alert: AlertRecord,
        outcomes: Sequence[ChannelOutcome],
    ) -> "LogEntry":
        return cls(
            alert_id=alert.id,
            originator_id=alert.originator_id,
            category=alert.category,
            message=alert.message,
            created_at=alert.created_at,
            final_status=alert.status,
            location=alert.location,
            address=alert.address,
            outcomes=tuple(outcomes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "originator_id": self.originator_id,
            "category": self.category.value,
            "message": self.message,
            "location": self.location.to_dict() if self.location else None,
            "address": self.address,
            "created_at": self.created_at.isoformat(),
            "final_status": self.final_status.value,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        location = data.get("location")
        return cls(
            alert_id=str(data["alert_id"]),
            originator_id=str(data["originator_id"]),
            category=AlertCategory(data["category"]),
            message=str(data.get("message", "")),
            created_at=datetime.fromisoformat(data["created_at"]),
            final_status=AlertStatus(data["final_status"]),
            location=Coordinate.from_dict(location) if location else None,
            address=str(data.get("address", "")),
            outcomes=tuple(
                ChannelOutcome.from_dict(o) for o in data.get("outcomes", [])
            ),
        )
