"""
Pydantic schemas for the emergency alert API.

Separated from the route handlers so they are reusable across
the codebase (notifier clients, console tooling, tests).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.app.alerts.models import (
    AlertCategory,
    AlertRecord,
    AlertStatus,
    ChannelKind,
    ChannelOutcome,
    Contact,
    LogEntry,
)
from backend.app.alerts.validation import MAX_ADDRESS_LENGTH, MAX_MESSAGE_LENGTH


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

class ContactIn(BaseModel):
    """A new emergency contact for the caller."""
    name: str = Field(..., min_length=1, max_length=200, examples=["Priya"])
    phone: Optional[str] = Field(None, max_length=32, examples=["+919876543210"])
    email: Optional[str] = Field(None, max_length=254, examples=["priya@example.com"])
    relationship: str = Field("", max_length=100, examples=["sister"])
    priority: int = Field(1, ge=1, le=5, description="1 (lowest) – 5 (highest)")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class ContactOut(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    relationship: str = ""
    priority: int = 1

    @classmethod
    def from_contact(cls, contact: Contact) -> "ContactOut":
        return cls(**contact.to_dict())


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

class AlertCreate(BaseModel):
    """
    Raise an alert. Coordinates come from browser geolocation when the
    user allowed it; either both are supplied or neither.
    """
    category: AlertCategory = Field(..., examples=["medical"])
    message: str = Field("", max_length=MAX_MESSAGE_LENGTH)
    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0, examples=[13.0827])
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0, examples=[80.2707])
    address: str = Field("", max_length=MAX_ADDRESS_LENGTH)
    device_tokens: List[str] = Field(
        default_factory=list,
        description="Push tokens registered by the caller's session",
    )

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _paired_coordinates(self) -> "AlertCreate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self


class StatusUpdate(BaseModel):
    status: AlertStatus = Field(..., examples=["resolved"])


class AlertOut(BaseModel):
    id: str
    originator_id: str
    category: AlertCategory
    message: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""
    status: AlertStatus
    created_at: str
    acknowledged_at: Optional[str] = None
    resolved_at: Optional[str] = None

    @classmethod
    def from_alert(cls, alert: AlertRecord) -> "AlertOut":
        d = alert.to_dict()
        location = d.pop("location")
        return cls(
            **d,
            latitude=location["latitude"] if location else None,
            longitude=location["longitude"] if location else None,
        )


class OutcomeOut(BaseModel):
    channel: ChannelKind
    success: bool
    detail: str
    rejected: bool = False
    duration_ms: float = 0.0

    @classmethod
    def from_outcome(cls, outcome: ChannelOutcome) -> "OutcomeOut":
        return cls(**outcome.to_dict())


class DispatchResponse(BaseModel):
    """Alert after its dispatch cycle, with every channel's outcome."""
    alert: AlertOut
    overall_success: bool
    outcomes: List[OutcomeOut]
    logged: bool = Field(..., description="Whether the local log accepted the entry")


class EventOut(BaseModel):
    id: str
    event_type: str
    description: Optional[str] = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


# ---------------------------------------------------------------------------
# Local log
# ---------------------------------------------------------------------------

class LogEntryOut(BaseModel):
    alert_id: str
    originator_id: str
    category: AlertCategory
    message: str
    location: Optional[Dict[str, float]] = None
    address: str = ""
    created_at: str
    final_status: AlertStatus
    outcomes: List[OutcomeOut]

    @classmethod
    def from_entry(cls, entry: LogEntry) -> "LogEntryOut":
        return cls(**entry.to_dict())


class LogStatistics(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_status: Dict[str, int]


class OperationResult(BaseModel):
    success: bool


# ---------------------------------------------------------------------------
# Downstream notifier
# ---------------------------------------------------------------------------

class NotifyRequest(BaseModel):
    """Accepts ``alertId`` (the function's wire name) or ``alert_id``."""

    model_config = ConfigDict(populate_by_name=True)

    alert_id: str = Field(..., min_length=1, alias="alertId")


class NotifyResponse(BaseModel):
    success: bool
    message: str
    contacts_notified: int
