"""
Database models for the emergency alert system.

═══════════════════════════════════════════════════════════════════════════
DATABASE SCHEMA
═══════════════════════════════════════════════════════════════════════════

Table: alerts
─────────────────────────────────────────────────────────────────────────────
| Column           | Type        | Description                            |
|------------------|-------------|----------------------------------------|
| id               | VARCHAR(36) | Alert id (assigned by AlertRecord)     |
| user_id          | VARCHAR(64) | Originator                             |
| type             | VARCHAR(16) | medical / fire / police / general      |
| status           | VARCHAR(16) | pending / acknowledged / resolved      |
| message          | TEXT        | Free text (≤1000 chars)                |
| latitude         | FLOAT       | Optional                               |
| longitude        | FLOAT       | Optional                               |
| location_address | TEXT        | Human-readable address                 |
| created_at       | TIMESTAMP   | Raised at                              |
| acknowledged_at  | TIMESTAMP   | First reached acknowledged             |
| resolved_at      | TIMESTAMP   | Reached resolved                       |
─────────────────────────────────────────────────────────────────────────────

Table: contacts    — (id, user_id, name, relationship, phone, email, priority)
Table: events      — audit trail per alert (event_type, description, metadata)
Table: user_roles  — (user_id, role) UNIQUE; role ∈ {admin, user}

Ownership rules are enforced in the repository: users see only their own
rows; the admin role may read every alert and update its status.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AlertRow(Base):
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(16), default="general")
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )


class ContactRow(Base):
    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200))
    relationship: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class EventRow(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    alert_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("alerts.id", ondelete="CASCADE"), index=True,
    )
    event_type: Mapped[str] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class UserRoleRow(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    role: Mapped[str] = mapped_column(String(16), default="user")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
