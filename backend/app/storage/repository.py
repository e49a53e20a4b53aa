"""
repository.py — Ownership-scoped access to alerts, contacts, events and roles.

One repository wraps one AsyncSession. Writes are flushed immediately;
committing is left to the session owner (the request dependency) except
where a caller needs the row visible to another process first, via
:meth:`EmergencyRepository.commit`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.alerts.models import AlertRecord, AlertStatus, Contact
from backend.app.core.errors import NotFoundError
from backend.app.spatial.location import Coordinate
from backend.app.storage.models import AlertRow, ContactRow, EventRow, UserRoleRow

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; they were written as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def alert_from_row(row: AlertRow) -> AlertRecord:
    location = None
    if row.latitude is not None and row.longitude is not None:
        location = Coordinate(row.latitude, row.longitude)
    return AlertRecord.restore(
        alert_id=row.id,
        originator_id=row.user_id,
        category=row.type,
        message=row.message or "",
        status=row.status,
        created_at=_aware(row.created_at),
        location=location,
        address=row.location_address or "",
        acknowledged_at=_aware(row.acknowledged_at),
        resolved_at=_aware(row.resolved_at),
    )


def contact_from_row(row: ContactRow) -> Contact:
    return Contact(
        contact_id=row.id,
        name=row.name,
        phone=row.phone,
        email=row.email,
        relationship=row.relationship or "",
        priority=row.priority,
    )


class EmergencyRepository:
    """Data access for one unit of work."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    # ── Alerts ──

    async def save_alert(self, alert: AlertRecord) -> None:
        """Insert or update the alert row; repeated calls converge."""
        fields = alert.to_row()
        row = await self.session.get(AlertRow, alert.id)
        if row is None:
            self.session.add(AlertRow(**fields))
        else:
            for key in ("status", "message", "acknowledged_at", "resolved_at"):
                setattr(row, key, fields[key])
        await self.session.flush()

    async def get_alert_row(self, alert_id: str) -> Optional[AlertRow]:
        return await self.session.get(AlertRow, alert_id)

    async def get_alert(self, alert_id: str) -> Optional[AlertRecord]:
        row = await self.get_alert_row(alert_id)
        return alert_from_row(row) if row else None

    async def get_owned_alert(self, alert_id: str, user_id: str) -> Optional[AlertRecord]:
        row = await self.get_alert_row(alert_id)
        if row is None or row.user_id != user_id:
            return None
        return alert_from_row(row)

    async def list_alerts(self, user_id: str) -> List[AlertRecord]:
        result = await self.session.execute(
            select(AlertRow)
            .where(AlertRow.user_id == user_id)
            .order_by(AlertRow.created_at.desc())
        )
        return [alert_from_row(r) for r in result.scalars().all()]

    async def list_all_alerts(self, status: Optional[str] = None) -> List[AlertRecord]:
        stmt = select(AlertRow).order_by(AlertRow.created_at.desc())
        if status:
            stmt = stmt.where(AlertRow.status == status)
        result = await self.session.execute(stmt)
        return [alert_from_row(r) for r in result.scalars().all()]

    async def update_alert_status(
        self,
        alert_id: str,
        status: AlertStatus | str,
    ) -> AlertRecord:
        """
        Move a stored alert forward.

        Raises
        ------
        NotFoundError
            Unknown alert id.
        InvalidTransition
            Backward move.
        """
        row = await self.get_alert_row(alert_id)
        if row is None:
            raise NotFoundError("Alert", id=alert_id)

        alert = alert_from_row(row)
        alert.set_status(status)
        row.status = alert.status.value
        row.acknowledged_at = alert.acknowledged_at
        row.resolved_at = alert.resolved_at
        await self.session.flush()
        return alert

    # ── Contacts ──

    async def add_contact(
        self,
        user_id: str,
        *,
        name: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        relationship: str = "",
        priority: int = 1,
    ) -> Contact:
        row = ContactRow(
            user_id=user_id,
            name=name,
            phone=phone,
            email=email,
            relationship=relationship,
            priority=priority,
        )
        self.session.add(row)
        await self.session.flush()
        return contact_from_row(row)

    async def list_contacts(self, user_id: str) -> List[Contact]:
        """Contacts of ``user_id``, highest priority first."""
        result = await self.session.execute(
            select(ContactRow)
            .where(ContactRow.user_id == user_id)
            .order_by(ContactRow.priority.desc(), ContactRow.created_at)
        )
        return [contact_from_row(r) for r in result.scalars().all()]

    async def delete_contact(self, user_id: str, contact_id: str) -> bool:
        row = await self.session.get(ContactRow, contact_id)
        if row is None or row.user_id != user_id:
            return False
        await self.session.delete(row)
        await self.session.flush()
        return True

    # ── Events ──

    async def record_event(
        self,
        alert_id: Optional[str],
        event_type: str,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.session.add(EventRow(
            alert_id=alert_id,
            event_type=event_type,
            description=description,
            event_metadata=metadata or {},
        ))
        await self.session.flush()
        logger.debug("Event %s recorded for alert %s", event_type, alert_id)

    async def list_events(self, alert_id: str) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(EventRow)
            .where(EventRow.alert_id == alert_id)
            .order_by(EventRow.created_at)
        )
        return [
            {
                "id": e.id,
                "event_type": e.event_type,
                "description": e.description,
                "metadata": e.event_metadata or {},
                "created_at": _aware(e.created_at).isoformat(),
            }
            for e in result.scalars().all()
        ]

    # ── Roles ──

    async def grant_role(self, user_id: str, role: str = USER_ROLE) -> None:
        if await self.has_role(user_id, role):
            return
        self.session.add(UserRoleRow(user_id=user_id, role=role))
        await self.session.flush()

    async def has_role(self, user_id: str, role: str) -> bool:
        result = await self.session.execute(
            select(UserRoleRow.id)
            .where(UserRoleRow.user_id == user_id, UserRoleRow.role == role)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def is_admin(self, user_id: str) -> bool:
        return await self.has_role(user_id, ADMIN_ROLE)
