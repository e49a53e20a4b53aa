"""
FastAPI route: the caller's emergency contacts.

    POST   /api/v1/contacts        — add a contact
    GET    /api/v1/contacts        — list contacts, highest priority first
    DELETE /api/v1/contacts/{id}   — remove one of the caller's contacts
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from backend.app.api.dependencies import get_current_user, get_repository
from backend.app.api.schemas import ContactIn, ContactOut, OperationResult
from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.storage.repository import EmergencyRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/contacts", tags=["contacts"])


@router.post("", response_model=ContactOut, status_code=201)
async def add_contact(
    body: ContactIn,
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    phone = (body.phone or "").strip() or None
    email = (body.email or "").strip() or None
    if phone is None and email is None:
        raise ValidationError("A contact needs a phone number or an email", field="phone")

    contact = await repo.add_contact(
        user_id,
        name=body.name,
        phone=phone,
        email=email,
        relationship=body.relationship.strip(),
        priority=body.priority,
    )
    logger.info("Contact %s added for %s", contact.contact_id, user_id)
    return ContactOut.from_contact(contact)


@router.get("", response_model=List[ContactOut])
async def list_contacts(
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    return [ContactOut.from_contact(c) for c in await repo.list_contacts(user_id)]


@router.delete("/{contact_id}", response_model=OperationResult)
async def delete_contact(
    contact_id: str,
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
):
    if not await repo.delete_contact(user_id, contact_id):
        raise NotFoundError("Contact", id=contact_id)
    return OperationResult(success=True)
