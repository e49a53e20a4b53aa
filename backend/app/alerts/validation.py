"""
Boundary validation — reject malformed input before an AlertRecord exists.

The HTTP layer validates through pydantic schemas; the console demo and any
other non-HTTP caller goes through :func:`build_alert`, which applies the same
rules and raises :class:`ValidationError` on the first violation.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.app.alerts.models import AlertCategory, AlertRecord
from backend.app.core.errors import ValidationError
from backend.app.spatial.location import Coordinate

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000
MAX_ADDRESS_LENGTH = 500


def parse_category(value: str) -> AlertCategory:
    try:
        return AlertCategory(value.strip().lower())
    except (ValueError, AttributeError):
        valid = [c.value for c in AlertCategory]
        raise ValidationError(
            f"Invalid category '{value}'. Must be one of: {valid}",
            field="category",
        )


def parse_location(
    latitude: Optional[float],
    longitude: Optional[float],
) -> Optional[Coordinate]:
    """Both coordinates or neither; each within its geographic range."""
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise ValidationError(
            "Latitude and longitude must be provided together",
            field="location",
        )
    try:
        return Coordinate(float(latitude), float(longitude))
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc), field="location")


def validate_message(message: str) -> str:
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message exceeds {MAX_MESSAGE_LENGTH} characters",
            field="message",
            length=len(message),
        )
    return message


def build_alert(
    originator_id: str,
    category: str,
    message: str = "",
    *,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    address: str = "",
) -> AlertRecord:
    """Validate raw input and construct a pending AlertRecord."""
    if not originator_id:
        raise ValidationError("Originator id is required", field="originator_id")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise ValidationError(
            f"Address exceeds {MAX_ADDRESS_LENGTH} characters", field="address",
        )

    alert = AlertRecord(
        originator_id=originator_id,
        category=parse_category(category),
        message=validate_message(message),
        location=parse_location(latitude, longitude),
        address=address,
    )
    logger.debug("Built alert %s for %s", alert.id, originator_id)
    return alert
