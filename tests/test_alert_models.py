"""
test_alert_models.py — Data model and boundary validation tests.

Covers:
    • Enums (categories, lifecycle ranking, channel order)
    • AlertRecord lifecycle (forward-only status, message lock, timestamps)
    • Contact recipient checks
    • DispatchResult / LogEntry views
    • validation.build_alert boundary rules

Run with:
    pytest tests/test_alert_models.py -v
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend.app.alerts.models import (
    CHANNEL_ORDER,
    AlertCategory,
    AlertRecord,
    AlertStatus,
    ChannelKind,
    ChannelOutcome,
    Contact,
    DispatchResult,
    LogEntry,
)
from backend.app.alerts.validation import (
    MAX_MESSAGE_LENGTH,
    build_alert,
    parse_category,
    parse_location,
)
from backend.app.core.errors import AlertLockedError, InvalidTransition, ValidationError
from backend.app.spatial.location import Coordinate

from conftest import NYC_LAT, NYC_LON, make_alert


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Enums
# ═══════════════════════════════════════════════════════════════════════════

class TestEnums:

    def test_categories_closed_set(self):
        assert {c.value for c in AlertCategory} == {"medical", "fire", "police", "general"}

    def test_status_rank_follows_lifecycle(self):
        assert AlertStatus.PENDING.rank < AlertStatus.ACKNOWLEDGED.rank
        assert AlertStatus.ACKNOWLEDGED.rank < AlertStatus.RESOLVED.rank

    def test_channel_order(self):
        assert CHANNEL_ORDER == (
            ChannelKind.SMS, ChannelKind.EMAIL, ChannelKind.AUTHORITY, ChannelKind.PUSH,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: AlertRecord
# ═══════════════════════════════════════════════════════════════════════════

class TestAlertRecord:

    def test_new_alert_is_pending(self):
        alert = make_alert()
        assert alert.status == AlertStatus.PENDING
        assert alert.acknowledged_at is None
        assert alert.resolved_at is None
        assert not alert.is_dispatched

    def test_ids_are_unique(self):
        assert make_alert().id != make_alert().id

    def test_created_at_is_utc(self):
        assert make_alert().created_at.tzinfo == timezone.utc

    def test_forward_transitions_stamp_timestamps(self):
        alert = make_alert()
        alert.set_status(AlertStatus.ACKNOWLEDGED)
        assert alert.acknowledged_at is not None
        alert.set_status("resolved")
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolved_at is not None

    def test_skipping_to_resolved_stamps_acknowledged(self):
        alert = make_alert()
        alert.set_status(AlertStatus.RESOLVED)
        assert alert.acknowledged_at is not None

    @pytest.mark.parametrize("backward", [AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED])
    def test_resolved_never_regresses(self, backward):
        alert = make_alert()
        alert.set_status(AlertStatus.RESOLVED)
        with pytest.raises(InvalidTransition) as exc_info:
            alert.set_status(backward)
        assert exc_info.value.status_code == 409
        assert alert.status == AlertStatus.RESOLVED

    def test_acknowledged_to_pending_rejected(self):
        alert = make_alert()
        alert.set_status(AlertStatus.ACKNOWLEDGED)
        with pytest.raises(InvalidTransition):
            alert.set_status(AlertStatus.PENDING)

    def test_same_status_is_noop(self):
        alert = make_alert()
        alert.set_status(AlertStatus.ACKNOWLEDGED)
        stamped = alert.acknowledged_at
        alert.set_status(AlertStatus.ACKNOWLEDGED)
        assert alert.acknowledged_at == stamped

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            make_alert().set_status("escalated")

    def test_message_editable_before_dispatch(self):
        alert = make_alert()
        alert.message = "Updated"
        assert alert.message == "Updated"

    def test_message_locked_after_dispatch(self):
        alert = make_alert()
        alert.mark_dispatched()
        with pytest.raises(AlertLockedError):
            alert.message = "Too late"

    def test_identity_is_read_only(self):
        alert = make_alert()
        with pytest.raises(AttributeError):
            alert.id = "other"
        with pytest.raises(AttributeError):
            alert.category = AlertCategory.FIRE

    def test_summary(self):
        alert = make_alert(category="fire", message="Kitchen fire", address="12 Beach Rd")
        assert alert.summary() == "Alert [fire] - Kitchen fire at 12 Beach Rd"

    def test_to_row_mapping(self):
        row = make_alert().to_row()
        assert row["type"] == "medical"
        assert row["user_id"] == "user-1"
        assert row["latitude"] == NYC_LAT
        assert row["longitude"] == NYC_LON
        assert row["status"] == "pending"

    def test_restore_keeps_identity(self):
        created = datetime(2025, 1, 1, tzinfo=timezone.utc)
        alert = AlertRecord.restore(
            alert_id="a-1",
            originator_id="user-9",
            category="police",
            message="Break-in",
            status="acknowledged",
            created_at=created,
        )
        assert alert.id == "a-1"
        assert alert.created_at == created
        assert alert.status == AlertStatus.ACKNOWLEDGED
        assert alert.is_dispatched


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Contacts, results, log entries
# ═══════════════════════════════════════════════════════════════════════════

class TestContact:

    def test_blank_phone_and_email_do_not_count(self):
        contact = Contact(contact_id="c", name="n", phone="  ", email="")
        assert not contact.has_phone
        assert not contact.has_email

    def test_to_dict_uses_id_key(self):
        d = Contact(contact_id="c1", name="Ana", phone="+1").to_dict()
        assert d["id"] == "c1"
        assert d["phone"] == "+1"


class TestDispatchResult:

    def test_outcome_lookup(self):
        sms = ChannelOutcome(ChannelKind.SMS, True, "ok")
        auth = ChannelOutcome(ChannelKind.AUTHORITY, False, "down")
        result = DispatchResult(False, (sms, auth), AlertStatus.PENDING)
        assert result.outcome_for(ChannelKind.AUTHORITY) is auth
        assert result.outcome_for(ChannelKind.EMAIL) is None
        assert result.any_success
        assert result.channels == [ChannelKind.SMS, ChannelKind.AUTHORITY]


class TestLogEntry:

    def test_snapshot_survives_json_dict(self):
        alert = make_alert()
        outcomes = [ChannelOutcome(ChannelKind.PUSH, True, "Push notifications sent to 0 devices")]
        entry = LogEntry.from_alert(alert, outcomes)
        restored = LogEntry.from_dict(entry.to_dict())
        assert restored == entry
        assert restored.location == Coordinate(NYC_LAT, NYC_LON)

    def test_snapshot_is_frozen(self):
        entry = LogEntry.from_alert(make_alert(), [])
        with pytest.raises(AttributeError):
            entry.message = "changed"


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Boundary validation
# ═══════════════════════════════════════════════════════════════════════════

class TestValidation:

    def test_category_case_insensitive(self):
        assert parse_category("  FIRE ") == AlertCategory.FIRE

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_category("flood")
        assert exc_info.value.details["field"] == "category"
        assert exc_info.value.status_code == 422

    def test_location_both_or_neither(self):
        assert parse_location(None, None) is None
        with pytest.raises(ValidationError):
            parse_location(40.0, None)

    @pytest.mark.parametrize("lat,lon", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.1)])
    def test_out_of_range_coordinates(self, lat, lon):
        with pytest.raises(ValidationError):
            parse_location(lat, lon)

    def test_oversized_message_rejected(self):
        with pytest.raises(ValidationError):
            make_alert(message="x" * (MAX_MESSAGE_LENGTH + 1))

    def test_message_at_limit_accepted(self):
        alert = make_alert(message="x" * MAX_MESSAGE_LENGTH)
        assert len(alert.message) == MAX_MESSAGE_LENGTH

    def test_originator_required(self):
        with pytest.raises(ValidationError):
            build_alert("", "medical")

    def test_no_location(self):
        alert = make_alert(latitude=None, longitude=None, address="")
        assert alert.location is None
