"""
Tests for event capacity, pricing and organizer updates
"""

import logging
from datetime import datetime

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.schemas.event import EventRecord, EventUpdate, FieldType
from app.schemas.registration import AttendeeInfo
from app.services.event_service import is_registration_open, remaining_seats, requires_payment

def _record(**overrides):
    data = {"id": "evt-1", "name": "Gala", "date": datetime(2026, 1, 1), "seat_limit": 5}
    data.update(overrides)
    return EventRecord(**data)

def test_capacity_decisions():
    event = _record(registered_users=4)
    assert remaining_seats(event) == 1
    assert is_registration_open(event)

    full = _record(registered_users=5)
    assert remaining_seats(full) == 0
    assert not is_registration_open(full)

def test_oversold_event_is_reported_not_clamped(caplog):
    """A negative remainder is a data fault that must stay visible"""
    event = _record(registered_users=7)
    with caplog.at_level(logging.ERROR):
        assert remaining_seats(event) == -2
    assert "7 registrations for 5 seats" in caplog.text

def test_requires_payment():
    assert not requires_payment(_record(is_free=True))
    assert requires_payment(_record(is_free=False, fee=100))

def test_free_event_fee_forced_to_zero(make_event):
    event = make_event(is_free=True, fee=250)
    assert event.fee == 0

def test_paid_event_requires_fee(make_event):
    with pytest.raises(ValidationError):
        make_event(is_free=False, fee=0)

def test_custom_fields_normalized_on_create(make_event):
    event = make_event(custom_fields=[
        {"name": "Age", "type": "number", "required": True},
        {"name": "Size", "type": "select"},
        {"name": "Notes", "type": "rich-text"},
    ])
    assert [f.name for f in event.custom_fields] == ["Age", "Size", "Notes"]
    assert event.custom_fields[1].options == []
    assert event.custom_fields[2].type == FieldType.TEXT

def test_get_missing_event(event_service):
    with pytest.raises(NotFoundError) as exc:
        event_service.get_event("does-not-exist")
    assert exc.value.code == "EVENT_NOT_FOUND"

def test_update_seat_limit_and_pricing(event_service, free_event):
    updated = event_service.update_event(free_event.id, EventUpdate(seat_limit=25, is_free=False, fee=300))
    assert updated.seat_limit == 25
    assert updated.is_free is False
    assert updated.fee == 300

    with pytest.raises(ValidationError):
        event_service.update_event(free_event.id, EventUpdate(fee=0))

def test_seat_limit_cannot_drop_below_registrations(event_service, registration_service, free_event):
    """Lowering capacity never invalidates existing registrations"""
    for i in range(3):
        registration_service.register(free_event.id, AttendeeInfo(name=f"Guest {i}", email=f"g{i}@example.com"))

    with pytest.raises(ValidationError):
        event_service.update_event(free_event.id, EventUpdate(seat_limit=2))

    updated = event_service.update_event(free_event.id, EventUpdate(seat_limit=3))
    assert updated.seat_limit == 3
    assert updated.registered_users == 3
    assert not is_registration_open(updated)

def test_update_ignores_null_for_required_fields(event_service, free_event):
    updated = event_service.update_event(free_event.id, EventUpdate(name=None, venue="Annex"))
    assert updated.name == free_event.name
    assert updated.venue == "Annex"
