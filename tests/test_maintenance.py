"""
Tests for the repair tooling
"""

from datetime import date

import pytest
from sqlalchemy import update

from app.core.errors import NotFoundError
from app.models import Event
from app.schemas.registration import AttendeeInfo, RegistrationRecord
from app.services.custom_fields import NOT_PROVIDED, NOT_SELECTED
from app.services.maintenance_service import MaintenanceService
from app.services.ticket_service import TicketService

@pytest.fixture
def maintenance(store, qr_service):
    return MaintenanceService(store, TicketService(store, qr_service))

def test_backfill_fills_only_empty_answers(maintenance, registration_service, store, make_event):
    event = make_event(custom_fields=[
        {"name": "City", "type": "text"},
        {"name": "Age", "type": "number"},
        {"name": "Size", "type": "select", "options": ["S", "M"]},
        {"name": "Joined", "type": "date"},
        {"name": "Newsletter", "type": "checkbox"},
    ])
    empty = registration_service.register(event.id, AttendeeInfo(name="Empty", email="empty@example.com"))
    answered = registration_service.register(event.id, AttendeeInfo(name="Full", email="full@example.com"), {"City": "Pune"})

    assert maintenance.backfill_missing_custom_fields(event.id) == {"repaired": 1}

    assert store.get_registration(empty.registration_id).custom_field_values == {
        "City": NOT_PROVIDED,
        "Age": 0,
        "Size": NOT_SELECTED,
        "Joined": date.today().isoformat(),
        "Newsletter": False,
    }
    assert store.get_registration(answered.registration_id).custom_field_values == {"City": "Pune"}
    assert maintenance.backfill_missing_custom_fields() == {"repaired": 0}

def test_restore_sanitized_keys(maintenance, store, make_event):
    event = make_event(custom_fields=[{"name": "Company.Name", "type": "text"}])
    legacy = store.insert_registration(RegistrationRecord(
        event_id=event.id,
        name="Legacy",
        email="legacy@example.com",
        ticket_id=1,
        custom_field_values={"Company_Name": "Acme", "note": "kept"},
    ))

    assert maintenance.restore_sanitized_keys() == {"repaired": 1}
    assert store.get_registration(legacy.id).custom_field_values == {"Company.Name": "Acme", "note": "kept"}
    assert maintenance.restore_sanitized_keys(event.id) == {"repaired": 0}

def test_resync_ticket_counter(maintenance, registration_service, db_session, store, free_event):
    for i in range(3):
        registration_service.register(free_event.id, AttendeeInfo(name=f"G{i}", email=f"g{i}@example.com"))
    # Simulate a counter that fell behind the stored tickets
    db_session.execute(update(Event).where(Event.id == free_event.id).values(last_ticket_id=1))
    db_session.commit()

    assert maintenance.resync_ticket_counter(free_event.id) == {"last_ticket_id": 3}

    result = registration_service.register(free_event.id, AttendeeInfo(name="Next", email="next@example.com"))
    assert result.ticket_id == 4

def test_maintenance_unknown_event(maintenance):
    with pytest.raises(NotFoundError):
        maintenance.backfill_missing_custom_fields("missing")
    with pytest.raises(NotFoundError):
        maintenance.resync_ticket_counter("missing")
