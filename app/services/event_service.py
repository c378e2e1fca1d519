"""
Event capacity and pricing decisions, plus the organizer-side
create/update operations that have to respect them.
"""

import logging
from typing import Any, Dict, Iterable, List

from app.core.errors import NotFoundError, ValidationError
from app.schemas.event import EventCreate, EventRecord, EventUpdate
from app.schemas.registration import PaymentStatus, RegistrationRecord
from app.services.custom_fields import define_fields
from app.services.repositories import RegistrationStore

logger = logging.getLogger(__name__)


def remaining_seats(event: EventRecord) -> int:
    """Seats left; a negative result is reported, never clamped."""
    remaining = event.seat_limit - event.registered_users
    if remaining < 0:
        logger.error(
            f"Event {event.id} has {event.registered_users} registrations for {event.seat_limit} seats"
        )
    return remaining


def is_registration_open(event: EventRecord) -> bool:
    return remaining_seats(event) > 0


def requires_payment(event: EventRecord) -> bool:
    return not event.is_free


def _check_pricing(is_free: bool, fee: float) -> float:
    if is_free:
        return 0
    if fee is None or fee <= 0:
        raise ValidationError("Fee amount is required for paid events")
    return fee


class EventService:
    """Organizer operations on events"""

    def __init__(self, store: RegistrationStore):
        self.store = store

    def get_event(self, event_id: str) -> EventRecord:
        event = self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event")
        return event

    def list_events(self) -> List[EventRecord]:
        return self.store.list_events()

    def create_event(self, payload: EventCreate) -> EventRecord:
        data = payload.model_dump()
        data["fee"] = _check_pricing(payload.is_free, payload.fee)
        data["custom_fields"] = [f.model_dump(mode="json") for f in define_fields(payload.custom_fields)]
        data["email_for_notifications"] = payload.email_for_notifications or ""
        event = self.store.create_event(data)
        logger.info(f"Created event {event.id} ({event.name}) with {event.seat_limit} seats")
        return event

    def update_event(self, event_id: str, payload: EventUpdate) -> EventRecord:
        event = self.get_event(event_id)
        changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
        # null means "leave as is" for the non-nullable columns
        for key in ("name", "date", "seat_limit", "is_free", "fee", "featured"):
            if key in changes and changes[key] is None:
                changes.pop(key)

        is_free = changes.get("is_free", event.is_free)
        fee = changes.get("fee", event.fee)
        if "is_free" in changes or "fee" in changes:
            changes["fee"] = _check_pricing(is_free, fee)

        if "custom_fields" in changes:
            changes["custom_fields"] = [
                f.model_dump(mode="json") for f in define_fields(changes["custom_fields"] or [])
            ]

        if "email_for_notifications" in changes:
            changes["email_for_notifications"] = changes["email_for_notifications"] or ""

        if not changes:
            return event

        updated = self.store.update_event(event_id, changes)
        if updated is None:
            current = self.get_event(event_id)
            raise ValidationError(
                f"Seat limit cannot be lower than the {current.registered_users} seats already taken"
            )
        logger.info(f"Updated event {event_id}: {sorted(changes)}")
        return updated

    @staticmethod
    def event_summary(event: EventRecord, registrations: Iterable[RegistrationRecord]) -> Dict[str, Any]:
        registrations = list(registrations)
        return {
            "total_registrations": len(registrations),
            "completed": sum(1 for r in registrations if r.payment_status == PaymentStatus.COMPLETED),
            "pending": sum(1 for r in registrations if r.payment_status == PaymentStatus.PENDING),
            "failed": sum(1 for r in registrations if r.payment_status == PaymentStatus.FAILED),
            "verified": sum(1 for r in registrations if r.payment_verified),
            "awaiting_verification": sum(1 for r in registrations if r.payment_screenshot_url and r.payment_status == PaymentStatus.PENDING),
            "registered_users": event.registered_users,
            "seat_limit": event.seat_limit,
            "remaining_seats": remaining_seats(event),
        }
