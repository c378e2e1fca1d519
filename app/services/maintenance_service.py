"""
Repair tooling for historical registration records
"""

import logging
from typing import Dict, List, Optional

from app.core.errors import NotFoundError
from app.schemas.event import EventRecord
from app.services.custom_fields import (
    default_value_for,
    normalize_custom_field_values,
    restore_sanitized_keys,
)
from app.services.repositories import RegistrationStore
from app.services.ticket_service import TicketService

logger = logging.getLogger(__name__)


class MaintenanceService:
    """Bulk repairs run from the admin API"""

    def __init__(self, store: RegistrationStore, tickets: TicketService):
        self.store = store
        self.tickets = tickets

    def _events(self, event_id: Optional[str]) -> List[EventRecord]:
        if event_id is None:
            return self.store.list_events()
        event = self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event")
        return [event]

    def backfill_missing_custom_fields(self, event_id: Optional[str] = None) -> Dict[str, int]:
        """Give registrations with no answers at all a placeholder per schema field."""
        repaired = 0
        for event in self._events(event_id):
            if not event.custom_fields:
                continue
            for registration in self.store.list_registrations(event.id):
                if normalize_custom_field_values(registration.custom_field_values):
                    continue
                registration.custom_field_values = {
                    field.name: default_value_for(field.type) for field in event.custom_fields
                }
                self.store.save_registration(registration)
                repaired += 1
                logger.info(f"Backfilled custom fields for registration {registration.id}")
        logger.info(f"Custom field backfill repaired {repaired} registration(s)")
        return {"repaired": repaired}

    def restore_sanitized_keys(self, event_id: Optional[str] = None) -> Dict[str, int]:
        """Rename underscore-sanitized answer keys back to their declared field names."""
        repaired = 0
        for event in self._events(event_id):
            if not any("." in field.name for field in event.custom_fields):
                continue
            for registration in self.store.list_registrations(event.id):
                values = normalize_custom_field_values(registration.custom_field_values)
                restored, changed = restore_sanitized_keys(values, event.custom_fields)
                if not changed:
                    continue
                registration.custom_field_values = restored
                self.store.save_registration(registration)
                repaired += 1
                logger.info(f"Restored custom field keys for registration {registration.id}")
        logger.info(f"Key restore repaired {repaired} registration(s)")
        return {"repaired": repaired}

    def resync_ticket_counter(self, event_id: str) -> Dict[str, int]:
        self._events(event_id)
        return {"last_ticket_id": self.tickets.resync_ticket_counter(event_id)}
