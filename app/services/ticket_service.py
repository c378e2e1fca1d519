"""
Ticket issuance: per-event ticket numbering and QR ticket rendering
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict

from app.schemas.event import EventRecord
from app.schemas.registration import RegistrationRecord
from app.services.qr_service import QRService
from app.services.repositories import RegistrationStore

logger = logging.getLogger(__name__)


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


class TicketService:
    """Allocates ticket numbers and renders QR tickets"""

    def __init__(self, store: RegistrationStore, qr_service: QRService):
        self.store = store
        self.qr_service = qr_service

    def allocate_ticket_number(self, event_id: str) -> int:
        """Next ticket number for the event; never handed out twice."""
        ticket_id = self.store.next_ticket_id(event_id)
        logger.info(f"Allocated ticket #{ticket_id} for event {event_id}")
        return ticket_id

    @staticmethod
    def ticket_payload(registration: RegistrationRecord, event: EventRecord) -> Dict[str, Any]:
        status = registration.payment_status
        return {
            "name": registration.name,
            "ticketId": registration.ticket_id,
            "email": registration.email,
            "phone": registration.phone or "Not provided",
            "eventId": event.id,
            "eventName": event.name,
            "venue": event.venue or "",
            "date": _iso(event.date),
            "fee": event.fee,
            "paymentStatus": status.value if hasattr(status, "value") else status,
            "registrationDate": _iso(registration.registration_date),
        }

    def render_ticket(self, registration: RegistrationRecord, event: EventRecord) -> str:
        """Encode the ticket payload as a QR image, returned as a PNG data URL."""
        payload = json.dumps(self.ticket_payload(registration, event), sort_keys=True, separators=(",", ":"))
        return self.qr_service.to_data_url(self.qr_service.encode(payload))

    def resync_ticket_counter(self, event_id: str) -> int:
        """Raise the counter to the highest ticket number already stored."""
        event = self.store.get_event(event_id)
        highest = self.store.max_ticket_id(event_id)
        if event is not None and highest > event.last_ticket_id:
            self.store.set_ticket_counter(event_id, highest)
            logger.info(f"Ticket counter for event {event_id} raised to {highest}")
            return highest
        return event.last_ticket_id if event else highest
