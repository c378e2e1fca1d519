"""
Public API routes - no authentication required
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from app.schemas.event import EventRecord
from app.schemas.registration import AttendeeInfo, PaymentRequired, RegisterRequest
from app.api.deps import get_event_service, get_registration_service
from app.services.event_service import EventService, is_registration_open, remaining_seats
from app.services.registration_service import RegistrationService
from app.utils.security import enforce_rate_limit
from app.utils.responses import success_response

router = APIRouter()

def public_event(event: EventRecord) -> Dict[str, Any]:
    data = event.model_dump(exclude={"last_ticket_id"})
    data["remaining_seats"] = max(remaining_seats(event), 0)
    data["is_registration_open"] = is_registration_open(event)
    return data

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events")
async def list_events(events: EventService = Depends(get_event_service)):
    """List events, most recent first"""
    return success_response(
        message="Events retrieved successfully",
        data=[public_event(event) for event in events.list_events()]
    )

@router.get("/events/{event_id}")
async def get_event(event_id: str, events: EventService = Depends(get_event_service)):
    """Get a single event with its registration form"""
    return success_response(
        message="Event retrieved successfully",
        data=public_event(events.get_event(event_id))
    )

@router.post("/events/{event_id}/register", dependencies=[Depends(enforce_rate_limit)])
async def register_for_event(
    event_id: str,
    payload: RegisterRequest,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Register for an event; paid events answer with the fee instead"""
    attendee = AttendeeInfo(name=payload.name, email=payload.email, phone=payload.phone)
    result = registrations.register(event_id, attendee, payload.custom_field_values)

    if isinstance(result, PaymentRequired):
        return success_response(message=result.message, data=result)

    return success_response(
        message=f"Registration successful. Your ticket ID is #{result.ticket_id}",
        data=result,
        status_code=201
    )

@router.get("/registrations/status", dependencies=[Depends(enforce_rate_limit)])
async def registration_status(
    ticket_id: int = Query(..., ge=1),
    email: str = Query(..., min_length=3),
    event_id: Optional[str] = Query(None),
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Look up a registration by ticket ID and email, optionally within one event"""
    return success_response(
        message="Registration found",
        data=registrations.get_registration_status(ticket_id, email, event_id)
    )
