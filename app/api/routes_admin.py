"""
Admin API routes - requires authentication
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.schemas.event import EventCreate, EventUpdate
from app.schemas.registration import VerifyPaymentRequest
from app.api.deps import get_event_service, get_maintenance_service, get_registration_service
from app.services.event_service import EventService
from app.services.excel_service import ExcelService
from app.services.maintenance_service import MaintenanceService
from app.services.registration_service import RegistrationService
from app.utils.security import verify_admin_token
from app.utils.responses import success_response

router = APIRouter(dependencies=[Depends(verify_admin_token)])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

@router.post("/events")
async def create_event(
    event_data: EventCreate,
    events: EventService = Depends(get_event_service)
):
    """Create a new event"""
    event = events.create_event(event_data)
    return success_response(
        message="Event created successfully",
        data=event,
        status_code=201
    )

@router.patch("/events/{event_id}")
async def update_event(
    event_id: str,
    changes: EventUpdate,
    events: EventService = Depends(get_event_service)
):
    """Update event details, capacity, pricing or registration form"""
    event = events.update_event(event_id, changes)
    return success_response(
        message="Event updated successfully",
        data=event
    )

@router.get("/events/{event_id}")
async def get_event_details(
    event_id: str,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Get detailed event information"""
    listing = registrations.list_registrations(event_id)
    return success_response(
        message="Event details retrieved",
        data={**listing["event"].model_dump(), **listing["summary"]}
    )

@router.get("/events/{event_id}/registrations")
async def list_registrations(
    event_id: str,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """List registrations with their custom field answers"""
    listing = registrations.list_registrations(event_id)
    return success_response(
        message=f"{len(listing['registrations'])} registration(s) found",
        data=listing
    )

@router.get("/events/{event_id}/export.xlsx")
async def export_registrations(
    event_id: str,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Export registrations to Excel"""
    listing = registrations.list_registrations(event_id)
    event = listing["event"]
    excel_content = ExcelService.export_registrations(event, listing["registrations"])

    return Response(
        content=excel_content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=registrations_{event.id}.xlsx"}
    )

@router.post("/registrations/{registration_id}/verify")
async def verify_payment(
    registration_id: str,
    payload: VerifyPaymentRequest,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Approve or reject an uploaded payment proof"""
    result = registrations.verify_payment(registration_id, payload.verified, payload.verified_by)
    return success_response(message=result.message, data=result)

@router.post("/maintenance/custom-fields/backfill")
async def backfill_custom_fields(
    event_id: Optional[str] = Query(None),
    maintenance: MaintenanceService = Depends(get_maintenance_service)
):
    """Fill empty custom field answers with per-type placeholders"""
    result = maintenance.backfill_missing_custom_fields(event_id)
    return success_response(
        message=f"Backfilled {result['repaired']} registration(s)",
        data=result
    )

@router.post("/maintenance/custom-fields/restore-keys")
async def restore_custom_field_keys(
    event_id: Optional[str] = Query(None),
    maintenance: MaintenanceService = Depends(get_maintenance_service)
):
    """Rename underscore-sanitized answer keys back to the declared field names"""
    result = maintenance.restore_sanitized_keys(event_id)
    return success_response(
        message=f"Restored keys on {result['repaired']} registration(s)",
        data=result
    )

@router.post("/maintenance/ticket-counters/{event_id}/resync")
async def resync_ticket_counter(
    event_id: str,
    maintenance: MaintenanceService = Depends(get_maintenance_service)
):
    """Raise the ticket counter to the highest ticket ID already issued"""
    result = maintenance.resync_ticket_counter(event_id)
    return success_response(
        message="Ticket counter resynchronized",
        data=result
    )
