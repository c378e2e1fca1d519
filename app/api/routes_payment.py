"""
Payment routes - UPI payment initiation and proof upload
"""

from fastapi import APIRouter, Depends

from app.schemas.registration import (
    AttendeeInfo,
    CheckPaymentStatusRequest,
    CreatePaymentRequest,
    PaymentProofRequest,
)
from app.api.deps import get_registration_service
from app.services.registration_service import RegistrationService
from app.utils.security import enforce_rate_limit
from app.utils.responses import success_response

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

@router.post("/create-payment")
async def create_payment(
    payload: CreatePaymentRequest,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Start a paid registration; nothing is stored until proof is uploaded"""
    attendee = AttendeeInfo(name=payload.name, email=payload.email, phone=payload.phone)
    instructions = registrations.create_pending_payment(payload.event_id, attendee)
    return success_response(
        message="Payment details generated",
        data=instructions
    )

@router.post("/check-payment-status")
async def check_payment_status(
    payload: CheckPaymentStatusRequest,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Check whether a proof was already uploaded for a payment reference"""
    status = registrations.check_payment_status(payload.payment_reference, payload.email)
    return success_response(message=status.message, data=status)

@router.post("/submit-proof")
async def submit_payment_proof(
    payload: PaymentProofRequest,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Upload the payment screenshot and reserve the seat"""
    attendee = None
    if payload.name:
        attendee = AttendeeInfo(name=payload.name, email=payload.email, phone=payload.phone)

    result = registrations.submit_payment_proof(
        payment_reference=payload.payment_reference,
        email=payload.email,
        proof_image=payload.payment_screenshot,
        attendee=attendee,
        custom_field_answers=payload.custom_field_values,
        event_id=payload.event_id,
        transaction_id=payload.transaction_id,
    )
    return success_response(
        message=result.message,
        data=result,
        status_code=200 if result.already_submitted else 201
    )

@router.get("/payment-status/{payment_reference}")
async def payment_status(
    payment_reference: str,
    registrations: RegistrationService = Depends(get_registration_service)
):
    """Payment status for a reference"""
    return success_response(
        message="Payment status retrieved",
        data=registrations.get_payment_status(payment_reference)
    )
