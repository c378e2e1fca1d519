"""
Registration workflow: free registration, the deferred paid flow
(payment initiation, proof submission) and organizer verification.

Seat reservation, ticket numbering and the insert run in one unit of work on
the store. Uploads happen before it, notifications after it.
"""

import hashlib
import logging
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.schemas.event import EventRecord
from app.schemas.registration import (
    AttendeeInfo,
    PaymentInstructions,
    PaymentMethod,
    PaymentRequired,
    PaymentStatus,
    PaymentStatusCheck,
    PaymentStatusInfo,
    ProofSubmissionResult,
    RawAnswers,
    RegistrationRecord,
    RegistrationResult,
    RegistrationState,
    RegistrationStatus,
    VerificationResult,
)
from app.services.blob_store import BlobStore, decode_proof_image
from app.services.custom_fields import normalize_custom_field_values, parse_answers, validate_answers
from app.services.event_service import EventService, is_registration_open, requires_payment
from app.services.notification_service import Notification, NotificationSender, NotificationService
from app.services.qr_service import QRService
from app.services.repositories import RegistrationStore, normalize_email
from app.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

PROOF_FOLDER = "payment_screenshots"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def proof_blob_id(payment_reference: str, email: str) -> str:
    """Storage id for a proof image: the reference plus a hash of the payer's email."""
    safe_reference = re.sub(r"[^A-Za-z0-9_-]", "_", payment_reference)[:64]
    digest = hashlib.sha256(email.encode("utf-8")).hexdigest()[:12]
    return f"payment_{safe_reference}_{digest}"


class RegistrationService:
    """Drives registrations through PendingPayment, AwaitingVerification and Completed"""

    def __init__(
        self,
        store: RegistrationStore,
        notifier: NotificationSender,
        qr_service: QRService,
        blob_store: BlobStore,
        messages: Optional[NotificationService] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.qr_service = qr_service
        self.blob_store = blob_store
        self.messages = messages or NotificationService()
        self.tickets = TicketService(store, qr_service)

    # -------- helpers --------

    def _get_event(self, event_id: str) -> EventRecord:
        event = self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event")
        return event

    def _ensure_not_registered(self, event_id: str, email: str) -> None:
        if self.store.find_registration(event_id, email):
            raise ConflictError.duplicate_registration()

    def _notify(self, event: EventRecord, compose: Callable[[], Notification]) -> bool:
        """Compose and send a notification after commit; failures are logged, never raised."""
        try:
            self.notifier.send(event, compose())
        except Exception:
            logger.exception(f"Notification failed for event {event.id}")
            return False
        return True

    @staticmethod
    def new_payment_reference() -> str:
        return f"{settings.PAYMENT_REFERENCE_PREFIX}{int(time.time())}{secrets.token_hex(4).upper()}"

    # -------- free registration --------

    def register(
        self,
        event_id: str,
        attendee: AttendeeInfo,
        custom_field_answers: RawAnswers = None,
    ) -> Union[RegistrationResult, PaymentRequired]:
        event = self._get_event(event_id)
        email = normalize_email(attendee.email)
        self._ensure_not_registered(event.id, email)

        if requires_payment(event):
            return PaymentRequired(event_id=event.id, event_name=event.name, fee=event.fee)

        if not is_registration_open(event):
            raise ConflictError.fully_booked()

        answers = parse_answers(custom_field_answers)
        warnings = validate_answers(event.custom_fields, answers)
        if warnings:
            logger.warning(f"Registration for event {event.id} by {email} has warnings: {warnings}")

        with self.store.unit_of_work():
            if not self.store.reserve_seat(event.id):
                raise ConflictError.fully_booked()
            record = RegistrationRecord(
                event_id=event.id,
                name=attendee.name.strip(),
                email=email,
                phone=attendee.phone or "",
                ticket_id=self.tickets.allocate_ticket_number(event.id),
                payment_status=PaymentStatus.COMPLETED,
                registration_date=_now(),
                custom_field_values=answers,
            )
            record.ticket_image = self.tickets.render_ticket(record, event)
            registration = self.store.insert_registration(record)

        logger.info(f"Registered {email} for free event {event.id} with ticket #{registration.ticket_id}")
        sent = self._notify(event, lambda: self.messages.registration_confirmed(registration, event))
        return RegistrationResult(
            registration_id=registration.id,
            ticket_id=registration.ticket_id,
            event_name=event.name,
            message="Registration successful",
            notification_sent=sent,
            warnings=warnings,
        )

    # -------- paid flow --------

    def create_pending_payment(self, event_id: str, attendee: AttendeeInfo) -> PaymentInstructions:
        """Build the payment-initiation payload; nothing is persisted."""
        event = self._get_event(event_id)
        if not requires_payment(event):
            raise ValidationError("This event does not require payment")
        if not is_registration_open(event):
            raise ConflictError.fully_booked()
        email = normalize_email(attendee.email)
        self._ensure_not_registered(event.id, email)

        upi_id = event.upi_id or settings.UPI_ID
        if not upi_id:
            raise ValidationError("No UPI ID is configured for this event")

        reference = self.new_payment_reference()
        note = f"{event.name} registration"
        upi_link = QRService.build_upi_link(upi_id, settings.MERCHANT_NAME, event.fee, reference, note)
        logger.info(f"Created payment reference {reference} for {email} on event {event.id}")

        return PaymentInstructions(
            payment_reference=reference,
            amount=event.fee,
            upi_id=upi_id,
            payee_name=settings.MERCHANT_NAME,
            note=note,
            upi_link=upi_link,
            qr_code=self.qr_service.payment_qr(upi_link),
            event={
                "id": event.id,
                "name": event.name,
                "date": event.date.isoformat(),
                "venue": event.venue,
                "fee": event.fee,
            },
            registration_data={
                "event_id": event.id,
                "name": attendee.name.strip(),
                "email": email,
                "phone": attendee.phone or "",
                "payment_reference": reference,
            },
            instructions=[
                f"Pay INR {event.fee:g} to {upi_id} using any UPI app or by scanning the QR code",
                f"Use {reference} as the payment reference",
                "Take a screenshot of the completed payment",
                "Upload the screenshot to finish your registration",
            ],
        )

    def _proof_echo(self, registration: RegistrationRecord) -> ProofSubmissionResult:
        return ProofSubmissionResult(
            registration_id=registration.id,
            ticket_id=registration.ticket_id,
            payment_status=registration.payment_status,
            state=registration.state,
            already_submitted=True,
            message="Payment proof already submitted",
        )

    def submit_payment_proof(
        self,
        payment_reference: str,
        email: str,
        proof_image: Union[str, bytes, None],
        attendee: Optional[AttendeeInfo] = None,
        custom_field_answers: RawAnswers = None,
        event_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> ProofSubmissionResult:
        """Store the proof, reserve the seat and allocate the ticket id.

        Safe to retry: a second submission for the same reference and email
        returns the stored registration untouched.
        """
        image_bytes, content_type = decode_proof_image(proof_image)
        email = normalize_email(email)
        if not payment_reference:
            raise ValidationError("Payment reference is required")

        existing = self.store.find_by_payment_reference(payment_reference, email)
        if existing and existing.payment_screenshot_url:
            logger.info(f"Proof for {payment_reference} already stored, returning registration {existing.id}")
            return self._proof_echo(existing)

        if existing:
            if event_id and event_id != existing.event_id:
                raise ValidationError("Payment reference belongs to a different event")
            event_id = existing.event_id
        if not event_id:
            raise ValidationError("Event ID is required")
        event = self._get_event(event_id)
        if not requires_payment(event):
            raise ValidationError("This event does not require payment")

        # A pending row without proof (older placeholder flow) is completed in place
        placeholder = existing
        by_email = self.store.find_registration(event.id, email)
        if by_email and (placeholder is None or by_email.id != placeholder.id):
            if by_email.payment_reference == payment_reference and by_email.payment_screenshot_url:
                return self._proof_echo(by_email)
            if by_email.state != RegistrationState.PENDING_PAYMENT or placeholder is not None:
                raise ConflictError.duplicate_registration()
            placeholder = by_email

        name = (attendee.name.strip() if attendee else "") or (placeholder.name if placeholder else "")
        if not name:
            raise ValidationError("Name is required")
        if not is_registration_open(event):
            raise ConflictError.fully_booked()

        answers = parse_answers(custom_field_answers)
        if not answers and placeholder:
            answers = normalize_custom_field_values(placeholder.custom_field_values)
        warnings = validate_answers(event.custom_fields, answers)

        screenshot_url = self.blob_store.upload(
            image_bytes, PROOF_FOLDER, proof_blob_id(payment_reference, email), content_type
        )
        proof = {
            "name": name,
            "phone": (attendee.phone if attendee else "") or (placeholder.phone if placeholder else "") or "",
            "payment_status": PaymentStatus.PENDING,
            "payment_method": PaymentMethod.UPI,
            "payment_reference": payment_reference,
            "transaction_id": transaction_id or f"MANUAL-{int(time.time() * 1000)}",
            "payment_screenshot_url": screenshot_url,
            "payment_verified": False,
            "custom_field_values": answers,
        }

        try:
            with self.store.unit_of_work():
                if not self.store.reserve_seat(event.id):
                    raise ConflictError.fully_booked()
                ticket_id = self.tickets.allocate_ticket_number(event.id)
                if placeholder:
                    registration = self.store.save_registration(
                        placeholder.model_copy(update={**proof, "ticket_id": ticket_id})
                    )
                else:
                    registration = self.store.insert_registration(
                        RegistrationRecord(
                            event_id=event.id,
                            email=email,
                            ticket_id=ticket_id,
                            registration_date=_now(),
                            **proof,
                        )
                    )
        except ConflictError as exc:
            if exc.code != ConflictError.DUPLICATE_REGISTRATION:
                raise
            # Lost a race against the same submission
            winner = self.store.find_by_payment_reference(payment_reference, email)
            if winner and winner.payment_screenshot_url:
                return self._proof_echo(winner)
            raise

        logger.info(
            f"Proof stored for {payment_reference}: registration {registration.id}, "
            f"ticket #{registration.ticket_id} awaiting verification"
        )
        sent = self._notify(event, lambda: self.messages.payment_in_progress(registration, event))
        return ProofSubmissionResult(
            registration_id=registration.id,
            ticket_id=registration.ticket_id,
            payment_status=registration.payment_status,
            state=registration.state,
            notification_sent=sent,
            message="Payment proof submitted. Your registration will be confirmed once the payment is verified.",
            warnings=warnings,
        )

    # -------- organizer verification --------

    def verify_payment(self, registration_id: str, verified: bool, verified_by: str) -> VerificationResult:
        registration = self.store.get_registration(registration_id)
        if not registration:
            raise NotFoundError("Registration")

        if not verified:
            updated = self.store.save_registration(
                registration.model_copy(
                    update={"payment_verified": False, "verification_date": _now(), "verified_by": verified_by}
                )
            )
            logger.info(f"Payment for registration {registration_id} rejected by {verified_by}")
            return VerificationResult(registration=updated, message="Payment marked as not verified")

        if registration.payment_verified and registration.payment_status == PaymentStatus.COMPLETED:
            return VerificationResult(registration=registration, message="Payment already verified")

        event = self._get_event(registration.event_id)
        with self.store.unit_of_work():
            # No proof means the seat was never reserved for this row
            if registration.state == RegistrationState.PENDING_PAYMENT:
                if not self.store.reserve_seat(event.id):
                    raise ConflictError.fully_booked()
            ticket_id = registration.ticket_id or self.tickets.allocate_ticket_number(event.id)
            updated = registration.model_copy(
                update={
                    "payment_status": PaymentStatus.COMPLETED,
                    "payment_verified": True,
                    "verification_date": _now(),
                    "verified_by": verified_by,
                    "ticket_id": ticket_id,
                }
            )
            if not updated.ticket_image:
                updated.ticket_image = self.tickets.render_ticket(updated, event)
            updated = self.store.save_registration(updated)

        logger.info(f"Payment for registration {registration_id} verified by {verified_by}, ticket #{ticket_id}")
        sent = self._notify(event, lambda: self.messages.payment_verified(updated, event))
        return VerificationResult(registration=updated, notification_sent=sent, message="Payment verified")

    # -------- lookups --------

    def check_payment_status(self, payment_reference: str, email: str) -> PaymentStatusCheck:
        registration = self.store.find_by_payment_reference(payment_reference, email)
        if not registration:
            return PaymentStatusCheck(found=False, message="No registration found for this payment reference")
        has_proof = bool(registration.payment_screenshot_url)
        return PaymentStatusCheck(
            found=True,
            has_proof=has_proof,
            registration_id=registration.id,
            ticket_id=registration.ticket_id,
            payment_status=registration.payment_status,
            payment_screenshot_url=registration.payment_screenshot_url,
            message="Payment proof received" if has_proof else "Awaiting payment proof",
        )

    def get_payment_status(self, payment_reference: str) -> PaymentStatusInfo:
        registration = self.store.find_by_payment_reference(payment_reference)
        if not registration:
            raise NotFoundError("Payment")
        return PaymentStatusInfo(
            payment_reference=payment_reference,
            payment_status=registration.payment_status,
            payment_method=registration.payment_method,
            payment_verified=registration.payment_verified,
            ticket_id=registration.ticket_id,
        )

    def get_registration_status(self, ticket_id: int, email: str, event_id: Optional[str] = None) -> RegistrationStatus:
        registration = self.store.find_by_ticket(ticket_id, email, event_id)
        if not registration:
            raise NotFoundError("Registration")
        event = self._get_event(registration.event_id)
        registration.custom_field_values = normalize_custom_field_values(registration.custom_field_values)
        return RegistrationStatus(
            registration=registration,
            state=registration.state,
            event_name=event.name,
            event_date=event.date,
            event_venue=event.venue,
        )

    def list_registrations(self, event_id: str) -> Dict[str, Any]:
        """Admin listing: registrations with normalized answers and the event schema."""
        event = self._get_event(event_id)
        registrations = self.store.list_registrations(event.id)
        for registration in registrations:
            registration.custom_field_values = normalize_custom_field_values(registration.custom_field_values)
        return {
            "event": event,
            "custom_fields": event.custom_fields,
            "registrations": registrations,
            "summary": EventService.event_summary(event, registrations),
        }
