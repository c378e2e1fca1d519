"""
Registration-related Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, EmailStr, Field

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"

class RegistrationState(str, Enum):
    """Lifecycle state derived from the stored payment fields"""
    PENDING_PAYMENT = "pending_payment"
    AWAITING_VERIFICATION = "awaiting_verification"
    COMPLETED = "completed"
    FAILED = "failed"

# Answers arrive either as a mapping or as a JSON-encoded string of one
RawAnswers = Union[Dict[str, Any], str, None]

class AttendeeInfo(BaseModel):
    """Attendee identity supplied with a registration"""
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = ""

class RegisterRequest(AttendeeInfo):
    """Registration for an event"""
    custom_field_values: RawAnswers = None

class CreatePaymentRequest(AttendeeInfo):
    """Start of the paid registration flow"""
    event_id: str

class PaymentProofRequest(BaseModel):
    """Payment proof upload; attendee data is echoed back from create-payment"""
    payment_reference: str = Field(min_length=1)
    email: EmailStr
    # data:image/...;base64,... payload
    payment_screenshot: str
    transaction_id: Optional[str] = None
    event_id: Optional[str] = None
    name: Optional[str] = None
    phone: str = ""
    custom_field_values: RawAnswers = None

class CheckPaymentStatusRequest(BaseModel):
    payment_reference: str
    email: EmailStr

class VerifyPaymentRequest(BaseModel):
    verified: bool = True
    verified_by: str = "admin"

class RegistrationRecord(BaseModel):
    """Registration as returned by the stores"""
    id: Optional[str] = None
    event_id: str
    name: str
    email: str
    phone: Optional[str] = ""
    ticket_id: Optional[int] = None
    ticket_image: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_screenshot_url: Optional[str] = None
    payment_verified: bool = False
    verification_date: Optional[datetime] = None
    verified_by: Optional[str] = None
    registration_date: Optional[datetime] = None
    custom_field_values: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True

    @property
    def state(self) -> RegistrationState:
        if self.payment_status == PaymentStatus.FAILED:
            return RegistrationState.FAILED
        if self.payment_status == PaymentStatus.COMPLETED:
            return RegistrationState.COMPLETED
        if self.payment_screenshot_url:
            return RegistrationState.AWAITING_VERIFICATION
        return RegistrationState.PENDING_PAYMENT

class RegistrationResult(BaseModel):
    """Completed free registration"""
    registration_id: str
    ticket_id: int
    event_name: str
    message: str
    notification_sent: bool
    warnings: List[str] = Field(default_factory=list)

class PaymentRequired(BaseModel):
    """Returned by register for paid events; nothing is persisted"""
    is_paid: bool = True
    event_id: str
    event_name: str
    fee: float
    message: str = "This is a paid event. Please complete payment to register."

class PaymentInstructions(BaseModel):
    """Payment-initiation payload for the UPI rail"""
    payment_reference: str
    amount: float
    currency: str = "INR"
    upi_id: str
    payee_name: str
    note: str
    upi_link: str
    qr_code: str
    event: Dict[str, Any]
    registration_data: Dict[str, Any]
    instructions: List[str]

class ProofSubmissionResult(BaseModel):
    registration_id: str
    ticket_id: Optional[int] = None
    payment_status: PaymentStatus
    state: RegistrationState
    already_submitted: bool = False
    notification_sent: bool = False
    message: str
    warnings: List[str] = Field(default_factory=list)

class VerificationResult(BaseModel):
    registration: RegistrationRecord
    notification_sent: bool = False
    message: str

class PaymentStatusCheck(BaseModel):
    found: bool
    has_proof: bool = False
    registration_id: Optional[str] = None
    ticket_id: Optional[int] = None
    payment_status: Optional[PaymentStatus] = None
    payment_screenshot_url: Optional[str] = None
    message: str

class PaymentStatusInfo(BaseModel):
    payment_reference: str
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    payment_verified: bool
    ticket_id: Optional[int] = None

class RegistrationStatus(BaseModel):
    """Registration joined with the event details shown to attendees"""
    registration: RegistrationRecord
    state: RegistrationState
    event_name: str
    event_date: datetime
    event_venue: Optional[str] = ""
