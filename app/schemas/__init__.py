"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .registration import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "FieldType",
    "CustomField",
    "EventCreate",
    "EventUpdate",
    "EventRecord",
    "PaymentStatus",
    "PaymentMethod",
    "RegistrationState",
    "AttendeeInfo",
    "RegisterRequest",
    "CreatePaymentRequest",
    "PaymentProofRequest",
    "CheckPaymentStatusRequest",
    "VerifyPaymentRequest",
    "RegistrationRecord",
    "RegistrationResult",
    "PaymentRequired",
    "PaymentInstructions",
    "ProofSubmissionResult",
    "VerificationResult",
    "PaymentStatusCheck",
    "PaymentStatusInfo",
    "RegistrationStatus",
]
