"""Error taxonomy for the registration workflow.

Every error carries a machine-checkable ``kind`` and ``code`` plus a
human-readable message. Routes render them through the standard error
envelope; services raise them and never return error values.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Broad error categories."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    UPSTREAM = "UPSTREAM"


class RegistrationError(Exception):
    """Base error with kind, code and user-safe message."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.kind.value
        self.details = details

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFoundError(RegistrationError):
    """Raised when an event or registration does not exist."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404

    def __init__(self, resource: str = "Resource", details: Any = None) -> None:
        super().__init__(f"{resource} not found", code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND", details=details)
        self.resource = resource


class ValidationError(RegistrationError):
    """Raised on missing or malformed input."""

    kind = ErrorKind.VALIDATION
    status_code = 422


class ConflictError(RegistrationError):
    """Raised when a request collides with existing state."""

    kind = ErrorKind.CONFLICT
    status_code = 409

    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    FULLY_BOOKED = "FULLY_BOOKED"

    @classmethod
    def duplicate_registration(cls) -> "ConflictError":
        return cls("You are already registered for this event", code=cls.DUPLICATE_REGISTRATION)

    @classmethod
    def fully_booked(cls) -> "ConflictError":
        return cls("Event is fully booked", code=cls.FULLY_BOOKED)


class UpstreamError(RegistrationError):
    """Raised when an outbound collaborator (store, blob store, mail) fails."""

    kind = ErrorKind.UPSTREAM
    status_code = 502
