"""
Response envelopes shared by all routes
"""

from typing import Any, Optional
from pydantic import BaseModel

class StandardResponse(BaseModel):
    """Successful response: payload under ``data``"""
    success: bool = True
    message: str
    data: Optional[Any] = None

class ErrorResponse(BaseModel):
    """Error response; ``kind`` is the broad category, ``error_code`` the specific cause"""
    success: bool = False
    message: str
    kind: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[Any] = None
