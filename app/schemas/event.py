"""
Event-related Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field

class FieldType(str, Enum):
    """Supported custom field types"""
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    CHECKBOX = "checkbox"

class CustomField(BaseModel):
    """Organizer-defined registration question"""
    name: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    options: List[str] = Field(default_factory=list)
    placeholder: str = ""

class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str
    date: datetime
    description: str = ""
    venue: str = ""
    seat_limit: int = Field(ge=0)
    is_free: bool = True
    fee: float = 0
    featured: bool = False
    upi_id: str = ""
    phone_number: str = ""
    email_for_notifications: Optional[EmailStr] = None
    # Raw definitions; normalized by the event service
    custom_fields: List[Dict[str, Any]] = Field(default_factory=list)

class EventUpdate(BaseModel):
    """Schema for updating an event; omitted fields are left untouched"""
    name: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    venue: Optional[str] = None
    seat_limit: Optional[int] = Field(default=None, ge=0)
    is_free: Optional[bool] = None
    fee: Optional[float] = None
    featured: Optional[bool] = None
    upi_id: Optional[str] = None
    phone_number: Optional[str] = None
    email_for_notifications: Optional[EmailStr] = None
    custom_fields: Optional[List[Dict[str, Any]]] = None

class EventRecord(BaseModel):
    """Event as returned by the stores"""
    id: str
    name: str
    date: datetime
    description: Optional[str] = ""
    venue: Optional[str] = ""
    seat_limit: int = 0
    registered_users: int = 0
    is_free: bool = True
    fee: float = 0
    featured: bool = False
    upi_id: Optional[str] = ""
    phone_number: Optional[str] = ""
    email_for_notifications: Optional[str] = ""
    custom_fields: List[CustomField] = Field(default_factory=list)
    last_ticket_id: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
