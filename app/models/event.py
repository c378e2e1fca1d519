"""
Event model
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, JSON, CheckConstraint

from app.core.db import Base

def new_id() -> str:
    return uuid.uuid4().hex

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    venue = Column(String(255), default="")
    date = Column(DateTime, nullable=False)
    seat_limit = Column(Integer, nullable=False, default=0)
    registered_users = Column(Integer, nullable=False, default=0)
    is_free = Column(Boolean, nullable=False, default=True)
    fee = Column(Float, nullable=False, default=0)
    featured = Column(Boolean, default=False)
    upi_id = Column(String(255), default="")
    phone_number = Column(String(50), default="")
    email_for_notifications = Column(String(255), default="")
    # Ordered list of {name, type, required, options, placeholder}
    custom_fields = Column(JSON, nullable=False, default=list)
    # Highest ticket number handed out for this event
    last_ticket_id = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("registered_users >= 0", name="ck_events_registered_users_non_negative"),
        CheckConstraint("seat_limit >= 0", name="ck_events_seat_limit_non_negative"),
    )
