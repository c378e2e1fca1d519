"""
Registration model
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint, Index

from app.core.db import Base
from app.models.event import new_id, utcnow

class Registration(Base):
    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # Stored lower-cased and trimmed
    email = Column(String(255), nullable=False)
    phone = Column(String(50), default="")
    ticket_id = Column(Integer, nullable=True)
    # PNG data URL of the QR ticket
    ticket_image = Column(Text, nullable=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=True)
    payment_reference = Column(String(64), nullable=True, index=True)
    transaction_id = Column(String(128), nullable=True)
    payment_screenshot_url = Column(String(1024), nullable=True)
    payment_verified = Column(Boolean, nullable=False, default=False)
    verification_date = Column(DateTime, nullable=True)
    verified_by = Column(String(255), nullable=True)
    registration_date = Column(DateTime, nullable=False, default=utcnow)
    custom_field_values = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_registrations_event_email"),
        UniqueConstraint("event_id", "ticket_id", name="uq_registrations_event_ticket"),
        Index("ix_registrations_ticket_email", "ticket_id", "email"),
    )
