"""
FastAPI dependencies wiring the stores and services per request.

Long-lived collaborators (notifier, QR encoder, blob store) are built once at
start-up and kept on ``app.state``.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.services.event_service import EventService
from app.services.firebase_client import get_firestore_client
from app.services.firestore_store import FirestoreRegistrationStore
from app.services.maintenance_service import MaintenanceService
from app.services.registration_service import RegistrationService
from app.services.repositories import RegistrationStore, SqlRegistrationStore, use_firestore
from app.services.ticket_service import TicketService

def get_store(db: Session = Depends(get_db)) -> RegistrationStore:
    if use_firestore():
        return FirestoreRegistrationStore(get_firestore_client())
    return SqlRegistrationStore(db)

def get_event_service(store: RegistrationStore = Depends(get_store)) -> EventService:
    return EventService(store)

def get_registration_service(
    request: Request,
    store: RegistrationStore = Depends(get_store),
) -> RegistrationService:
    state = request.app.state
    return RegistrationService(
        store,
        notifier=state.notifier,
        qr_service=state.qr_service,
        blob_store=state.blob_store,
        messages=state.messages,
    )

def get_maintenance_service(
    request: Request,
    store: RegistrationStore = Depends(get_store),
) -> MaintenanceService:
    return MaintenanceService(store, TicketService(store, request.app.state.qr_service))
