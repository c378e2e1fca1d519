"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Stores return pydantic records and expose the atomic primitives the
registration workflow relies on: a conditional seat increment, a per-event
ticket counter and a uniqueness guarantee on (event, email).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConflictError, UpstreamError
from app.models import Event, Registration
from app.schemas.event import EventRecord
from app.schemas.registration import RegistrationRecord

logger = logging.getLogger(__name__)


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class RegistrationStore(ABC):
    """Interface for event and registration persistence."""

    @abstractmethod
    def unit_of_work(self):
        """Context manager grouping writes; a failure inside undoes them."""
        ...

    # -------- events --------

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[EventRecord]:
        ...

    @abstractmethod
    def list_events(self) -> List[EventRecord]:
        """Return all events, most recent date first."""
        ...

    @abstractmethod
    def create_event(self, data: Dict[str, Any]) -> EventRecord:
        ...

    @abstractmethod
    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[EventRecord]:
        """Apply changes; returns None when a new seat_limit is below registered_users."""
        ...

    @abstractmethod
    def reserve_seat(self, event_id: str) -> bool:
        """Increment registered_users if below seat_limit, atomically."""
        ...

    @abstractmethod
    def release_seat(self, event_id: str) -> None:
        ...

    @abstractmethod
    def next_ticket_id(self, event_id: str) -> int:
        """Atomically advance and return the event's ticket counter."""
        ...

    @abstractmethod
    def max_ticket_id(self, event_id: str) -> int:
        ...

    @abstractmethod
    def set_ticket_counter(self, event_id: str, value: int) -> None:
        ...

    # -------- registrations --------

    @abstractmethod
    def insert_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        """Insert; raises ConflictError.duplicate_registration on (event, email) collision."""
        ...

    @abstractmethod
    def save_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        ...

    @abstractmethod
    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        ...

    @abstractmethod
    def find_registration(self, event_id: str, email: str) -> Optional[RegistrationRecord]:
        ...

    @abstractmethod
    def find_by_payment_reference(self, reference: str, email: Optional[str] = None) -> Optional[RegistrationRecord]:
        ...

    @abstractmethod
    def find_by_ticket(
        self, ticket_id: int, email: str, event_id: Optional[str] = None
    ) -> Optional[RegistrationRecord]:
        """Ticket ids repeat across events; without event_id the newest match wins."""
        ...

    @abstractmethod
    def list_registrations(self, event_id: str) -> List[RegistrationRecord]:
        """Registrations for an event, newest first."""
        ...


def _column_values(record: RegistrationRecord) -> Dict[str, Any]:
    values = record.model_dump(exclude={"id"})
    for key, value in values.items():
        if isinstance(value, Enum):
            values[key] = value.value
    return values


# -------- SQLAlchemy store --------

class SqlRegistrationStore(RegistrationStore):
    """Store backed by a SQLAlchemy session.

    Outside a unit of work every primitive commits on its own; inside one
    all writes share a single transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self._in_unit = False

    @contextmanager
    def unit_of_work(self) -> Iterator["SqlRegistrationStore"]:
        if self._in_unit:
            yield self
            return
        self._in_unit = True
        try:
            yield self
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError.duplicate_registration() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Registration store write failed")
            raise UpstreamError("Registration store is unavailable, please retry") from exc
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._in_unit = False

    def _commit(self) -> None:
        if self._in_unit:
            return
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError.duplicate_registration() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Registration store write failed")
            raise UpstreamError("Registration store is unavailable, please retry") from exc

    def _event_row(self, event_id: str) -> Optional[Event]:
        stmt = select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    # events

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        row = self._event_row(event_id)
        return EventRecord.model_validate(row) if row else None

    def list_events(self) -> List[EventRecord]:
        rows = self.db.query(Event).order_by(Event.date.desc()).all()
        return [EventRecord.model_validate(row) for row in rows]

    def create_event(self, data: Dict[str, Any]) -> EventRecord:
        row = Event(**data)
        self.db.add(row)
        self._commit()
        self.db.refresh(row)
        return EventRecord.model_validate(row)

    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[EventRecord]:
        stmt = update(Event).where(Event.id == event_id)
        if "seat_limit" in changes:
            stmt = stmt.where(Event.registered_users <= changes["seat_limit"])
        result = self.db.execute(stmt.values(**changes).execution_options(synchronize_session=False))
        self._commit()
        if result.rowcount != 1:
            return None
        return self.get_event(event_id)

    def reserve_seat(self, event_id: str) -> bool:
        result = self.db.execute(
            update(Event)
            .where(Event.id == event_id, Event.registered_users < Event.seat_limit)
            .values(registered_users=Event.registered_users + 1)
            .execution_options(synchronize_session=False)
        )
        self._commit()
        return result.rowcount == 1

    def release_seat(self, event_id: str) -> None:
        self.db.execute(
            update(Event)
            .where(Event.id == event_id, Event.registered_users > 0)
            .values(registered_users=Event.registered_users - 1)
            .execution_options(synchronize_session=False)
        )
        self._commit()

    def next_ticket_id(self, event_id: str) -> int:
        # The UPDATE holds the row (or database) write lock until commit,
        # so the read below sees only this transaction's increment.
        self.db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(last_ticket_id=Event.last_ticket_id + 1)
            .execution_options(synchronize_session=False)
        )
        value = self.db.execute(select(Event.last_ticket_id).where(Event.id == event_id)).scalar_one()
        self._commit()
        return value

    def max_ticket_id(self, event_id: str) -> int:
        value = self.db.execute(
            select(func.max(Registration.ticket_id)).where(Registration.event_id == event_id)
        ).scalar()
        return value or 0

    def set_ticket_counter(self, event_id: str, value: int) -> None:
        self.db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(last_ticket_id=value)
            .execution_options(synchronize_session=False)
        )
        self._commit()

    # registrations

    def insert_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        values = _column_values(record)
        values["email"] = normalize_email(values["email"])
        if values.get("registration_date") is None:
            values.pop("registration_date")
        row = Registration(**values)
        if record.id:
            row.id = record.id
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError.duplicate_registration() from exc
        self._commit()
        return RegistrationRecord.model_validate(row)

    def save_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        row = self.db.get(Registration, record.id)
        if row is None:
            raise UpstreamError("Registration disappeared while saving")
        for key, value in _column_values(record).items():
            if key == "email":
                value = normalize_email(value)
            setattr(row, key, value)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError.duplicate_registration() from exc
        self._commit()
        return RegistrationRecord.model_validate(row)

    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        row = self.db.get(Registration, registration_id, populate_existing=True)
        return RegistrationRecord.model_validate(row) if row else None

    def find_registration(self, event_id: str, email: str) -> Optional[RegistrationRecord]:
        row = self.db.query(Registration).filter(
            Registration.event_id == event_id,
            Registration.email == normalize_email(email),
        ).first()
        return RegistrationRecord.model_validate(row) if row else None

    def find_by_payment_reference(self, reference: str, email: Optional[str] = None) -> Optional[RegistrationRecord]:
        query = self.db.query(Registration).filter(Registration.payment_reference == reference)
        if email is not None:
            query = query.filter(Registration.email == normalize_email(email))
        row = query.order_by(Registration.registration_date.desc()).first()
        return RegistrationRecord.model_validate(row) if row else None

    def find_by_ticket(
        self, ticket_id: int, email: str, event_id: Optional[str] = None
    ) -> Optional[RegistrationRecord]:
        query = self.db.query(Registration).filter(
            Registration.ticket_id == ticket_id,
            Registration.email == normalize_email(email),
        )
        if event_id:
            query = query.filter(Registration.event_id == event_id)
        row = query.order_by(Registration.registration_date.desc()).first()
        return RegistrationRecord.model_validate(row) if row else None

    def list_registrations(self, event_id: str) -> List[RegistrationRecord]:
        rows = self.db.query(Registration).filter(
            Registration.event_id == event_id
        ).order_by(Registration.registration_date.desc()).all()
        return [RegistrationRecord.model_validate(row) for row in rows]
