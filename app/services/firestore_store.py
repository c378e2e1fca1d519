"""
Firestore implementation of the registration store.

Collections:
  events/{event_id}                      event document, carries the counters
  registrations/{registration_id}        registration documents
  registration_keys/{event_id}:{email}   uniqueness marker per attendee

Each primitive is its own Firestore transaction. A unit of work releases a
seat it reserved when a later step fails.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists, GoogleAPICallError

from app.core.errors import ConflictError, UpstreamError
from app.models.event import new_id, utcnow
from app.schemas.event import EventRecord
from app.schemas.registration import RegistrationRecord
from app.services.repositories import RegistrationStore, _column_values, normalize_email

logger = logging.getLogger(__name__)

EVENTS = "events"
REGISTRATIONS = "registrations"
REGISTRATION_KEYS = "registration_keys"


def _key_id(event_id: str, email: str) -> str:
    return f"{event_id}:{normalize_email(email)}".replace("/", "%2F")


class FirestoreRegistrationStore(RegistrationStore):
    """Store backed by a Firestore client."""

    def __init__(self, client):
        self.fs = client
        self._undo: Optional[List[Callable[[], None]]] = None

    @contextmanager
    def unit_of_work(self) -> Iterator["FirestoreRegistrationStore"]:
        if self._undo is not None:
            yield self
            return
        self._undo = []
        try:
            yield self
        except Exception:
            for action in reversed(self._undo):
                try:
                    action()
                except GoogleAPICallError:
                    logger.exception("Failed to undo a registration store write")
            raise
        finally:
            self._undo = None

    def _events(self):
        return self.fs.collection(EVENTS)

    def _registrations(self):
        return self.fs.collection(REGISTRATIONS)

    @staticmethod
    def _event_record(doc) -> EventRecord:
        data = doc.to_dict()
        data["id"] = doc.id
        return EventRecord.model_validate(data)

    @staticmethod
    def _registration_record(doc) -> RegistrationRecord:
        data = doc.to_dict()
        data["id"] = doc.id
        return RegistrationRecord.model_validate(data)

    def _first(self, query) -> Optional[RegistrationRecord]:
        docs = query.get()
        records = sorted(
            (self._registration_record(d) for d in docs),
            key=lambda r: r.registration_date or utcnow(),
            reverse=True,
        )
        return records[0] if records else None

    # events

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        doc = self._events().document(event_id).get()
        return self._event_record(doc) if doc.exists else None

    def list_events(self) -> List[EventRecord]:
        docs = self._events().order_by("date", direction=firestore.Query.DESCENDING).get()
        return [self._event_record(d) for d in docs]

    def create_event(self, data: Dict[str, Any]) -> EventRecord:
        event_id = new_id()
        payload = {
            "registered_users": 0,
            "last_ticket_id": 0,
            "created_at": utcnow(),
            **data,
        }
        self._events().document(event_id).set(payload)
        return self.get_event(event_id)

    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[EventRecord]:
        ref = self._events().document(event_id)

        @firestore.transactional
        def apply(transaction) -> bool:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            current = snapshot.to_dict()
            if "seat_limit" in changes and current.get("registered_users", 0) > changes["seat_limit"]:
                return False
            transaction.update(ref, changes)
            return True

        if not apply(self.fs.transaction()):
            return None
        return self.get_event(event_id)

    def reserve_seat(self, event_id: str) -> bool:
        ref = self._events().document(event_id)

        @firestore.transactional
        def claim(transaction) -> bool:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            data = snapshot.to_dict()
            if data.get("registered_users", 0) >= data.get("seat_limit", 0):
                return False
            transaction.update(ref, {"registered_users": data.get("registered_users", 0) + 1})
            return True

        try:
            claimed = claim(self.fs.transaction())
        except GoogleAPICallError as exc:
            raise UpstreamError("Registration store is unavailable, please retry") from exc
        if claimed and self._undo is not None:
            self._undo.append(lambda: self.release_seat(event_id))
        return claimed

    def release_seat(self, event_id: str) -> None:
        ref = self._events().document(event_id)

        @firestore.transactional
        def release(transaction) -> None:
            snapshot = ref.get(transaction=transaction)
            if snapshot.exists and snapshot.to_dict().get("registered_users", 0) > 0:
                transaction.update(ref, {"registered_users": firestore.Increment(-1)})

        release(self.fs.transaction())

    def next_ticket_id(self, event_id: str) -> int:
        ref = self._events().document(event_id)

        @firestore.transactional
        def advance(transaction) -> int:
            snapshot = ref.get(transaction=transaction)
            value = (snapshot.to_dict() or {}).get("last_ticket_id", 0) + 1
            transaction.update(ref, {"last_ticket_id": value})
            return value

        try:
            return advance(self.fs.transaction())
        except GoogleAPICallError as exc:
            raise UpstreamError("Registration store is unavailable, please retry") from exc

    def max_ticket_id(self, event_id: str) -> int:
        docs = (
            self._registrations()
            .where("event_id", "==", event_id)
            .order_by("ticket_id", direction=firestore.Query.DESCENDING)
            .limit(1)
            .get()
        )
        for doc in docs:
            return doc.to_dict().get("ticket_id") or 0
        return 0

    def set_ticket_counter(self, event_id: str, value: int) -> None:
        self._events().document(event_id).update({"last_ticket_id": value})

    # registrations

    def insert_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        registration_id = record.id or new_id()
        data = _column_values(record)
        data["email"] = normalize_email(data["email"])
        data["registration_date"] = data.get("registration_date") or utcnow()
        key_ref = self.fs.collection(REGISTRATION_KEYS).document(_key_id(record.event_id, data["email"]))
        doc_ref = self._registrations().document(registration_id)

        batch = self.fs.batch()
        batch.create(key_ref, {"registration_id": registration_id, "created_at": utcnow()})
        batch.create(doc_ref, data)
        try:
            batch.commit()
        except AlreadyExists as exc:
            raise ConflictError.duplicate_registration() from exc
        except GoogleAPICallError as exc:
            raise UpstreamError("Registration store is unavailable, please retry") from exc

        return self._registration_record(doc_ref.get())

    def save_registration(self, record: RegistrationRecord) -> RegistrationRecord:
        doc_ref = self._registrations().document(record.id)
        data = _column_values(record)
        data["email"] = normalize_email(data["email"])
        try:
            doc_ref.set(data, merge=True)
        except GoogleAPICallError as exc:
            raise UpstreamError("Registration store is unavailable, please retry") from exc
        return self._registration_record(doc_ref.get())

    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        doc = self._registrations().document(registration_id).get()
        return self._registration_record(doc) if doc.exists else None

    def find_registration(self, event_id: str, email: str) -> Optional[RegistrationRecord]:
        query = self._registrations().where("event_id", "==", event_id).where("email", "==", normalize_email(email))
        return self._first(query)

    def find_by_payment_reference(self, reference: str, email: Optional[str] = None) -> Optional[RegistrationRecord]:
        query = self._registrations().where("payment_reference", "==", reference)
        if email is not None:
            query = query.where("email", "==", normalize_email(email))
        return self._first(query)

    def find_by_ticket(
        self, ticket_id: int, email: str, event_id: Optional[str] = None
    ) -> Optional[RegistrationRecord]:
        query = self._registrations().where("ticket_id", "==", ticket_id).where("email", "==", normalize_email(email))
        if event_id:
            query = query.where("event_id", "==", event_id)
        return self._first(query)

    def list_registrations(self, event_id: str) -> List[RegistrationRecord]:
        docs = self._registrations().where("event_id", "==", event_id).get()
        return sorted(
            (self._registration_record(d) for d in docs),
            key=lambda r: r.registration_date or utcnow(),
            reverse=True,
        )
