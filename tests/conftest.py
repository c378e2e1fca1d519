"""
Shared fixtures: a throwaway SQLite database per test, fake collaborators
for mail and uploads, and event factories.
"""

import base64
import io
from datetime import datetime

import pytest
from PIL import Image
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  registers the tables on Base
from app.core.db import Base, build_engine
from app.core.errors import UpstreamError
from app.schemas.event import EventCreate
from app.services.blob_store import BlobStore
from app.services.event_service import EventService
from app.services.notification_service import NotificationSender
from app.services.qr_service import QRService
from app.services.registration_service import RegistrationService
from app.services.repositories import SqlRegistrationStore


class FakeNotifier(NotificationSender):
    """Records notifications instead of sending them"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, event, message):
        if self.fail:
            raise UpstreamError("SMTP relay unavailable")
        self.sent.append(message)

    def subjects(self):
        return [message.subject for message in self.sent]


class FakeBlobStore(BlobStore):
    """Keeps uploads in memory"""

    def __init__(self):
        self.uploads = []
        self.fail = False

    def upload(self, image_bytes, folder, public_id, content_type):
        if self.fail:
            raise UpstreamError("Failed to upload payment screenshot. Please try again.")
        self.uploads.append((folder, public_id, content_type, len(image_bytes)))
        return f"https://files.example.com/{folder}/{public_id}.png"


def png_data_url(size=(8, 8)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so that separate sessions see each other's commits"""
    engine = build_engine(f"sqlite:///{tmp_path / 'registrations.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(db_session):
    return SqlRegistrationStore(db_session)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def qr_service():
    return QRService(box_size=2, border=1)


@pytest.fixture
def event_service(store):
    return EventService(store)


@pytest.fixture
def registration_service(store, notifier, qr_service, blob_store):
    return RegistrationService(store, notifier, qr_service, blob_store)


@pytest.fixture
def proof_image():
    return png_data_url()


@pytest.fixture
def make_event(event_service):
    """Factory creating events through the organizer API"""

    def _make_event(**overrides):
        data = {
            "name": "Tech Meetup",
            "date": datetime(2026, 12, 5, 18, 30),
            "venue": "Main Hall",
            "seat_limit": 10,
            "is_free": True,
            "fee": 0,
            "custom_fields": [],
        }
        data.update(overrides)
        return event_service.create_event(EventCreate(**data))

    return _make_event


@pytest.fixture
def free_event(make_event):
    return make_event()


@pytest.fixture
def paid_event(make_event):
    return make_event(name="Workshop", is_free=False, fee=500, upi_id="workshop@upi")
