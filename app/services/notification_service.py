"""
Attendee notifications: message composition (Jinja2 templates) and delivery.

Delivery failures raise UpstreamError; callers that have already committed
state treat notifications as best effort.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings
from app.core.errors import UpstreamError
from app.schemas.event import EventRecord
from app.schemas.registration import RegistrationRecord
from app.services.qr_service import QRService

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

TICKET_CID = "ticketQR"


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "image/png"
    # Inline attachments are referenced from the HTML body as cid:<cid>
    cid: Optional[str] = None


@dataclass
class Notification:
    to: str
    subject: str
    html_body: str
    attachments: List[Attachment] = field(default_factory=list)


class NotificationSender(ABC):
    """Interface for outbound notifications"""

    @abstractmethod
    def send(self, event: EventRecord, message: Notification) -> None:
        """Deliver the message; raises UpstreamError on failure."""
        ...


class LoggingNotificationSender(NotificationSender):
    """Used when no mail transport is configured"""

    def send(self, event: EventRecord, message: Notification) -> None:
        logger.info(
            f"Notification for event {event.id} to {message.to}: {message.subject} "
            f"({len(message.attachments)} attachment(s))"
        )


class SmtpNotificationSender(NotificationSender):
    """Sends HTML mail through an SMTP relay"""

    def __init__(
        self,
        host: str = None,
        port: int = None,
        username: str = None,
        password: str = None,
        use_tls: bool = None,
        sender: str = None,
        timeout: float = 30,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME if username is None else username
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.sender = sender or settings.MAIL_FROM
        self.timeout = timeout

    def build_message(self, event: EventRecord, message: Notification) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        if event.email_for_notifications:
            msg["Reply-To"] = event.email_for_notifications
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(message.html_body, subtype="html")
        html_part = msg.get_payload()[1]

        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            if attachment.cid:
                html_part.add_related(
                    attachment.content, maintype=maintype, subtype=subtype,
                    cid=f"<{attachment.cid}>", filename=attachment.filename,
                )
            msg.add_attachment(
                attachment.content, maintype=maintype, subtype=subtype, filename=attachment.filename,
            )
        return msg

    def send(self, event: EventRecord, message: Notification) -> None:
        try:
            msg = self.build_message(event, message)
        except ValueError as exc:
            raise UpstreamError(f"Could not build notification to {message.to}") from exc
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise UpstreamError(f"Failed to send notification to {message.to}") from exc


def build_notification_sender() -> NotificationSender:
    if settings.SMTP_HOST:
        return SmtpNotificationSender()
    logger.warning("SMTP_HOST not set, notifications will only be logged")
    return LoggingNotificationSender()


class NotificationService:
    """Composes attendee notifications from templates"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def _render(self, template: str, **context) -> str:
        return self.env.get_template(template).render(status_url=QRService.get_status_url(), **context)

    @staticmethod
    def _ticket_attachment(registration: RegistrationRecord) -> List[Attachment]:
        if not registration.ticket_image:
            return []
        return [
            Attachment(
                filename=f"ticket-{registration.ticket_id}.png",
                content=QRService.from_data_url(registration.ticket_image),
                cid=TICKET_CID,
            )
        ]

    def registration_confirmed(self, registration: RegistrationRecord, event: EventRecord) -> Notification:
        return Notification(
            to=registration.email,
            subject=f"Registration Confirmed - {event.name} | Ticket #{registration.ticket_id}",
            html_body=self._render(
                "registration_confirmed.html", registration=registration, event=event, ticket_cid=TICKET_CID,
            ),
            attachments=self._ticket_attachment(registration),
        )

    def payment_in_progress(self, registration: RegistrationRecord, event: EventRecord) -> Notification:
        return Notification(
            to=registration.email,
            subject=f"Payment Verification in Progress - {event.name} | Ticket #{registration.ticket_id}",
            html_body=self._render("payment_in_progress.html", registration=registration, event=event),
        )

    def payment_verified(self, registration: RegistrationRecord, event: EventRecord) -> Notification:
        return Notification(
            to=registration.email,
            subject=f"Payment Verified - {event.name} | Ticket #{registration.ticket_id}",
            html_body=self._render(
                "payment_verified.html", registration=registration, event=event, ticket_cid=TICKET_CID,
            ),
            attachments=self._ticket_attachment(registration),
        )
