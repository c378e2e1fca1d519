"""
QR code generation service
"""

import base64
import io
from urllib.parse import quote

import qrcode

from app.core.config import settings

PNG_DATA_URL_PREFIX = "data:image/png;base64,"

class QRService:
    """Service for generating QR codes"""

    def __init__(self, box_size: int = 10, border: int = 1):
        self.box_size = box_size
        self.border = border

    def encode(self, payload: str, format: str = 'PNG') -> bytes:
        """Encode a payload string as a QR image"""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()

    @staticmethod
    def to_data_url(image_bytes: bytes) -> str:
        return PNG_DATA_URL_PREFIX + base64.b64encode(image_bytes).decode("ascii")

    @staticmethod
    def from_data_url(data_url: str) -> bytes:
        """Decode a PNG data URL produced by ``to_data_url``"""
        return base64.b64decode(data_url.split(";base64,", 1)[-1])

    @staticmethod
    def build_upi_link(upi_id: str, payee_name: str, amount: float, reference: str, note: str) -> str:
        """UPI deep link: upi://pay?pa=ID&pn=NAME&am=AMOUNT&cu=INR&tr=REF&tn=NOTE"""
        return (
            f"upi://pay?pa={quote(upi_id, safe='@')}&pn={quote(payee_name)}"
            f"&am={amount:g}&cu=INR&tr={quote(reference)}&tn={quote(note)}"
        )

    def payment_qr(self, upi_link: str) -> str:
        """QR image (data URL) for a UPI payment link"""
        return self.to_data_url(self.encode(upi_link))

    @staticmethod
    def get_status_url() -> str:
        """Page where attendees look up their registration status"""
        return f"{settings.CLIENT_URL}/check-status"
