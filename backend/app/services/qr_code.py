"""QR codes identifying an employee, stored on the record as PNG data URLs."""

from __future__ import annotations

import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_H

logger = logging.getLogger(__name__)

QR_SIZE_PX = 256
DATA_URL_PREFIX = "data:image/png;base64,"


class QrCodeError(Exception):
    pass


def build_qr_payload(employee_id: str, full_name: str, phone_number: str) -> str:
    return f"Employee ID: {employee_id}\nName: {full_name}\nPhone: {phone_number}"


def parse_qr_payload(payload: str) -> dict[str, str]:
    """Inverse of :func:`build_qr_payload`, used when a scanned code is read back."""
    fields: dict[str, str] = {}
    for line in payload.split("\n"):
        label, sep, value = line.partition(": ")
        if sep:
            fields[label] = value
    return fields


def generate_qr_data_url(employee_id: str, full_name: str, phone_number: str) -> str:
    payload = build_qr_payload(employee_id, full_name, phone_number)
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=10, border=1)
        qr.add_data(payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white").get_image()
        img = img.resize((QR_SIZE_PX, QR_SIZE_PX))

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
    except Exception as e:
        logger.error("QR generation failed for %s: %s", employee_id, e)
        raise QrCodeError(f"Could not generate QR code: {e}") from e

    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def decode_qr_data_url(data_url: str) -> bytes:
    if not data_url.startswith("data:") or ";base64," not in data_url:
        raise QrCodeError("QR code is not a base64 data URL")
    return base64.b64decode(data_url.split(",", 1)[1])
