"""Printable profile kit: biodata, QR and terms pages rendered as images and bound into one A4 PDF."""

from __future__ import annotations

import io
import logging
import textwrap
from datetime import date

import fitz
from PIL import Image, ImageDraw, ImageFont, ImageOps

from app.models.employee import EmployeeRecord
from app.services.blob_storage import BlobStorageService
from app.services.qr_code import decode_qr_data_url

logger = logging.getLogger(__name__)

# A4 at 150 dpi for the rasters, and in PDF points for the pages.
PAGE_PX = (1240, 1754)
A4_POINTS = (595.0, 842.0)
MARGIN_PX = 90

COMPANY_NAME = "CISS Services Limited"

TERMS_AND_CONDITIONS = [
    "I hereby declare that the information furnished in this form is true and correct to the best "
    "of my knowledge and belief.",
    "I understand that any false information or suppression of facts may lead to the termination "
    "of my employment without notice.",
    "I agree to abide by the rules, regulations and code of conduct of the company and of the client "
    "site to which I am deployed.",
    "I consent to the company verifying my identity, address and police clearance records with the "
    "relevant authorities.",
    "I authorise the company to use my personal data for payroll, statutory compliance and "
    "deployment purposes.",
]


class ProfileKitError(Exception):
    pass


def _font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _blank_page() -> tuple[Image.Image, ImageDraw.ImageDraw]:
    page = Image.new("RGB", PAGE_PX, "white")
    return page, ImageDraw.Draw(page)


def _header(draw: ImageDraw.ImageDraw, title: str) -> int:
    draw.text((PAGE_PX[0] // 2, MARGIN_PX), COMPANY_NAME, font=_font(44), fill="black", anchor="mt")
    draw.text((PAGE_PX[0] // 2, MARGIN_PX + 64), title, font=_font(32), fill="#333333", anchor="mt")
    y = MARGIN_PX + 120
    draw.line((MARGIN_PX, y, PAGE_PX[0] - MARGIN_PX, y), fill="black", width=3)
    return y + 40


def _fmt(value: object) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, date):
        return value.strftime("%d-%m-%Y")
    return str(value)


def biodata_rows(record: EmployeeRecord) -> list[tuple[str, str]]:
    rows = [
        ("Employee ID", record.employee_id),
        ("Full Name", record.full_name),
        ("Client", record.client_name),
        ("Resource ID", record.resource_id_number),
        ("Status", record.status),
        ("Joining Date", record.joining_date),
        ("Exit Date", record.exit_date),
        ("Gender", record.gender),
        ("Date of Birth", record.date_of_birth),
        ("Father's Name", record.father_name),
        ("Mother's Name", record.mother_name),
        ("Marital Status", record.marital_status),
        ("Spouse Name", record.spouse_name),
        ("Qualification", record.other_qualification or record.educational_qualification),
        ("District", record.district),
        ("Address", record.full_address),
        ("Phone", record.phone_number),
        ("Email", record.email_address),
        ("Identity Proof", f"{_fmt(record.identity_proof_type)} / {_fmt(record.identity_proof_number)}"),
        ("Address Proof", f"{_fmt(record.address_proof_type)} / {_fmt(record.address_proof_number)}"),
        ("PAN", record.pan_number),
        ("EPF UAN", record.epf_uan_number),
        ("ESIC", record.esic_number),
        ("Bank", record.bank_name),
        ("Account Number", record.bank_account_number),
        ("IFSC", record.ifsc_code),
    ]
    return [(label, _fmt(value)) for label, value in rows]


def render_biodata_page(record: EmployeeRecord, photo: Image.Image | None) -> Image.Image:
    page, draw = _blank_page()
    y = _header(draw, "Employee Biodata")

    photo_box = (PAGE_PX[0] - MARGIN_PX - 260, y, PAGE_PX[0] - MARGIN_PX, y + 320)
    draw.rectangle(photo_box, outline="black", width=2)
    if photo is not None:
        fitted = ImageOps.contain(photo.convert("RGB"), (256, 316))
        page.paste(fitted, (photo_box[0] + 2, photo_box[1] + 2))
    else:
        draw.text(
            ((photo_box[0] + photo_box[2]) // 2, (photo_box[1] + photo_box[3]) // 2),
            "No Photo",
            font=_font(24),
            fill="#888888",
            anchor="mm",
        )

    label_font, value_font = _font(24), _font(24)
    value_x = MARGIN_PX + 260
    for label, value in biodata_rows(record):
        wrap_width = 38 if y < photo_box[3] else 60
        lines = textwrap.wrap(value, wrap_width) or ["-"]
        draw.text((MARGIN_PX, y), label, font=label_font, fill="#333333")
        for line in lines:
            draw.text((value_x, y), line, font=value_font, fill="black")
            y += 34
        y += 12
    return page


def render_qr_page(record: EmployeeRecord, qr_image: Image.Image) -> Image.Image:
    page, draw = _blank_page()
    y = _header(draw, "Employee QR Code")
    qr = qr_image.convert("RGB").resize((720, 720), Image.NEAREST)
    page.paste(qr, ((PAGE_PX[0] - 720) // 2, y + 80))
    y += 80 + 720 + 60
    for text in (record.full_name, record.employee_id, record.phone_number):
        draw.text((PAGE_PX[0] // 2, y), text, font=_font(34), fill="black", anchor="mt")
        y += 56
    return page


def render_terms_page(record: EmployeeRecord, signature: Image.Image | None) -> Image.Image:
    page, draw = _blank_page()
    y = _header(draw, "Terms and Conditions")
    body_font = _font(26)
    for number, clause in enumerate(TERMS_AND_CONDITIONS, start=1):
        for i, line in enumerate(textwrap.wrap(clause, 78)):
            prefix = f"{number}. " if i == 0 else "    "
            draw.text((MARGIN_PX, y), prefix + line, font=body_font, fill="black")
            y += 38
        y += 18

    y = max(y + 80, PAGE_PX[1] - MARGIN_PX - 260)
    if signature is not None:
        fitted = ImageOps.contain(signature.convert("RGB"), (420, 140))
        page.paste(fitted, (PAGE_PX[0] - MARGIN_PX - 420, y))
    line_y = y + 150
    draw.line((PAGE_PX[0] - MARGIN_PX - 420, line_y, PAGE_PX[0] - MARGIN_PX, line_y), fill="black", width=2)
    draw.text(
        (PAGE_PX[0] - MARGIN_PX - 420, line_y + 12),
        f"Signature: {record.full_name}",
        font=body_font,
        fill="black",
    )
    joined = _fmt(record.joining_date)
    draw.text((MARGIN_PX, line_y + 12), f"Date: {joined}", font=body_font, fill="black")
    return page


def fit_rect(image_size: tuple[int, int], page_size: tuple[float, float] = A4_POINTS) -> fitz.Rect:
    """Largest rect with the image's aspect ratio that fits the page, centered."""
    iw, ih = image_size
    pw, ph = page_size
    scale = min(pw / iw, ph / ih)
    w, h = iw * scale, ih * scale
    x, y = (pw - w) / 2, (ph - h) / 2
    return fitz.Rect(x, y, x + w, y + h)


def assemble_pdf(pages: list[Image.Image]) -> bytes:
    with fitz.open() as pdf:
        for image in pages:
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            page = pdf.new_page(width=A4_POINTS[0], height=A4_POINTS[1])
            page.insert_image(fit_rect(image.size), stream=buffer.getvalue())
        return pdf.tobytes()


def profile_kit_filename(record: EmployeeRecord) -> str:
    name = (record.full_name or record.employee_id or "Employee").replace('"', "").replace("/", "-")
    return f"{name}_Profile_Kit.pdf"


class ProfileKitBuilder:
    def __init__(self, storage: BlobStorageService) -> None:
        self.storage = storage

    async def _image(self, url: str | None, label: str) -> Image.Image | None:
        if not url:
            return None
        try:
            data = await self.storage.download_by_url(url)
            with Image.open(io.BytesIO(data)) as img:
                return ImageOps.exif_transpose(img).convert("RGB")
        except Exception as e:
            raise ProfileKitError(f"Could not load {label}: {e}") from e

    async def build(self, record: EmployeeRecord) -> bytes:
        photo = await self._image(record.profile_picture_url, "profile picture")
        signature = await self._image(record.signature_url, "signature")
        try:
            pages = [render_biodata_page(record, photo)]
            if record.qr_code_url:
                with Image.open(io.BytesIO(decode_qr_data_url(record.qr_code_url))) as qr:
                    pages.append(render_qr_page(record, qr.convert("RGB")))
            pages.append(render_terms_page(record, signature))
            data = assemble_pdf(pages)
        except Exception as e:
            logger.exception("Profile kit rendering failed for %s", record.id)
            raise ProfileKitError(f"Could not generate profile kit: {e}") from e
        logger.info("Generated profile kit for %s (%d pages)", record.id, len(pages))
        return data
