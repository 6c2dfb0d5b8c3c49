"""Per-file upload pipeline: validate, compress images, upload, return the URL."""

from __future__ import annotations

import base64
import io
import logging
import time
from dataclasses import dataclass

import fitz
from PIL import Image, ImageOps

from app.core.config import settings
from app.services.blob_storage import BlobStorageError, BlobStorageService

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class DocumentSlot:
    """One document field of an employee record."""

    key: str
    label: str
    url_field: str
    category: str
    suffix: str
    required: bool = True
    image_only: bool = False
    max_dimension: int = 1024
    quality: int = 70
    camera_facing: str = "environment"


DOCUMENT_SLOTS: tuple[DocumentSlot, ...] = (
    DocumentSlot(
        "profilePicture", "Profile Picture", "profilePictureUrl", "profilePictures", "profile",
        image_only=True, max_dimension=500, quality=80, camera_facing="user",
    ),
    DocumentSlot("identityProofFront", "Identity Proof (Front)", "identityProofUrlFront", "idProofs", "id_front"),
    DocumentSlot("identityProofBack", "Identity Proof (Back)", "identityProofUrlBack", "idProofs", "id_back"),
    DocumentSlot("addressProofFront", "Address Proof (Front)", "addressProofUrlFront", "addressProofs", "addr_front"),
    DocumentSlot("addressProofBack", "Address Proof (Back)", "addressProofUrlBack", "addressProofs", "addr_back"),
    DocumentSlot("signature", "Signature", "signatureUrl", "signatures", "sig", image_only=True),
    DocumentSlot(
        "bankPassbookStatement", "Bank Passbook/Statement", "bankPassbookStatementUrl", "bankDocuments", "bank",
    ),
    DocumentSlot(
        "policeClearanceCertificate", "Police Clearance Certificate", "policeClearanceCertificateUrl",
        "policeCertificates", "pcc", required=False,
    ),
)

SLOTS_BY_KEY: dict[str, DocumentSlot] = {slot.key: slot for slot in DOCUMENT_SLOTS}

# Slots whose images are checked by the AI verifier, with the form field holding the declared type.
VERIFIED_SLOTS: dict[str, str] = {
    "identityProofFront": "identity_proof_type",
    "identityProofBack": "identity_proof_type",
    "addressProofFront": "address_proof_type",
    "addressProofBack": "address_proof_type",
}

DOCUMENT_URL_FIELDS: tuple[str, ...] = tuple(slot.url_field for slot in DOCUMENT_SLOTS)


@dataclass
class UploadedDocument:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.content_type == PDF_CONTENT_TYPE

    def to_data_uri(self) -> str:
        return f"data:{self.content_type};base64,{base64.b64encode(self.data).decode('ascii')}"


class DocumentValidationError(Exception):
    def __init__(self, slot_key: str, message: str) -> None:
        super().__init__(message)
        self.slot_key = slot_key


class DocumentUploadError(Exception):
    def __init__(self, slot: DocumentSlot, message: str) -> None:
        super().__init__(f"{slot.label} upload failed: {message}")
        self.slot = slot


def document_from_data_url(data_url: str, filename: str) -> UploadedDocument:
    """Decode a camera frame (``data:image/jpeg;base64,...``) into an upload."""
    header, sep, encoded = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Captured image is not a base64 data URL")
    content_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
    try:
        data = base64.b64decode(encoded, validate=True)
    except ValueError as e:
        raise ValueError(f"Captured image is not valid base64: {e}") from e
    return UploadedDocument(filename=filename, content_type=content_type, data=data)


def validate_document(document: UploadedDocument, slot: DocumentSlot, max_bytes: int | None = None) -> None:
    if max_bytes is None:
        max_bytes = settings.MAX_UPLOAD_BYTES
    if document.size > max_bytes:
        raise DocumentValidationError(
            slot.key,
            f"{slot.label}: file is too large. Max {max_bytes // (1024 * 1024)}MB.",
        )
    if document.size == 0:
        raise DocumentValidationError(slot.key, f"{slot.label}: file is empty.")

    if document.is_image:
        try:
            with Image.open(io.BytesIO(document.data)) as img:
                img.verify()
        except Exception as e:
            raise DocumentValidationError(slot.key, f"{slot.label}: image could not be read.") from e
        return

    if document.is_pdf and not slot.image_only:
        try:
            with fitz.open(stream=document.data, filetype="pdf") as pdf:
                if pdf.page_count == 0:
                    raise DocumentValidationError(slot.key, f"{slot.label}: PDF has no pages.")
        except DocumentValidationError:
            raise
        except Exception as e:
            raise DocumentValidationError(slot.key, f"{slot.label}: PDF could not be read.") from e
        return

    allowed = "JPG, PNG or WEBP" if slot.image_only else "JPG, PNG, WEBP or PDF"
    raise DocumentValidationError(slot.key, f"{slot.label}: invalid file type. Use {allowed}.")


def compress_image(data: bytes, max_dimension: int, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode != "RGB":
            img = img.convert("RGB")
        img.thumbnail((max_dimension, max_dimension))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def build_storage_path(phone_number: str, slot: DocumentSlot, extension: str, now_ms: int | None = None) -> str:
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"employees/{phone_number}/{slot.category}/{timestamp}_{slot.suffix}.{extension}"


class DocumentUploadPipeline:
    def __init__(self, storage: BlobStorageService, max_bytes: int | None = None) -> None:
        self.storage = storage
        self.max_bytes = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES

    def prepare(self, document: UploadedDocument, slot: DocumentSlot) -> tuple[bytes, str, str]:
        """Bytes, content type and extension actually stored for ``document``."""
        if document.is_image:
            return compress_image(document.data, slot.max_dimension, slot.quality), "image/jpeg", "jpg"
        return document.data, document.content_type, "pdf"

    async def upload(self, document: UploadedDocument, slot: DocumentSlot, phone_number: str) -> str:
        validate_document(document, slot, self.max_bytes)
        try:
            data, content_type, extension = self.prepare(document, slot)
        except Exception as e:
            raise DocumentUploadError(slot, f"could not process image: {e}") from e

        path = build_storage_path(phone_number, slot, extension)
        try:
            return await self.storage.upload(path, data, content_type)
        except BlobStorageError as e:
            raise DocumentUploadError(slot, str(e)) from e

    async def replace(
        self,
        document: UploadedDocument,
        slot: DocumentSlot,
        phone_number: str,
        old_url: str | None,
        *,
        delete_old: bool = True,
    ) -> tuple[str, str | None]:
        """Upload the replacement, then drop the superseded blob.

        Returns the new URL and a warning when the old blob could not be deleted.
        """
        new_url = await self.upload(document, slot, phone_number)
        if not delete_old or not old_url or old_url == new_url:
            return new_url, None
        return new_url, await self.delete_superseded(slot, old_url)

    async def delete_superseded(self, slot: DocumentSlot, old_url: str) -> str | None:
        """Delete a replaced blob; a failure is returned as a warning, never raised."""
        try:
            await self.storage.delete_by_url(old_url)
        except Exception as e:
            logger.warning("Could not delete superseded %s at %s: %s", slot.label, old_url, e)
            return f"Old {slot.label} could not be deleted: {e}"
        return None
