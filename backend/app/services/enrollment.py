"""New-employee enrollment.

Stages run strictly in order and the first failure stops the rest:
validate documents, verify proof images, generate the ID and QR code,
upload documents one at a time, insert the record. Nothing is written to
the employee store unless every stage before it succeeded; blobs uploaded
before a failing upload are left in storage.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from app.models.employee import EmployeeRecord, EnrollmentForm
from app.services.document_upload import (
    DOCUMENT_SLOTS,
    SLOTS_BY_KEY,
    VERIFIED_SLOTS,
    DocumentUploadPipeline,
    DocumentValidationError,
    UploadedDocument,
    document_from_data_url,
    validate_document,
)
from app.services.document_verifier import DocumentVerifier, DocumentVerifierError
from app.services.employee_id import build_searchable_fields, generate_employee_id
from app.services.employee_service import EmployeeService, utc_timestamp
from app.services.qr_code import generate_qr_data_url

logger = logging.getLogger(__name__)


class EnrollmentError(Exception):
    pass


class VerificationMismatchError(EnrollmentError):
    def __init__(self, slot_label: str, expected_type: str, reason: str) -> None:
        super().__init__(f"{slot_label} does not look like a {expected_type}: {reason}")
        self.slot_label = slot_label
        self.expected_type = expected_type
        self.reason = reason


class VerificationUnavailableError(EnrollmentError):
    pass


def collect_documents(
    files: dict[str, UploadedDocument],
    captured_images: dict[str, str],
) -> dict[str, UploadedDocument]:
    """Uploaded files and camera captures keyed by slot; an uploaded file wins over a capture."""
    documents: dict[str, UploadedDocument] = {}
    for key, data_url in captured_images.items():
        slot = SLOTS_BY_KEY.get(key)
        if slot is None:
            raise DocumentValidationError(key, f"Unknown document field: {key}")
        if not data_url:
            continue
        try:
            documents[key] = document_from_data_url(data_url, f"{slot.suffix}_capture.jpg")
        except ValueError as e:
            raise DocumentValidationError(key, f"{slot.label}: {e}") from e
    for key, document in files.items():
        if key not in SLOTS_BY_KEY:
            raise DocumentValidationError(key, f"Unknown document field: {key}")
        documents[key] = document
    return documents


class EnrollmentService:
    def __init__(
        self,
        store: EmployeeService,
        pipeline: DocumentUploadPipeline,
        verifier: DocumentVerifier | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.verifier = verifier

    def _validate(self, documents: dict[str, UploadedDocument]) -> None:
        for slot in DOCUMENT_SLOTS:
            document = documents.get(slot.key)
            if document is None:
                if slot.required:
                    raise DocumentValidationError(slot.key, f"{slot.label} is required.")
                continue
            validate_document(document, slot, self.pipeline.max_bytes)

    async def _verify(self, form: EnrollmentForm, documents: dict[str, UploadedDocument]) -> None:
        if self.verifier is None or not self.verifier.enabled:
            return
        for key, type_field in VERIFIED_SLOTS.items():
            document = documents.get(key)
            if document is None or not document.is_image:
                continue
            expected_type = getattr(form, type_field)
            try:
                result = await self.verifier.verify(document.to_data_uri(), expected_type)
            except DocumentVerifierError as e:
                raise VerificationUnavailableError(f"Could not verify {SLOTS_BY_KEY[key].label}: {e}") from e
            if not result.is_match:
                raise VerificationMismatchError(SLOTS_BY_KEY[key].label, expected_type, result.reason)

    def _base_document(self, form: EnrollmentForm) -> dict[str, Any]:
        doc = form.model_dump(
            by_alias=True,
            mode="json",
            exclude={"terms_accepted", "captured_images"},
            exclude_none=True,
        )
        for key in ("firstName", "lastName", "fatherName", "motherName", "fullAddress", "resourceIdNumber"):
            if isinstance(doc.get(key), str):
                doc[key] = doc[key].strip()
        if form.marital_status != "Married":
            doc.pop("spouseName", None)
        if not doc.get("resourceIdNumber"):
            doc.pop("resourceIdNumber", None)
        return doc

    async def enroll(
        self,
        form: EnrollmentForm,
        files: dict[str, UploadedDocument] | None = None,
    ) -> EmployeeRecord:
        documents = collect_documents(files or {}, form.captured_images)
        self._validate(documents)

        await self._verify(form, documents)

        full_name = f"{form.first_name.strip()} {form.last_name.strip()}".strip()
        employee_id = generate_employee_id(form.client_name)
        qr_code_url = generate_qr_data_url(employee_id, full_name, form.phone_number)
        searchable_fields = build_searchable_fields(full_name, employee_id, form.phone_number)

        urls: dict[str, str] = {}
        for slot in DOCUMENT_SLOTS:
            document = documents.get(slot.key)
            if document is None:
                continue
            urls[slot.url_field] = await self.pipeline.upload(document, slot, form.phone_number)

        now = utc_timestamp()
        record = {
            **self._base_document(form),
            **urls,
            "id": str(uuid.uuid4()),
            "employeeId": employee_id,
            "fullName": full_name,
            "status": "Active",
            "qrCodeUrl": qr_code_url,
            "searchableFields": searchable_fields,
            "createdAt": now,
            "updatedAt": now,
        }
        created = await self.store.create(record)
        logger.info("Enrolled employee %s (%s) for %s", created.employee_id, created.id, created.client_name)
        return created
