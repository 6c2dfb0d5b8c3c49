"""Editing an existing employee: admin partial updates, QR/ID regeneration and self-service updates."""

from __future__ import annotations

import logging
from typing import Any

from app.models.documents import SaveResult
from app.models.employee import (
    OTHER_QUALIFICATION,
    EmployeeRecord,
    EmployeeUpdateForm,
    PublicProfile,
    SelfServiceUpdateForm,
)
from app.services.document_upload import (
    DOCUMENT_SLOTS,
    SLOTS_BY_KEY,
    DocumentSlot,
    DocumentUploadPipeline,
    UploadedDocument,
    validate_document,
)
from app.services.employee_id import build_searchable_fields, generate_employee_id
from app.services.employee_service import EmployeeNotFoundError, EmployeeService, utc_timestamp
from app.services.enrollment import collect_documents
from app.services.qr_code import generate_qr_data_url

logger = logging.getLogger(__name__)

NO_CHANGES_MESSAGE = "No changes"

_SEARCH_SOURCE_FIELDS = {"firstName", "lastName", "fullName", "employeeId", "phoneNumber"}

# Optional text fields that show as "" in the edit form when unset.
_OPTIONAL_TEXT_FIELDS = (
    "resourceIdNumber",
    "spouseName",
    "panNumber",
    "epfUanNumber",
    "esicNumber",
    "educationalQualification",
    "otherQualification",
    "emailAddress",
)


def _blank(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return None if value in ("", None) else value


def seed_form(record: EmployeeRecord) -> dict[str, Any]:
    """Current values of ``record`` as edit form defaults."""
    values = record.model_dump(by_alias=True, mode="json", exclude={"searchable_fields"})
    for name in _OPTIONAL_TEXT_FIELDS:
        if values.get(name) is None:
            values[name] = ""
    return values


def to_public_profile(record: EmployeeRecord) -> PublicProfile:
    current = record.model_dump(by_alias=True)
    return PublicProfile(
        id=record.id,
        employee_id=record.employee_id,
        full_name=record.full_name,
        client_name=record.client_name,
        status=record.status,
        profile_picture_url=record.profile_picture_url,
        qr_code_url=record.qr_code_url,
        educational_qualification=record.educational_qualification,
        other_qualification=record.other_qualification,
        identity_proof_type=record.identity_proof_type,
        address_proof_type=record.address_proof_type,
        missing_documents=[s.label for s in DOCUMENT_SLOTS if s.required and not current.get(s.url_field)],
    )


def diff_fields(original: dict[str, Any], edited: dict[str, Any]) -> dict[str, Any]:
    """Keys of ``edited`` whose value differs from ``original``; blank equals unset."""
    return {name: value for name, value in edited.items() if _blank(value) != _blank(original.get(name))}


def compute_update(original: EmployeeRecord, form: EmployeeUpdateForm) -> tuple[dict[str, Any], list[str]]:
    """Fields to set and fields to remove to turn ``original`` into ``form``."""
    current = original.model_dump(by_alias=True, mode="json")
    edited = form.model_dump(by_alias=True, mode="json", exclude={"captured_images"})

    remove: list[str] = []
    if form.status != "Exited":
        edited.pop("exitDate", None)
        if current.get("exitDate"):
            remove.append("exitDate")
    if form.marital_status != "Married":
        edited.pop("spouseName", None)
        if current.get("spouseName"):
            remove.append("spouseName")
    if form.educational_qualification != OTHER_QUALIFICATION:
        edited.pop("otherQualification", None)
        if current.get("otherQualification"):
            remove.append("otherQualification")

    changes = diff_fields(current, edited)
    for name, value in changes.items():
        if isinstance(value, str):
            changes[name] = value.strip()

    if "firstName" in changes or "lastName" in changes:
        first = changes.get("firstName", original.first_name)
        last = changes.get("lastName", original.last_name)
        full_name = f"{first} {last}".strip()
        if full_name != original.full_name:
            changes["fullName"] = full_name
    return changes, remove


class ProfileEditService:
    def __init__(self, store: EmployeeService, pipeline: DocumentUploadPipeline) -> None:
        self.store = store
        self.pipeline = pipeline

    async def _load(self, employee_id: str) -> EmployeeRecord:
        record = await self.store.get(employee_id)
        if record is None:
            raise EmployeeNotFoundError(f"Employee {employee_id} not found")
        return record

    async def _upload_documents(
        self,
        record: EmployeeRecord,
        documents: dict[str, UploadedDocument],
    ) -> tuple[dict[str, str], dict[DocumentSlot, str]]:
        """Upload every replacement and return the new URLs plus the superseded ones.

        All documents are validated before the first upload. Nothing is deleted here.
        """
        for key, document in documents.items():
            validate_document(document, SLOTS_BY_KEY[key], self.pipeline.max_bytes)

        urls: dict[str, str] = {}
        superseded: dict[DocumentSlot, str] = {}
        current = record.model_dump(by_alias=True)
        for key, document in documents.items():
            slot = SLOTS_BY_KEY[key]
            urls[slot.url_field] = await self.pipeline.upload(document, slot, record.phone_number)
            old_url = current.get(slot.url_field)
            if old_url and old_url != urls[slot.url_field]:
                superseded[slot] = old_url
        return urls, superseded

    async def _drop_superseded(self, superseded: dict[DocumentSlot, str]) -> list[str]:
        warnings: list[str] = []
        for slot, old_url in superseded.items():
            warning = await self.pipeline.delete_superseded(slot, old_url)
            if warning:
                warnings.append(warning)
        return warnings

    async def _save(
        self,
        record: EmployeeRecord,
        changes: dict[str, Any],
        remove: list[str],
        superseded: dict[DocumentSlot, str] | None = None,
    ) -> SaveResult:
        if not changes and not remove:
            return SaveResult(id=record.id, message=NO_CHANGES_MESSAGE)

        changed = sorted(changes) + sorted(remove)
        if _SEARCH_SOURCE_FIELDS & changes.keys():
            changes["searchableFields"] = build_searchable_fields(
                changes.get("fullName", record.full_name),
                changes.get("employeeId", record.employee_id),
                changes.get("phoneNumber", record.phone_number),
                extra_names=(
                    changes.get("firstName", record.first_name),
                    changes.get("lastName", record.last_name),
                ),
            )

        changes["updatedAt"] = utc_timestamp()
        await self.store.patch(record.id, changes, remove)
        logger.info("Updated employee %s: %s", record.id, ", ".join(changed))
        # Superseded blobs are dropped only once the record points at their replacements.
        warnings = await self._drop_superseded(superseded or {})
        return SaveResult(
            id=record.id,
            message="Employee profile updated successfully.",
            changed_fields=changed,
            warnings=warnings,
        )

    async def update(
        self,
        employee_id: str,
        form: EmployeeUpdateForm,
        files: dict[str, UploadedDocument] | None = None,
    ) -> SaveResult:
        record = await self._load(employee_id)
        changes, remove = compute_update(record, form)

        documents = collect_documents(files or {}, form.captured_images)
        urls, superseded = await self._upload_documents(record, documents)
        changes.update(urls)
        return await self._save(record, changes, remove, superseded)

    async def self_service_update(
        self,
        employee_id: str,
        form: SelfServiceUpdateForm,
        files: dict[str, UploadedDocument] | None = None,
    ) -> SaveResult:
        """Update from the public profile page; superseded documents are kept in storage."""
        record = await self._load(employee_id)
        current = record.model_dump(by_alias=True, mode="json")
        edited = form.model_dump(by_alias=True, mode="json", exclude={"captured_images"})

        remove: list[str] = []
        if form.educational_qualification != OTHER_QUALIFICATION:
            edited.pop("otherQualification", None)
            if current.get("otherQualification"):
                remove.append("otherQualification")
        changes = diff_fields(current, edited)

        documents = collect_documents(files or {}, form.captured_images)
        urls, _ = await self._upload_documents(record, documents)
        changes.update(urls)
        return await self._save(record, changes, remove)

    async def regenerate_qr(self, employee_id: str) -> EmployeeRecord:
        record = await self._load(employee_id)
        qr_code_url = generate_qr_data_url(record.employee_id, record.full_name, record.phone_number)
        updated = await self.store.patch(employee_id, {"qrCodeUrl": qr_code_url, "updatedAt": utc_timestamp()})
        logger.info("Regenerated QR code for employee %s", employee_id)
        return updated

    async def regenerate_employee_id(self, employee_id: str) -> EmployeeRecord:
        """New random ID for the record's client, with a matching QR code and search tokens."""
        record = await self._load(employee_id)
        new_id = generate_employee_id(record.client_name)
        updated = await self.store.patch(
            employee_id,
            {
                "employeeId": new_id,
                "qrCodeUrl": generate_qr_data_url(new_id, record.full_name, record.phone_number),
                "searchableFields": build_searchable_fields(
                    record.full_name,
                    new_id,
                    record.phone_number,
                    extra_names=(record.first_name, record.last_name),
                ),
                "updatedAt": utc_timestamp(),
            },
        )
        logger.info("Regenerated employee ID for %s: %s -> %s", employee_id, record.employee_id, new_id)
        return updated
