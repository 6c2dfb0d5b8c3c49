"""Bulk employee import from CSV exports of the old system."""

from __future__ import annotations

import csv
import dataclasses
import io
import logging
import re
import uuid
from datetime import date, datetime
from typing import Any, get_args

from app.models.documents import ImportResult
from app.models.employee import EmployeeStatus
from app.services.document_upload import (
    SLOTS_BY_KEY,
    DocumentUploadError,
    DocumentUploadPipeline,
    DocumentValidationError,
    document_from_data_url,
)
from app.services.employee_id import build_searchable_fields, generate_employee_id
from app.services.employee_service import EmployeeService, EmployeeStoreError, utc_timestamp
from app.services.qr_code import QrCodeError, generate_qr_data_url

logger = logging.getLogger(__name__)

# Imported photos are larger than camera captures.
IMPORT_PHOTO_SLOT = dataclasses.replace(SLOTS_BY_KEY["profilePicture"], max_dimension=800, quality=75)

_PHOTO_DATA_URI = re.compile(r"^data:image/(jpeg|png|gif|webp);base64,", re.IGNORECASE)

_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d")

# CSV column -> record field, copied as text.
_TEXT_COLUMNS: list[tuple[str, str]] = [
    ("EmailAddress", "emailAddress"),
    ("FatherName", "fatherName"),
    ("MotherName", "motherName"),
    ("SpouseName", "spouseName"),
    ("District", "district"),
    ("IDProofType", "identityProofType"),
    ("IDProofNumber", "identityProofNumber"),
    ("BankAccountNumber", "bankAccountNumber"),
    ("IFSCCode", "ifscCode"),
    ("BankName", "bankName"),
    ("FullAddress", "fullAddress"),
    ("PANNumber", "panNumber"),
    ("EPFUANNumber", "epfUanNumber"),
    ("ESICNumber", "esicNumber"),
    ("ResourceIDNumber", "resourceIdNumber"),
    ("IDProofDocumentURL", "identityProofUrlFront"),
    ("BankPassbookStatementURL", "bankPassbookStatementUrl"),
]


class BulkImportError(Exception):
    pass


def parse_csv_date(value: str | None) -> date | None:
    if not value:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_status(value: str | None, label: str = "") -> str:
    """Case-insensitive match against the employee statuses; unknown values become Active."""
    if not value:
        return "Active"
    for status in get_args(EmployeeStatus):
        if status.lower() == value.replace(" ", "").lower():
            return status
    logger.warning("Unknown Status %r for %s, using Active", value, label)
    return "Active"


def read_rows(content: bytes) -> list[dict[str, str]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise BulkImportError(f"Error parsing CSV: {e}") from e

    reader = csv.DictReader(io.StringIO(text))
    rows: list[dict[str, str]] = []
    try:
        for row in reader:
            rows.append({(k or "").strip(): (v or "").strip() for k, v in row.items() if k is not None})
    except csv.Error as e:
        raise BulkImportError(f"Error parsing CSV: {e}") from e
    return rows


def row_to_document(row: dict[str, str], today: date | None = None) -> dict[str, Any]:
    """Record fields for one CSV row, without the photo."""
    first_name = row.get("FirstName", "")
    last_name = row.get("LastName", "")
    full_name = f"{first_name} {last_name}".strip()
    phone_number = re.sub(r"\D", "", row.get("PhoneNumber", ""))
    label = full_name or phone_number or "unnamed row"

    doc: dict[str, Any] = {
        "firstName": first_name,
        "lastName": last_name,
        "fullName": full_name,
        "phoneNumber": phone_number,
        "clientName": row.get("ClientName") or "Unassigned",
        "gender": row.get("Gender") or "Other",
        "maritalStatus": row.get("MaritalStatus") or "Unmarried",
        "status": parse_status(row.get("Status"), label),
    }
    for column, name in _TEXT_COLUMNS:
        if row.get(column):
            doc[name] = row[column]

    if doc["status"] == "Exited":
        exit_date = parse_csv_date(row.get("ExitDate"))
        if exit_date is not None:
            doc["exitDate"] = exit_date

    joining = parse_csv_date(row.get("JoiningDate"))
    if joining is None:
        logger.warning("Invalid or missing JoiningDate for %s, using current date as fallback", label)
        joining = today or date.today()
    doc["joiningDate"] = joining

    birth = parse_csv_date(row.get("DateOfBirth"))
    if birth is None:
        logger.warning("Invalid or missing DateOfBirth for %s", label)
    else:
        doc["dateOfBirth"] = birth
    return doc


class BulkImporter:
    def __init__(self, store: EmployeeService, pipeline: DocumentUploadPipeline | None = None) -> None:
        self.store = store
        self.pipeline = pipeline

    async def _upload_photo(self, photo: str, doc: dict[str, Any]) -> str | None:
        if not photo or not _PHOTO_DATA_URI.match(photo):
            if photo:
                logger.warning("Invalid data URI for PhotoBlob of %s", doc["fullName"])
            return None
        if self.pipeline is None:
            logger.warning("Blob storage unavailable, photo of %s not imported", doc["fullName"])
            return None
        document = document_from_data_url(photo, "import_photo.jpg")
        return await self.pipeline.upload(document, IMPORT_PHOTO_SLOT, doc["phoneNumber"] or uuid.uuid4().hex)

    async def import_csv(self, content: bytes) -> ImportResult:
        rows = read_rows(content)
        if not rows:
            raise BulkImportError("CSV contains no data rows or was not processed correctly.")

        processed = skipped = 0
        for row in rows:
            doc = row_to_document(row)
            if not doc["fullName"] or not doc["phoneNumber"]:
                logger.warning("Skipping record due to missing essential data (Name/Phone): %s", row.get("FirstName"))
                skipped += 1
                continue
            if doc["status"] == "Exited" and "exitDate" not in doc:
                logger.warning("Skipping exited employee %s without a valid ExitDate", doc["fullName"])
                skipped += 1
                continue

            try:
                photo_url = await self._upload_photo(row.get("PhotoBlob", ""), doc)
                employee_id = generate_employee_id(doc["clientName"])
                now = utc_timestamp()
                doc.update(
                    {
                        "id": str(uuid.uuid4()),
                        "employeeId": employee_id,
                        "qrCodeUrl": generate_qr_data_url(employee_id, doc["fullName"], doc["phoneNumber"]),
                        "searchableFields": build_searchable_fields(doc["fullName"], employee_id, doc["phoneNumber"]),
                        "createdAt": now,
                        "updatedAt": now,
                    }
                )
                if photo_url:
                    doc["profilePictureUrl"] = photo_url
                await self.store.create(doc)
            except (ValueError, QrCodeError, DocumentValidationError, DocumentUploadError, EmployeeStoreError) as e:
                logger.warning("Error processing CSV row for %s: %s", doc["fullName"], e)
                skipped += 1
                continue
            processed += 1

        logger.info("CSV import finished: %d processed, %d skipped", processed, skipped)
        return ImportResult(
            success=processed > 0,
            message=f"Successfully processed {processed} employee records."
            if processed
            else "No valid employee records found in CSV to process.",
            records_processed=processed,
            records_skipped=skipped,
        )
