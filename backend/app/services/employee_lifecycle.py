"""Directory row actions: status transitions and deletion with document cleanup."""

from __future__ import annotations

import logging
from datetime import date

from app.models.employee import EmployeeRecord, EmployeeStatus
from app.services.blob_storage import BlobStorageService
from app.services.document_upload import DOCUMENT_URL_FIELDS
from app.services.employee_service import EmployeeNotFoundError, EmployeeService, utc_timestamp

logger = logging.getLogger(__name__)


class StatusChangeError(ValueError):
    pass


def document_urls(record: EmployeeRecord) -> list[str]:
    """Distinct non-empty document URLs referenced by ``record``."""
    data = record.model_dump(by_alias=True)
    urls = [data.get(name) for name in DOCUMENT_URL_FIELDS]
    return list(dict.fromkeys(url for url in urls if url))


async def change_status(
    store: EmployeeService,
    employee_id: str,
    status: EmployeeStatus,
    exit_date: date | None = None,
) -> EmployeeRecord:
    """Exited requires an exit date; any other status clears it."""
    if status == "Exited" and exit_date is None:
        raise StatusChangeError("Exit date is required when status is Exited.")

    if status == "Exited":
        updated = await store.patch(
            employee_id,
            {"status": status, "exitDate": exit_date, "updatedAt": utc_timestamp()},
        )
    else:
        updated = await store.patch(
            employee_id,
            {"status": status, "updatedAt": utc_timestamp()},
            remove_fields=["exitDate"],
        )
    logger.info("Employee %s status changed to %s", employee_id, status)
    return updated


async def delete_employee(
    store: EmployeeService,
    storage: BlobStorageService,
    employee_id: str,
) -> list[str]:
    """Delete the record, then best-effort delete its documents.

    Returns warnings for documents that could not be removed; a document that
    is already gone is not a warning.
    """
    record = await store.get(employee_id)
    if record is None:
        raise EmployeeNotFoundError(f"Employee {employee_id} not found")

    await store.delete(employee_id)
    logger.info("Deleted employee %s (%s)", employee_id, record.full_name)

    warnings: list[str] = []
    for url in document_urls(record):
        try:
            await storage.delete_by_url(url)
        except Exception as e:
            logger.warning("Failed to delete document %s of employee %s: %s", url, employee_id, e)
            warnings.append(f"Could not delete {url}: {e}")
    return warnings
