from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from app.api.v1.errors import parse_payload, read_multipart, to_http_error
from app.core.config import settings
from app.core.dependencies import get_blob_storage, get_employee_store, get_upload_pipeline, require_admin
from app.models.auth import UserInfo
from app.models.directory import DirectoryFilters, DirectoryPage
from app.models.documents import SaveResult
from app.models.employee import EmployeeRecord, EmployeeStatus, EmployeeUpdateForm, StatusChangeRequest
from app.services.blob_storage import BlobStorageService
from app.services.directory import select_query
from app.services.document_upload import DocumentUploadPipeline
from app.services.employee_lifecycle import change_status, delete_employee
from app.services.employee_service import EmployeeService
from app.services.profile_edit import ProfileEditService, seed_form
from app.services.profile_kit import ProfileKitBuilder, profile_kit_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])


async def _load(store: EmployeeService, employee_id: str) -> EmployeeRecord:
    try:
        record = await store.get(employee_id)
    except Exception as err:
        raise to_http_error(err, "retrieve employee") from err
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee '{employee_id}' not found",
        )
    return record


@router.get("", response_model=DirectoryPage)
async def list_employees(
    client: str | None = None,
    status_filter: EmployeeStatus | None = Query(None, alias="status"),  # noqa: B008
    district: str | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),  # noqa: B008
    cursor: str | None = None,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    filters = DirectoryFilters(client_name=client, status=status_filter, district=district)
    query = select_query(filters, search, settings.ITEMS_PER_PAGE)
    try:
        return await query.fetch_page(store, page, cursor)
    except Exception as err:
        raise to_http_error(err, "retrieve employees") from err


@router.get("/{employee_id}", response_model=EmployeeRecord)
async def get_employee(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    return await _load(store, employee_id)


@router.get("/{employee_id}/edit-form")
async def get_edit_form(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
) -> dict[str, Any]:
    return seed_form(await _load(store, employee_id))


@router.patch("/{employee_id}", response_model=SaveResult)
async def update_employee(
    employee_id: str,
    request: Request,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
):
    payload, files = await read_multipart(request)
    form = parse_payload(EmployeeUpdateForm, payload)
    try:
        return await ProfileEditService(store, pipeline).update(employee_id, form, files)
    except Exception as err:
        raise to_http_error(err, "update employee") from err


@router.patch("/{employee_id}/status", response_model=EmployeeRecord)
async def update_status(
    employee_id: str,
    body: StatusChangeRequest,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    try:
        return await change_status(store, employee_id, body.status, body.exit_date)
    except Exception as err:
        raise to_http_error(err, "update employee status") from err


@router.delete("/{employee_id}", response_model=SaveResult)
async def remove_employee(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    storage: BlobStorageService = Depends(get_blob_storage),  # noqa: B008
):
    try:
        warnings = await delete_employee(store, storage, employee_id)
    except Exception as err:
        raise to_http_error(err, "delete employee") from err
    message = "Employee deleted."
    if warnings:
        message = "Employee deleted, but some documents could not be removed from storage."
    return SaveResult(id=employee_id, message=message, warnings=warnings)


@router.post("/{employee_id}/qr", response_model=EmployeeRecord)
async def regenerate_qr_code(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
):
    try:
        return await ProfileEditService(store, pipeline).regenerate_qr(employee_id)
    except Exception as err:
        raise to_http_error(err, "regenerate QR code") from err


@router.post("/{employee_id}/employee-id", response_model=EmployeeRecord)
async def regenerate_employee_id(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
):
    try:
        return await ProfileEditService(store, pipeline).regenerate_employee_id(employee_id)
    except Exception as err:
        raise to_http_error(err, "regenerate employee ID") from err


@router.get("/{employee_id}/profile-kit")
async def download_profile_kit(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    storage: BlobStorageService = Depends(get_blob_storage),  # noqa: B008
):
    record = await _load(store, employee_id)
    try:
        pdf = await ProfileKitBuilder(storage).build(record)
    except Exception as err:
        raise to_http_error(err, "generate profile kit") from err
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(profile_kit_filename(record))}"},
    )

