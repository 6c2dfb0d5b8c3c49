"""Public self-service profile page; no sign-in required."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.v1.errors import parse_payload, read_multipart, to_http_error
from app.core.dependencies import get_employee_store, get_upload_pipeline
from app.models.documents import SaveResult
from app.models.employee import PublicProfile, SelfServiceUpdateForm
from app.services.document_upload import DocumentUploadPipeline
from app.services.employee_service import EmployeeService
from app.services.profile_edit import ProfileEditService, to_public_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/{employee_id}", response_model=PublicProfile)
async def get_public_profile(
    employee_id: str,
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    try:
        record = await store.get(employee_id)
    except Exception as err:
        raise to_http_error(err, "retrieve profile") from err
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return to_public_profile(record)


@router.patch("/{employee_id}", response_model=SaveResult)
async def update_public_profile(
    employee_id: str,
    request: Request,
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
):
    payload, files = await read_multipart(request)
    form = parse_payload(SelfServiceUpdateForm, payload)
    try:
        return await ProfileEditService(store, pipeline).self_service_update(employee_id, form, files)
    except Exception as err:
        raise to_http_error(err, "update profile") from err
