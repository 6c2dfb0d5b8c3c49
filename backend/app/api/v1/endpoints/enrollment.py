from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status

from app.api.v1.errors import parse_payload, read_multipart, to_http_error
from app.core.dependencies import get_document_verifier, get_employee_store, get_upload_pipeline, require_admin
from app.models.auth import UserInfo
from app.models.employee import EmployeeRecord, EnrollmentForm
from app.services.document_upload import DocumentUploadPipeline
from app.services.document_verifier import DocumentVerifier
from app.services.employee_service import EmployeeService
from app.services.enrollment import EnrollmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["enrollment"])


async def _enroll(
    request: Request,
    store: EmployeeService,
    pipeline: DocumentUploadPipeline,
    verifier: DocumentVerifier,
) -> EmployeeRecord:
    payload, files = await read_multipart(request)
    form = parse_payload(EnrollmentForm, payload)
    try:
        return await EnrollmentService(store, pipeline, verifier).enroll(form, files)
    except Exception as err:
        raise to_http_error(err, "enroll employee") from err


@router.post("/employees/enroll", response_model=EmployeeRecord, status_code=status.HTTP_201_CREATED)
async def enroll_employee(
    request: Request,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
    verifier: DocumentVerifier = Depends(get_document_verifier),  # noqa: B008
):
    return await _enroll(request, store, pipeline, verifier)


@router.post("/enroll", response_model=EmployeeRecord, status_code=status.HTTP_201_CREATED)
async def self_enroll(
    request: Request,
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
    verifier: DocumentVerifier = Depends(get_document_verifier),  # noqa: B008
):
    return await _enroll(request, store, pipeline, verifier)
