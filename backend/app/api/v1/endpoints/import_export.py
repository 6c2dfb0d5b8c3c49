from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.api.v1.errors import to_http_error
from app.core.dependencies import get_blob_storage, get_employee_store, get_upload_pipeline, require_admin
from app.models.auth import UserInfo
from app.models.documents import ImportResult
from app.services.blob_storage import BlobStorageService
from app.services.bulk_import import BulkImporter
from app.services.data_export import export_employees
from app.services.document_upload import DocumentUploadPipeline
from app.services.employee_service import EmployeeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["import-export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("/import", response_model=ImportResult)
async def import_employees(
    file: UploadFile = File(...),  # noqa: B008
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
    storage: BlobStorageService = Depends(get_blob_storage),  # noqa: B008
    pipeline: DocumentUploadPipeline = Depends(get_upload_pipeline),  # noqa: B008
):
    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please upload a CSV file.",
        )

    content = await file.read()
    importer = BulkImporter(store, pipeline if storage.initialized else None)
    try:
        return await importer.import_csv(content)
    except Exception as err:
        raise to_http_error(err, "import employees") from err


@router.get("/export")
async def export_employees_xlsx(
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    try:
        data = await export_employees(store)
    except Exception as err:
        raise to_http_error(err, "export employees") from err
    return Response(
        content=data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="employees.xlsx"'},
    )
