"""Translation of service exceptions into HTTP errors."""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from app.services.blob_storage import BlobStorageError
from app.services.bulk_import import BulkImportError
from app.services.client_service import (
    ClientNotFoundError,
    ClientRegistryNotInitializedError,
    DuplicateClientError,
    InvalidClientNameError,
)
from app.services.directory import InvalidCursorError
from app.services.document_upload import SLOTS_BY_KEY, DocumentUploadError, DocumentValidationError, UploadedDocument
from app.services.employee_lifecycle import StatusChangeError
from app.services.employee_service import (
    EmployeeNotFoundError,
    MissingIndexError,
    PermissionDeniedError,
    StoreNotInitializedError,
)
from app.services.enrollment import VerificationMismatchError, VerificationUnavailableError
from app.services.profile_kit import ProfileKitError
from app.services.qr_code import QrCodeError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (EmployeeNotFoundError, status.HTTP_404_NOT_FOUND),
    (ClientNotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (MissingIndexError, status.HTTP_409_CONFLICT),
    (DuplicateClientError, status.HTTP_409_CONFLICT),
    (StoreNotInitializedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ClientRegistryNotInitializedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (VerificationUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidClientNameError, status.HTTP_400_BAD_REQUEST),
    (DocumentValidationError, status.HTTP_400_BAD_REQUEST),
    (StatusChangeError, status.HTTP_400_BAD_REQUEST),
    (InvalidCursorError, status.HTTP_400_BAD_REQUEST),
    (BulkImportError, status.HTTP_400_BAD_REQUEST),
    (VerificationMismatchError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DocumentUploadError, status.HTTP_502_BAD_GATEWAY),
    (BlobStorageError, status.HTTP_502_BAD_GATEWAY),
    (ProfileKitError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (QrCodeError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def to_http_error(err: Exception, action: str) -> HTTPException:
    """HTTPException for ``err``; unknown errors become a generic 500."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            if status_code >= 500:
                logger.error("Failed to %s: %s", action, err)
            return HTTPException(status_code=status_code, detail=str(err))

    logger.exception("Failed to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


def validation_detail(err: ValidationError) -> list[dict[str, Any]]:
    return [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in err.errors()]


def parse_payload(model: type[M], payload: str | None) -> M:
    if not payload:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Missing form field 'payload'")
    try:
        return model.model_validate(json.loads(payload))
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Field 'payload' is not valid JSON: {e}",
        ) from e
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=validation_detail(e)) from e


async def read_multipart(request: Request) -> tuple[str | None, dict[str, UploadedDocument]]:
    """The JSON ``payload`` field and one uploaded file per document slot field."""
    form = await request.form()
    payload = form.get("payload")
    files: dict[str, UploadedDocument] = {}
    for key in SLOTS_BY_KEY:
        upload = form.get(key)
        if not isinstance(upload, UploadFile) or not upload.filename:
            continue
        files[key] = UploadedDocument(
            filename=upload.filename,
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        )
    return payload if isinstance(payload, str) else None, files
