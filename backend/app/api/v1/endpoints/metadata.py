from __future__ import annotations

from typing import get_args

from fastapi import APIRouter

from app.core.config import settings
from app.models.documents import DocumentSlotInfo, EnrollmentMetadata
from app.models.employee import KERALA_DISTRICTS, PROOF_TYPES, QUALIFICATIONS, EmployeeStatus
from app.services.document_upload import DOCUMENT_SLOTS

router = APIRouter(prefix="/metadata", tags=["metadata"])


@router.get("/enrollment", response_model=EnrollmentMetadata)
async def enrollment_metadata():
    return EnrollmentMetadata(
        districts=KERALA_DISTRICTS,
        proof_types=PROOF_TYPES,
        qualifications=QUALIFICATIONS,
        statuses=list(get_args(EmployeeStatus)),
        document_slots=[
            DocumentSlotInfo(
                key=slot.key,
                label=slot.label,
                url_field=slot.url_field,
                required=slot.required,
                image_only=slot.image_only,
                camera_facing=slot.camera_facing,
            )
            for slot in DOCUMENT_SLOTS
        ],
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )
