"""Document upload, verification and import/export result models."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

_CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class DocumentVerification(BaseModel):
    model_config = _CAMEL_CONFIG

    is_match: bool
    reason: str


class DocumentSlotInfo(BaseModel):
    model_config = _CAMEL_CONFIG

    key: str
    label: str
    url_field: str
    required: bool
    image_only: bool
    camera_facing: str


class EnrollmentMetadata(BaseModel):
    model_config = _CAMEL_CONFIG

    districts: list[str]
    proof_types: list[str]
    qualifications: list[str]
    statuses: list[str]
    document_slots: list[DocumentSlotInfo]
    max_upload_bytes: int


class SaveResult(BaseModel):
    """Outcome of a mutation; warnings list non-fatal storage cleanup failures."""

    model_config = _CAMEL_CONFIG

    id: str
    message: str
    changed_fields: list[str] = []
    warnings: list[str] = []


class ImportResult(BaseModel):
    model_config = _CAMEL_CONFIG

    success: bool
    message: str
    records_processed: int
    records_skipped: int
