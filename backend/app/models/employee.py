"""Employee models: stored record shape, directory rows and the enrollment/edit forms."""

from __future__ import annotations

import re
from datetime import date
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

EmployeeStatus = Literal["Active", "Inactive", "OnLeave", "Exited"]
Gender = Literal["Male", "Female", "Other"]
MaritalStatus = Literal["Married", "Unmarried"]

KERALA_DISTRICTS: list[str] = [
    "Thiruvananthapuram",
    "Kollam",
    "Pathanamthitta",
    "Alappuzha",
    "Kottayam",
    "Idukki",
    "Ernakulam",
    "Thrissur",
    "Palakkad",
    "Malappuram",
    "Kozhikode",
    "Wayanad",
    "Kannur",
    "Kasaragod",
]

PROOF_TYPES: list[str] = [
    "PAN Card",
    "Voter ID",
    "Driving License",
    "Passport",
    "Birth Certificate",
    "School Certificate",
    "Aadhar Card",
]

QUALIFICATIONS: list[str] = [
    "Primary School",
    "High School",
    "Diploma",
    "Graduation",
    "Post Graduation",
    "Doctorate",
    "Any Other Qualification",
]
OTHER_QUALIFICATION = "Any Other Qualification"

# Clients whose guards must carry the client-issued resource ID.
RESOURCE_ID_CLIENTS = {"TCS"}

PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

_CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class EmployeeRecord(BaseModel):
    """One employee document in the current (normalized) schema."""

    model_config = _CAMEL_CONFIG

    id: str
    employee_id: str = ""
    client_name: str = ""
    resource_id_number: str | None = None

    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    gender: str | None = None
    date_of_birth: date | None = None
    father_name: str | None = None
    mother_name: str | None = None
    marital_status: str | None = None
    spouse_name: str | None = None
    educational_qualification: str | None = None
    other_qualification: str | None = None

    district: str | None = None
    full_address: str | None = None
    phone_number: str = ""
    email_address: str | None = None

    joining_date: date | None = None
    status: EmployeeStatus = "Active"
    exit_date: date | None = None

    identity_proof_type: str | None = None
    identity_proof_number: str | None = None
    identity_proof_url_front: str | None = None
    identity_proof_url_back: str | None = None
    address_proof_type: str | None = None
    address_proof_number: str | None = None
    address_proof_url_front: str | None = None
    address_proof_url_back: str | None = None

    pan_number: str | None = None
    epf_uan_number: str | None = None
    esic_number: str | None = None
    bank_name: str | None = None
    bank_account_number: str | None = None
    ifsc_code: str | None = None

    profile_picture_url: str | None = None
    signature_url: str | None = None
    bank_passbook_statement_url: str | None = None
    police_clearance_certificate_url: str | None = None
    qr_code_url: str | None = None

    searchable_fields: list[str] = []
    created_at: str | None = None
    updated_at: str | None = None


class EmployeeSummary(BaseModel):
    """Row shown in the employee directory."""

    model_config = _CAMEL_CONFIG

    id: str
    employee_id: str = ""
    full_name: str = ""
    client_name: str = ""
    district: str | None = None
    phone_number: str = ""
    email_address: str | None = None
    status: EmployeeStatus = "Active"
    profile_picture_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_record(cls, record: EmployeeRecord) -> EmployeeSummary:
        return cls(
            id=record.id,
            employee_id=record.employee_id,
            full_name=record.full_name,
            client_name=record.client_name,
            district=record.district,
            phone_number=record.phone_number,
            email_address=record.email_address,
            status=record.status,
            profile_picture_url=record.profile_picture_url,
            created_at=record.created_at,
        )


class PublicProfile(BaseModel):
    """Projection of a record shown to anonymous visitors of the self-service page."""

    model_config = _CAMEL_CONFIG

    id: str
    employee_id: str = ""
    full_name: str = ""
    client_name: str = ""
    status: EmployeeStatus = "Active"
    profile_picture_url: str | None = None
    qr_code_url: str | None = None
    educational_qualification: str | None = None
    other_qualification: str | None = None
    identity_proof_type: str | None = None
    address_proof_type: str | None = None
    missing_documents: list[str] = []


def _check_pan(value: str | None) -> str | None:
    if not value:
        return value
    value = value.strip().upper()
    if not PAN_PATTERN.match(value):
        raise ValueError("Invalid PAN number format (e.g., ABCDE1234F).")
    return value


def _check_choice(value: str, choices: list[str], label: str) -> str:
    if value not in choices:
        raise ValueError(f"{label} must be one of: {', '.join(choices)}")
    return value


class _EmployeeFormBase(BaseModel):
    """Fields shared by enrollment and the admin edit form."""

    model_config = _CAMEL_CONFIG

    client_name: str = Field(..., min_length=1)
    resource_id_number: str | None = None
    joining_date: date

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    father_name: str = Field(..., min_length=2)
    mother_name: str = Field(..., min_length=2)
    date_of_birth: date
    gender: Gender
    marital_status: MaritalStatus
    spouse_name: str | None = None
    district: str = Field(..., min_length=1)

    identity_proof_type: str
    identity_proof_number: str = Field(..., min_length=5)
    address_proof_type: str
    address_proof_number: str = Field(..., min_length=5)

    pan_number: str | None = None
    epf_uan_number: str | None = None
    esic_number: str | None = None

    bank_name: str = Field(..., min_length=2)
    bank_account_number: str = Field(..., min_length=5)
    ifsc_code: str = Field(..., min_length=11, max_length=11)

    full_address: str = Field(..., min_length=10)
    email_address: EmailStr

    @field_validator("pan_number")
    @classmethod
    def _validate_pan(cls, value: str | None) -> str | None:
        return _check_pan(value)

    @field_validator("ifsc_code")
    @classmethod
    def _upper_ifsc(cls, value: str) -> str:
        return value.upper()

    @field_validator("identity_proof_type", "address_proof_type")
    @classmethod
    def _validate_proof_type(cls, value: str) -> str:
        return _check_choice(value, PROOF_TYPES, "Proof type")

    @field_validator("district")
    @classmethod
    def _validate_district(cls, value: str) -> str:
        return _check_choice(value, KERALA_DISTRICTS, "District")

    @model_validator(mode="after")
    def _conditional_fields(self):
        if self.marital_status == "Married" and not (self.spouse_name or "").strip():
            raise ValueError("Spouse name is required if married.")
        if self.client_name.strip().upper() in RESOURCE_ID_CLIENTS and not (self.resource_id_number or "").strip():
            raise ValueError(f"Resource ID number is required for {self.client_name.strip()} client.")
        return self


class EnrollmentForm(_EmployeeFormBase):
    """JSON payload of a new enrollment; document files travel alongside it."""

    phone_number: str = Field(..., pattern=r"^\d{10}$")
    terms_accepted: bool = Field(False, validate_default=True)
    # Slot key -> data URL of a frame captured from the camera.
    captured_images: dict[str, str] = {}

    @field_validator("terms_accepted")
    @classmethod
    def _require_terms(cls, value: bool) -> bool:
        if not value:
            raise ValueError("The terms and conditions must be accepted.")
        return value


class EmployeeUpdateForm(_EmployeeFormBase):
    """Admin edit form. The phone number is fixed at enrollment and not editable."""

    status: EmployeeStatus
    exit_date: date | None = None
    educational_qualification: str | None = None
    other_qualification: str | None = None
    captured_images: dict[str, str] = {}

    @model_validator(mode="after")
    def _exit_date_rule(self):
        if self.status == "Exited" and self.exit_date is None:
            raise ValueError("Exit date is required if status is Exited.")
        return self


class SelfServiceUpdateForm(BaseModel):
    """Fields an employee may update from the public profile page."""

    model_config = _CAMEL_CONFIG

    educational_qualification: str
    other_qualification: str | None = None
    identity_proof_type: str
    identity_proof_number: str = Field(..., min_length=5)
    address_proof_type: str
    address_proof_number: str = Field(..., min_length=5)
    captured_images: dict[str, str] = {}

    @field_validator("educational_qualification")
    @classmethod
    def _validate_qualification(cls, value: str) -> str:
        return _check_choice(value, QUALIFICATIONS, "Educational qualification")

    @field_validator("identity_proof_type", "address_proof_type")
    @classmethod
    def _validate_proof_type(cls, value: str) -> str:
        return _check_choice(value, PROOF_TYPES, "Proof type")

    @model_validator(mode="after")
    def _other_qualification_rule(self):
        if self.educational_qualification == OTHER_QUALIFICATION and not (self.other_qualification or "").strip():
            raise ValueError("Please specify your qualification.")
        return self


class StatusChangeRequest(BaseModel):
    model_config = _CAMEL_CONFIG

    status: EmployeeStatus
    exit_date: date | None = None
