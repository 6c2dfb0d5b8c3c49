"""Excel export of the employee directory."""

from __future__ import annotations

import io
import logging
from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from app.models.employee import EmployeeRecord
from app.services.employee_service import EmployeeQuery, EmployeeService

logger = logging.getLogger(__name__)

SHEET_TITLE = "Employees"

# (header, record attribute)
EXPORT_COLUMNS: list[tuple[str, str]] = [
    ("Employee ID", "employee_id"),
    ("Full Name", "full_name"),
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Client", "client_name"),
    ("Resource ID", "resource_id_number"),
    ("Status", "status"),
    ("Joining Date", "joining_date"),
    ("Exit Date", "exit_date"),
    ("Gender", "gender"),
    ("Date of Birth", "date_of_birth"),
    ("Father's Name", "father_name"),
    ("Mother's Name", "mother_name"),
    ("Marital Status", "marital_status"),
    ("Spouse Name", "spouse_name"),
    ("Educational Qualification", "educational_qualification"),
    ("Other Qualification", "other_qualification"),
    ("District", "district"),
    ("Full Address", "full_address"),
    ("Phone Number", "phone_number"),
    ("Email Address", "email_address"),
    ("Identity Proof Type", "identity_proof_type"),
    ("Identity Proof Number", "identity_proof_number"),
    ("Address Proof Type", "address_proof_type"),
    ("Address Proof Number", "address_proof_number"),
    ("PAN Number", "pan_number"),
    ("EPF UAN Number", "epf_uan_number"),
    ("ESIC Number", "esic_number"),
    ("Bank Name", "bank_name"),
    ("Bank Account Number", "bank_account_number"),
    ("IFSC Code", "ifsc_code"),
    ("Profile Picture URL", "profile_picture_url"),
    ("Created At", "created_at"),
    ("Updated At", "updated_at"),
]

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")


def build_workbook(records: list[EmployeeRecord]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    for col, (header, _) in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[get_column_letter(col)].width = max(14, len(header) + 4)

    for row, record in enumerate(records, start=2):
        for col, (_, attr) in enumerate(EXPORT_COLUMNS, start=1):
            value = getattr(record, attr)
            cell = ws.cell(row=row, column=col, value=value)
            if isinstance(value, date):
                cell.number_format = "DD-MM-YYYY"

    ws.freeze_panes = "A2"
    return wb


async def export_employees(store: EmployeeService) -> bytes:
    records = await store.query(EmployeeQuery())
    wb = build_workbook(records)
    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Exported %d employees", len(records))
    return buffer.getvalue()
