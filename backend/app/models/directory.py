"""Directory listing filters and page results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.models.employee import EmployeeStatus, EmployeeSummary


class DirectoryFilters(BaseModel):
    """Optional equality filters, AND-composed."""

    client_name: str | None = None
    status: EmployeeStatus | None = None
    district: str | None = None

    def as_equalities(self) -> dict[str, str]:
        equalities: dict[str, str] = {}
        if self.client_name:
            equalities["clientName"] = self.client_name
        if self.status:
            equalities["status"] = self.status
        if self.district:
            equalities["district"] = self.district
        return equalities


class DirectoryPage(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    mode: Literal["listing", "search"]
    items: list[EmployeeSummary]
    page: int
    page_size: int
    has_next: bool
    has_previous: bool
    next_cursor: str | None = None
    total_matches: int | None = None
    total_pages: int | None = None
