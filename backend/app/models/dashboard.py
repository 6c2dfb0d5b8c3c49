"""Workforce dashboard figures."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

_CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class ClientCount(BaseModel):
    name: str
    value: int


class MonthlyHires(BaseModel):
    month: str
    hires: int


class RecentEnrollment(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    employee_id: str = ""
    full_name: str = ""
    client_name: str = ""
    text: str
    subtext: str
    created_at: str


class DashboardStats(BaseModel):
    model_config = _CAMEL_CONFIG

    total: int
    active: int
    on_leave: int
    inactive_or_exited: int
    client_distribution: list[ClientCount]
    new_hires: list[MonthlyHires]
    recent_enrollments: list[RecentEnrollment]
