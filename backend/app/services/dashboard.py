"""Workforce dashboard: status counts, client distribution, monthly hires and recent enrollments.

Everything is computed in a single pass over the employee directory.
"""

from __future__ import annotations

import heapq
import logging
from collections import Counter
from datetime import date

from app.models.dashboard import ClientCount, DashboardStats, MonthlyHires, RecentEnrollment
from app.models.employee import EmployeeRecord
from app.services.employee_service import EmployeeQuery, EmployeeService

logger = logging.getLogger(__name__)

HIRE_MONTHS = 6
RECENT_ENROLLMENTS = 5
UNASSIGNED_CLIENT = "Unassigned"


def last_months(today: date, count: int = HIRE_MONTHS) -> list[tuple[int, int]]:
    """``(year, month)`` of the ``count`` months ending with the current one, oldest first."""
    months: list[tuple[int, int]] = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append((year, month))
        year, month = (year, month - 1) if month > 1 else (year - 1, 12)
    return months[::-1]


def month_label(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%b %Y")


class DashboardBuilder:
    def __init__(self, today: date) -> None:
        self.total = 0
        self.statuses: Counter[str] = Counter()
        self.clients: Counter[str] = Counter()
        self.months = last_months(today)
        self.hires: dict[tuple[int, int], int] = dict.fromkeys(self.months, 0)
        # Min-heap holding the newest enrollments seen so far.
        self._recent: list[tuple[tuple[str, str], EmployeeRecord]] = []

    def add(self, record: EmployeeRecord) -> None:
        self.total += 1
        self.statuses[record.status] += 1
        self.clients[record.client_name or UNASSIGNED_CLIENT] += 1

        if record.joining_date is not None:
            key = (record.joining_date.year, record.joining_date.month)
            if key in self.hires:
                self.hires[key] += 1

        if record.created_at:
            heapq.heappush(self._recent, ((record.created_at, record.id), record))
            if len(self._recent) > RECENT_ENROLLMENTS:
                heapq.heappop(self._recent)

    def build(self) -> DashboardStats:
        recent = [record for _, record in sorted(self._recent, key=lambda item: item[0], reverse=True)]
        return DashboardStats(
            total=self.total,
            active=self.statuses["Active"],
            on_leave=self.statuses["OnLeave"],
            inactive_or_exited=self.statuses["Inactive"] + self.statuses["Exited"],
            client_distribution=[ClientCount(name=name, value=value) for name, value in self.clients.most_common()],
            new_hires=[
                MonthlyHires(month=month_label(year, month), hires=self.hires[(year, month)])
                for year, month in self.months
            ],
            recent_enrollments=[
                RecentEnrollment(
                    id=record.id,
                    employee_id=record.employee_id,
                    full_name=record.full_name,
                    client_name=record.client_name,
                    text=f"{record.full_name} was enrolled.",
                    subtext=f"Assigned to {record.client_name or UNASSIGNED_CLIENT}",
                    created_at=record.created_at,
                )
                for record in recent
            ],
        )


async def dashboard_stats(store: EmployeeService, today: date | None = None) -> DashboardStats:
    builder = DashboardBuilder(today or date.today())
    async for record in store.iterate(EmployeeQuery()):
        builder.add(record)
    stats = builder.build()
    logger.debug("Dashboard computed over %d employees", stats.total)
    return stats
