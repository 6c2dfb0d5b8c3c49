from __future__ import annotations

from datetime import date

import pytest

from app.services.dashboard import dashboard_stats, last_months, month_label
from tests.fakes import FakeEmployeeStore, employee_doc

TODAY = date(2024, 8, 15)


@pytest.fixture
def store():
    store = FakeEmployeeStore()
    overrides = {
        2: {"status": "OnLeave"},
        3: {"status": "Inactive"},
        4: {"status": "Exited", "exitDate": "2024-07-31"},
        5: {"clientName": ""},
        6: {"clientName": "Wipro", "joiningDate": "2024-08-02"},
        7: {"joiningDate": "2023-01-01"},
    }
    for i in range(1, 8):
        doc = employee_doc(i, **overrides.get(i, {}))
        store.docs[doc["id"]] = doc
    return store


def test_last_months_crosses_year_boundary():
    assert last_months(date(2024, 2, 10)) == [
        (2023, 9),
        (2023, 10),
        (2023, 11),
        (2023, 12),
        (2024, 1),
        (2024, 2),
    ]


def test_month_label():
    assert month_label(2024, 6) == "Jun 2024"


@pytest.mark.anyio
async def test_status_counts(store):
    stats = await dashboard_stats(store, today=TODAY)

    assert stats.total == 7
    assert stats.active == 4
    assert stats.on_leave == 1
    assert stats.inactive_or_exited == 2


@pytest.mark.anyio
async def test_client_distribution_has_unassigned_bucket(store):
    stats = await dashboard_stats(store, today=TODAY)

    counts = {c.name: c.value for c in stats.client_distribution}
    assert counts == {"TCS": 5, "Wipro": 1, "Unassigned": 1}
    assert stats.client_distribution[0].name == "TCS"


@pytest.mark.anyio
async def test_new_hires_cover_last_six_months(store):
    stats = await dashboard_stats(store, today=TODAY)

    assert [(m.month, m.hires) for m in stats.new_hires] == [
        ("Mar 2024", 0),
        ("Apr 2024", 0),
        ("May 2024", 0),
        ("Jun 2024", 5),
        ("Jul 2024", 0),
        ("Aug 2024", 1),
    ]


@pytest.mark.anyio
async def test_recent_enrollments_are_newest_five(store):
    stats = await dashboard_stats(store, today=TODAY)

    assert [r.id for r in stats.recent_enrollments] == ["emp-007", "emp-006", "emp-005", "emp-004", "emp-003"]
    newest = stats.recent_enrollments[0]
    assert newest.text == "Guard7 Kumar was enrolled."
    assert newest.subtext == "Assigned to TCS"
    assert stats.recent_enrollments[2].subtext == "Assigned to Unassigned"


@pytest.mark.anyio
async def test_empty_directory():
    stats = await dashboard_stats(FakeEmployeeStore(), today=TODAY)

    assert stats.total == 0
    assert stats.client_distribution == []
    assert stats.recent_enrollments == []
    assert [m.hires for m in stats.new_hires] == [0] * 6
