from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.v1.errors import to_http_error
from app.core.dependencies import get_employee_store, require_admin
from app.models.auth import UserInfo
from app.models.dashboard import DashboardStats
from app.services.dashboard import dashboard_stats
from app.services.employee_service import EmployeeService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardStats)
async def get_dashboard(
    user: UserInfo = Depends(require_admin),  # noqa: B008
    store: EmployeeService = Depends(get_employee_store),  # noqa: B008
):
    try:
        return await dashboard_stats(store)
    except Exception as err:
        raise to_http_error(err, "fetch dashboard data") from err
