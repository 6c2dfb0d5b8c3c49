from fastapi import APIRouter

from app.api.v1.endpoints import (
    auth,
    clients,
    dashboard,
    employees,
    enrollment,
    health,
    import_export,
    metadata,
    profile,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(clients.router)
api_router.include_router(metadata.router)
api_router.include_router(dashboard.router)
# Fixed /employees/... paths before /employees/{employee_id}.
api_router.include_router(enrollment.router)
api_router.include_router(import_export.router)
api_router.include_router(employees.router)
api_router.include_router(profile.router)
