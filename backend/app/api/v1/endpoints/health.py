from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.dependencies import get_current_user
from app.models.auth import UserInfo
from app.services.blob_storage import blob_storage
from app.services.client_service import client_service
from app.services.document_verifier import document_verifier
from app.services.employee_service import employee_service

router = APIRouter(prefix="/health", tags=["health"])


async def _probe(service) -> str:
    if not service.initialized:
        return "not_configured"
    try:
        return "ok" if await service.check_connection() else "error"
    except Exception:
        return "error"


@router.get("")
async def health_check():
    services: dict[str, str] = {
        "cosmos_db": await _probe(employee_service),
        "cosmos_db_clients": await _probe(client_service),
        "blob_storage": await _probe(blob_storage),
        "azure_openai": "ok" if document_verifier.initialized else "not_configured",
    }
    if not document_verifier.enabled:
        services["azure_openai"] = "disabled"

    all_ok = all(v in ("ok", "not_configured", "disabled") for v in services.values())

    return {
        "status": "healthy" if all_ok else "degraded",
        "version": settings.APP_VERSION,
        "services": services,
    }


@router.get("/protected")
async def health_protected(user: UserInfo = Depends(get_current_user)):  # noqa: B008
    return {"status": "ok", "user": user.model_dump()}


@router.get("/ready")
async def readiness_probe():
    return {"ready": True}
