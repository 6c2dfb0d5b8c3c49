from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException, status

from app.core.auth import TokenError, user_from_claims, validate_token
from app.core.config import settings
from app.models.auth import SessionState, UserInfo
from app.services.blob_storage import BlobStorageService, blob_storage
from app.services.client_service import ClientService, client_service
from app.services.document_upload import DocumentUploadPipeline
from app.services.document_verifier import DocumentVerifier, document_verifier
from app.services.employee_service import EmployeeService, employee_service

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1]


def _resolve_user(token: str) -> UserInfo:
    try:
        claims = validate_token(token, settings.AZURE_AD_TENANT_ID, settings.AZURE_AD_CLIENT_ID)
    except TokenError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None,
        ) from e
    except Exception as e:
        logger.error("Token validation error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    return user_from_claims(claims)


async def get_current_user(authorization: str | None = Header(None)) -> UserInfo:
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _resolve_user(token)


async def get_session(authorization: str | None = Header(None)) -> SessionState:
    """Session of the caller; anonymous when no or an invalid token is sent."""
    token = _bearer_token(authorization)
    if token is None:
        return SessionState.anonymous()
    try:
        user = _resolve_user(token)
    except HTTPException as e:
        logger.info("Treating request as anonymous: %s", e.detail)
        return SessionState.anonymous()
    return SessionState.authenticated(user, admin_role=settings.AZURE_AD_ADMIN_ROLE)


def require_role(*roles: str):
    async def _check_role(user: UserInfo = Depends(get_current_user)) -> UserInfo:
        if not any(r in user.roles for r in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {', '.join(roles)}",
            )
        return user

    return _check_role


async def require_admin(user: UserInfo = Depends(get_current_user)) -> UserInfo:
    if settings.AZURE_AD_ADMIN_ROLE not in user.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions. Required: {settings.AZURE_AD_ADMIN_ROLE}",
        )
    return user


def get_employee_store() -> EmployeeService:
    return employee_service


def get_client_registry() -> ClientService:
    return client_service


def get_blob_storage() -> BlobStorageService:
    return blob_storage


def get_document_verifier() -> DocumentVerifier:
    return document_verifier


def get_upload_pipeline(storage: BlobStorageService = Depends(get_blob_storage)) -> DocumentUploadPipeline:  # noqa: B008
    return DocumentUploadPipeline(storage, settings.MAX_UPLOAD_BYTES)
