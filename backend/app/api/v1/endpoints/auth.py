from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import get_session
from app.models.auth import LoginRequest, SessionState, TokenResponse
from app.services.auth_service import InvalidCredentialsError, SignInError, auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest):
    try:
        return await auth_service.sign_in(body.email, body.password)
    except InvalidCredentialsError as err:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(err)) from err
    except SignInError as err:
        logger.error("Sign-in failed: %s", err)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(err)) from err
    except Exception as err:
        logger.exception("Sign-in failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign in",
        ) from err


@router.get("/session")
async def session_info(session: SessionState = Depends(get_session)):  # noqa: B008
    return {
        "phase": session.phase.value,
        "isAdmin": session.is_admin,
        "user": session.user.model_dump() if session.user else None,
    }
