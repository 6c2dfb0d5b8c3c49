"""Authentication models: Azure AD users and the per-request session state."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class UserInfo(BaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    roles: list[str] = []


class SessionPhase(str, Enum):
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionState(BaseModel):
    """Who is calling: an authenticated user or an anonymous visitor."""

    phase: SessionPhase
    user: UserInfo | None = None
    admin_role: str = "admin"

    @classmethod
    def anonymous(cls) -> SessionState:
        return cls(phase=SessionPhase.ANONYMOUS)

    @classmethod
    def authenticated(cls, user: UserInfo, admin_role: str = "admin") -> SessionState:
        return cls(phase=SessionPhase.AUTHENTICATED, user=user, admin_role=admin_role)

    @property
    def is_authenticated(self) -> bool:
        return self.phase is SessionPhase.AUTHENTICATED and self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.admin_role in self.user.roles


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
