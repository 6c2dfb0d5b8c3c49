"""Admin email/password sign-in against Azure AD."""

from __future__ import annotations

import logging

import aiohttp

from app.core.config import Settings
from app.models.auth import TokenResponse

logger = logging.getLogger(__name__)


class SignInError(Exception):
    pass


class InvalidCredentialsError(SignInError):
    pass


class AuthService:
    def __init__(self) -> None:
        self.initialized = False
        self.token_url = ""
        self.client_id = ""

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if not settings.AZURE_AD_TENANT_ID or not settings.AZURE_AD_CLIENT_ID:
            logger.warning("Azure AD configuration missing — AuthService not initialized")
            return

        self.token_url = f"https://login.microsoftonline.com/{settings.AZURE_AD_TENANT_ID}/oauth2/v2.0/token"
        self.client_id = settings.AZURE_AD_CLIENT_ID
        self.initialized = True

    async def close(self) -> None:
        self.initialized = False
        self.token_url = ""
        self.client_id = ""

    async def sign_in(self, email: str, password: str) -> TokenResponse:
        if not self.initialized:
            raise SignInError("Sign-in is not configured")

        form = {
            "grant_type": "password",
            "client_id": self.client_id,
            "scope": f"api://{self.client_id}/.default openid profile",
            "username": email,
            "password": password,
        }

        timeout = aiohttp.ClientTimeout(total=30)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self.token_url, data=form) as response:
                data = await response.json(content_type=None)
                if response.status == 200:
                    logger.info("Admin %s signed in", email)
                    return TokenResponse(
                        access_token=data["access_token"],
                        token_type=data.get("token_type", "bearer").lower(),
                        expires_in=data.get("expires_in"),
                    )

                error = data.get("error") if isinstance(data, dict) else None
                if error == "invalid_grant":
                    logger.warning("Failed sign-in for %s", email)
                    raise InvalidCredentialsError("Invalid email or password")
                description = data.get("error_description", "") if isinstance(data, dict) else ""
                raise SignInError(f"Sign-in failed: {response.status} - {error or description}")


auth_service = AuthService()
