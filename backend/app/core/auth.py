"""Azure AD access tokens: JWKS caching, signature and claim validation, user extraction."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any

from jose import jwk, jwt
from jose.constants import Algorithms
from jose.exceptions import ExpiredSignatureError, JWSSignatureError, JWTClaimsError, JWTError

from app.models.auth import UserInfo

logger = logging.getLogger(__name__)

_JWKS_TTL_SECONDS = 24 * 60 * 60

# tenant id -> (fetched at, jwks)
_jwks_cache: dict[str, tuple[float, dict[str, Any]]] = {}


class TokenError(Exception):
    """Token rejected. ``status_code`` is 401 for bad tokens, 503/500 for server-side problems."""

    def __init__(self, detail: str, status_code: int = 401) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


def clear_jwks_cache() -> None:
    _jwks_cache.clear()


def get_jwks(tenant_id: str) -> dict[str, Any]:
    now = time.time()
    cached = _jwks_cache.get(tenant_id)
    if cached and now - cached[0] < _JWKS_TTL_SECONDS:
        return cached[1]

    jwks_uri = f"https://login.microsoftonline.com/{tenant_id}/discovery/v2.0/keys"
    logger.info("Fetching JWKS from %s", jwks_uri)

    try:
        req = urllib.request.Request(jwks_uri)  # noqa: S310
        with urllib.request.urlopen(req, timeout=15) as resp:  # noqa: S310
            jwks = json.loads(resp.read().decode())
    except (urllib.error.URLError, urllib.error.HTTPError) as e:
        logger.error("Failed to fetch JWKS: %s", e)
        if cached:
            logger.warning("Using expired JWKS from cache for tenant %s", tenant_id)
            return cached[1]
        raise TokenError(f"Could not fetch JWKS: {e}", status_code=503) from e

    _jwks_cache[tenant_id] = (now, jwks)
    return jwks


def get_signing_key(token: str, tenant_id: str) -> dict[str, str]:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise TokenError(f"Invalid token header: {e}") from e

    kid = header.get("kid")
    if not kid:
        raise TokenError("Token has no 'kid' in header")

    for key in get_jwks(tenant_id).get("keys", []):
        if key.get("kid") == kid:
            return key
    raise TokenError(f"No matching signing key for kid: {kid}")


def validate_token(token: str, tenant_id: str, client_id: str) -> dict[str, Any]:
    """Claims of a valid v1 or v2 Azure AD token issued for ``client_id``."""
    if not tenant_id or not client_id:
        raise TokenError("Missing Azure AD configuration", status_code=500)

    signing_key = get_signing_key(token, tenant_id)
    algorithm = signing_key.get("alg", Algorithms.RS256)
    public_key = jwk.construct(signing_key, algorithm=algorithm)

    expected_issuers = [
        f"https://login.microsoftonline.com/{tenant_id}/v2.0",
        f"https://sts.windows.net/{tenant_id}/",
    ]
    expected_audiences = [client_id, f"api://{client_id}"]
    options = {
        "verify_signature": True,
        "verify_aud": True,
        "verify_iss": True,
        "verify_exp": True,
        "require_exp": True,
        "require_iss": True,
        "require_aud": True,
    }

    last_error: Exception | None = None
    for issuer in expected_issuers:
        for audience in expected_audiences:
            try:
                return jwt.decode(
                    token,
                    public_key,
                    algorithms=[algorithm],
                    audience=audience,
                    issuer=issuer,
                    options=options,
                )
            except ExpiredSignatureError as e:
                raise TokenError("Token is expired") from e
            except JWSSignatureError as e:
                raise TokenError("Invalid token signature") from e
            except (JWTClaimsError, JWTError) as e:
                last_error = e

    message = str(last_error).lower()
    if isinstance(last_error, JWTClaimsError) and "audience" in message:
        raise TokenError(f"Invalid token audience. Expected one of: {expected_audiences}")
    if isinstance(last_error, JWTClaimsError) and "issuer" in message:
        raise TokenError(f"Invalid token issuer. Expected one of: {expected_issuers}")
    raise TokenError("Invalid authentication credentials")


def user_from_claims(claims: dict[str, Any]) -> UserInfo:
    roles = claims.get("roles", [])
    if not isinstance(roles, list):
        roles = []
    return UserInfo(
        id=claims.get("oid"),
        name=claims.get("name"),
        email=claims.get("preferred_username") or claims.get("upn"),
        roles=[str(r) for r in roles if isinstance(r, str | int)],
    )
