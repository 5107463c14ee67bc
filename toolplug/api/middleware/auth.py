"""Authentication for admin endpoints"""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, status

from toolplug.config import admin_api_key


class APIKeyAuth:
    """
    Shared-secret authentication for /api/admin/*.

    The key comes from TOOLPLUG_ADMIN_API_KEY and is accepted either as an
    ``api-key`` header (what the scheduler sends) or as
    ``Authorization: Bearer {key}``.
    """

    def __init__(self, api_key: str | None = None):
        # Startup logs the unprotected-admin warning once; this runs per request
        self.api_key = api_key if api_key is not None else admin_api_key()

    @staticmethod
    def _bearer_token(authorization: str) -> str:
        try:
            scheme, token = authorization.split()
            if scheme.lower() != "bearer":
                raise ValueError("Invalid authentication scheme")
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authorization header format. Expected: Bearer {api_key}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e
        return token

    def verify(self, api_key_header: str | None, authorization: str | None) -> bool:
        # No key configured: development mode, allow
        if not self.api_key:
            return True

        if api_key_header:
            token = api_key_header.strip()
        elif authorization:
            token = self._bearer_token(authorization)
        else:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing API key",
                headers={"WWW-Authenticate": "Bearer"},
            )

        # Timing-safe comparison
        if not secrets.compare_digest(token.encode(), self.api_key.encode()):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid API key",
            )
        return True


def require_admin_auth(
    api_key: str | None = Header(None, alias="api-key"),
    authorization: str | None = Header(None),
) -> bool:
    """
    Dependency for endpoints that require admin authentication.

    The environment is read per request so a key set after import (tests,
    late .env loading) still applies.

    Usage:
        @router.post("/api/admin/generate")
        async def generate(_authenticated: bool = Depends(require_admin_auth)):
            ...
    """
    return APIKeyAuth().verify(api_key, authorization)
