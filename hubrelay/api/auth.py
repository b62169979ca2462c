"""
Admin API key check.

Subscription endpoints are guarded by an ``X-API-KEY`` header. The hub
callback is never guarded: the hub cannot send custom headers.
"""

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from hubrelay.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "APIKey"},
    )


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Accept the request when API_KEYS is unset, or when the header matches one of them.

    Raises:
        HTTPException: 401 for a missing or unknown key.
    """
    keys = get_settings().admin_keys
    if not keys:
        return "dev-mode"

    if not api_key:
        raise _unauthorized("Missing API key. Provide X-API-KEY header.")

    if not any(secrets.compare_digest(api_key.encode(), key.encode()) for key in keys):
        raise _unauthorized("Invalid API key")

    return api_key
