"""Middleware: service API key authentication.

Callers present the key either as ``Authorization: Bearer <key>`` or in the
``x-api-key`` header, the same header the classifier services expect.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from classifyx.config import Settings

_bearer_scheme = HTTPBearer(auto_error=False)
_api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _matches(candidate: str | None, expected: str) -> bool:
    return candidate is not None and secrets.compare_digest(candidate.encode(), expected.encode())


async def verify_api_key(
    request: Request,
    bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    header_key: Annotated[str | None, Depends(_api_key_header)],
) -> None:
    """Reject the request unless it carries the configured key.

    If no API key is configured (CLASSIFYX_API_KEY not set), all requests pass.
    """
    expected = _get_settings_from_request(request).api_key
    if expected is None:
        return

    if _matches(bearer.credentials if bearer else None, expected) or _matches(header_key, expected):
        return
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
