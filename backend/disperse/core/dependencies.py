"""Request guards: session cookie or HTTP Basic credentials."""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from typing import Any

from fastapi import Cookie, Header, HTTPException, status

from disperse.core.config import settings
from disperse.models.auth import UserInfo

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth-token"
AUTH_COOKIE_VALUE = "authenticated"
BASIC_REALM = 'Basic realm="Disperse"'


def check_credentials(username: str, password: str) -> bool:
    if not settings.BASIC_AUTH_PASSWORD:
        return False
    user_ok = secrets.compare_digest(username, settings.BASIC_AUTH_USERNAME)
    password_ok = secrets.compare_digest(password, settings.BASIC_AUTH_PASSWORD)
    return user_ok and password_ok


def parse_basic_auth(authorization: str) -> tuple[str, str] | None:
    if not authorization.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(authorization[6:], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


async def get_current_user(
    authorization: str | None = Header(None),
    auth_token: str | None = Cookie(None, alias=AUTH_COOKIE_NAME),
) -> UserInfo:
    if auth_token == AUTH_COOKIE_VALUE:
        return UserInfo(name="session", method="cookie")

    credentials = parse_basic_auth(authorization) if authorization else None
    if credentials and check_credentials(*credentials):
        return UserInfo(name=credentials[0], method="basic")

    if credentials:
        logger.warning("Rejected basic credentials for user=%s", credentials[0])
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": BASIC_REALM},
    )


def require_model_available(service: Any) -> None:
    """Reject model-backed requests while no chat model is configured."""
    if not getattr(service, "initialized", False):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI analysis is not configured",
        )
