from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status

from disperse.core.dependencies import AUTH_COOKIE_NAME, AUTH_COOKIE_VALUE, check_credentials
from disperse.models.auth import LoginRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(request: LoginRequest, response: Response):
    if not check_credentials(request.username, request.password):
        logger.warning("Failed login for user=%s", request.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    response.set_cookie(
        AUTH_COOKIE_NAME,
        AUTH_COOKIE_VALUE,
        path="/",
        httponly=True,
        samesite="strict",
    )
    return {"success": True}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    return {"success": True}
