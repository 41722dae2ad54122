from __future__ import annotations

from fastapi import APIRouter, Depends

from disperse.core.config import settings
from disperse.core.dependencies import get_current_user
from disperse.models.auth import UserInfo
from disperse.services.record_store import record_store
from disperse.services.transfer_analyzer import transfer_analyzer

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    services: dict[str, str] = {
        "chat_model": "ok" if transfer_analyzer.initialized else "not_configured",
        "record_store": "ok" if record_store.get_employees() else "empty",
    }

    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "services": services,
    }


@router.get("/protected")
async def health_protected(user: UserInfo = Depends(get_current_user)):
    return {"status": "ok", "user": user.model_dump()}


@router.get("/ready")
async def readiness_probe():
    return {"ready": True}
