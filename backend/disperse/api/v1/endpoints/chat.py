from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from disperse.core.dependencies import get_current_user, require_model_available
from disperse.models.auth import UserInfo
from disperse.models.chat import ChatRequest, ChatResponse
from disperse.services.chat_service import chat_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(chat_service)
    logger.info(
        "Chat request from user=%s messages=%d last=%s",
        user.name,
        len(request.messages),
        request.messages[-1].content[:50],
    )
    return await chat_service.send_message(request.messages, request.system_prompt)
