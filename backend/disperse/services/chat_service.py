from __future__ import annotations

import logging
import time

from openai import AuthenticationError, RateLimitError

from disperse.models.chat import ChatMessage, ChatResponse
from disperse.services.llm_client import ChatModelProvider
from disperse.services.transfer_analyzer import transfer_analyzer

logger = logging.getLogger(__name__)

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 1000

DEFAULT_SYSTEM_PROMPT = (
    "You are the AI assistant of Disperse, an employee transfer support system.\n\n"
    "Your responsibilities:\n"
    "1. Answer questions about employee transfers.\n"
    "2. Help analyze employee data.\n"
    "3. Give advice on running the organization.\n\n"
    "When answering:\n"
    "- Give concrete, practical advice.\n"
    "- Handle personal information with care.\n"
    "- When information is uncertain, say that it needs to be confirmed instead of guessing."
)

EMPTY_REPLY_MESSAGE = "An error occurred."
GENERIC_ERROR_MESSAGE = "An error occurred while communicating with the AI."
QUOTA_MESSAGE = "The OpenAI API quota has been reached. Please contact your administrator."
RATE_LIMIT_MESSAGE = "The API rate limit has been reached. Please wait a moment and try again."
INVALID_KEY_MESSAGE = "The API key is invalid. Please contact your administrator."


def friendly_error_message(error: Exception) -> str:
    text = str(error)
    if isinstance(error, AuthenticationError) or "invalid_api_key" in text:
        return INVALID_KEY_MESSAGE
    if "quota" in text:
        return QUOTA_MESSAGE
    if isinstance(error, RateLimitError) or "rate limit" in text.lower():
        return RATE_LIMIT_MESSAGE
    if text:
        return f"An error occurred: {text}"
    return GENERIC_ERROR_MESSAGE


class ChatService:
    def __init__(self, provider: ChatModelProvider) -> None:
        self.provider = provider

    @property
    def initialized(self) -> bool:
        return bool(self.provider.initialized)

    async def send_message(self, messages: list[ChatMessage], system_prompt: str | None = None) -> ChatResponse:
        """Answer a conversation; provider failures become a readable reply."""
        started = time.perf_counter()
        payload = [{"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT}]
        payload.extend({"role": m.role, "content": m.content} for m in messages)

        try:
            content, usage = await self.provider.chat(payload, CHAT_MAX_TOKENS, CHAT_TEMPERATURE)
        except Exception as e:
            logger.exception("Chat completion failed")
            return ChatResponse(
                message=friendly_error_message(e),
                processing_time=round((time.perf_counter() - started) * 1000, 1),
            )

        return ChatResponse(
            message=content or EMPTY_REPLY_MESSAGE,
            usage=usage,
            processing_time=round((time.perf_counter() - started) * 1000, 1),
        )


chat_service = ChatService(transfer_analyzer.provider)  # type: ignore[arg-type]
