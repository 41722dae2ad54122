"""Free-form assistant chat."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from disperse.models.metrics import TokenUsage


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(..., max_length=8000)
    timestamp: datetime | None = None


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)
    system_prompt: str | None = Field(default=None, max_length=8000)


class ChatResponse(BaseModel):
    message: str
    usage: TokenUsage | None = None
    processing_time: float = Field(..., description="Milliseconds")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
