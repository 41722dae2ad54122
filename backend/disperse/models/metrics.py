"""Performance metrics recorded for each analysis run."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0

    def add(self, prompt: int, completion: int) -> None:
        self.prompt += prompt
        self.completion += completion
        self.total += prompt + completion


class AIAnalysisMetrics(BaseModel):
    response_time: float = Field(..., description="Milliseconds")
    token_usage: TokenUsage
    cost: float = Field(..., description="USD")
    success_rate: float = Field(..., ge=0.0, le=1.0)
    error_count: int = Field(..., ge=0)


class SystemMetrics(BaseModel):
    memory_usage: float = Field(..., description="Resident set size in MB")
    data_size: int


class PerformanceMetrics(BaseModel):
    ai_analysis: AIAnalysisMetrics
    system_metrics: SystemMetrics
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ai_model: str = "openai"
