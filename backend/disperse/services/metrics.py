from __future__ import annotations

import logging
import os

import psutil

from disperse.models.metrics import AIAnalysisMetrics, PerformanceMetrics, SystemMetrics, TokenUsage
from disperse.models.proposal import TransferProposal

logger = logging.getLogger(__name__)

# USD per 1k tokens
INPUT_COST_PER_1K = 0.00015
OUTPUT_COST_PER_1K = 0.0006


def estimate_cost(token_usage: TokenUsage) -> float:
    return (token_usage.prompt / 1000) * INPUT_COST_PER_1K + (token_usage.completion / 1000) * OUTPUT_COST_PER_1K


def get_memory_usage() -> float:
    """Resident set size of this process in MB."""
    try:
        return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    except psutil.Error:
        logger.warning("Could not read process memory usage")
        return 0.0


def generate_metrics(
    proposals: list[TransferProposal],
    elapsed_ms: float,
    token_usage: TokenUsage | None = None,
    error_count: int = 0,
    ai_model: str = "openai",
) -> PerformanceMetrics:
    usage = token_usage or TokenUsage()
    successful = len(proposals)
    attempts = successful + error_count
    success_rate = successful / attempts if attempts > 0 else 0.0

    return PerformanceMetrics(
        ai_analysis=AIAnalysisMetrics(
            response_time=elapsed_ms,
            token_usage=usage,
            cost=estimate_cost(usage),
            success_rate=success_rate,
            error_count=error_count,
        ),
        system_metrics=SystemMetrics(
            memory_usage=get_memory_usage(),
            data_size=successful,
        ),
        ai_model=ai_model,
    )
