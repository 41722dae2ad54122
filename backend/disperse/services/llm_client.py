from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Protocol, TypeVar

from openai import AsyncAzureOpenAI, AsyncOpenAI
from tenacity import AsyncRetrying, RetryError, before_sleep_log, stop_after_attempt, wait_fixed

from disperse.core.config import Settings
from disperse.models.metrics import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_TIMEOUT = 30.0

T = TypeVar("T")

_run_usage: ContextVar[TokenUsage | None] = ContextVar("run_usage", default=None)


@contextmanager
def track_usage() -> Iterator[TokenUsage]:
    """Collect the tokens spent by model calls made inside this context.

    Tasks spawned inside the block inherit the same counter, so concurrent
    runs each see only their own usage.
    """
    usage = TokenUsage()
    token = _run_usage.set(usage)
    try:
        yield usage
    finally:
        _run_usage.reset(token)


class LLMProviderError(Exception):
    pass


class ModelCallTimeout(Exception):
    pass


class ModelCallExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Model call failed after {attempts} attempts: {last_error}")


class CompletionProvider(Protocol):
    model: str

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


class ChatModelProvider:
    """OpenAI chat completions, Azure-hosted when an endpoint is configured."""

    def __init__(self) -> None:
        self.client: AsyncOpenAI | AsyncAzureOpenAI | None = None
        self.initialized = False
        self.model = ""
        self.usage = TokenUsage()

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if not settings.OPENAI_API_KEY:
            logger.warning("OpenAI credentials missing, ChatModelProvider not initialized")
            return

        if settings.OPENAI_ENDPOINT:
            self.client = AsyncAzureOpenAI(
                azure_endpoint=settings.OPENAI_ENDPOINT,
                api_key=settings.OPENAI_API_KEY,
                api_version=settings.OPENAI_API_VERSION,
            )
        else:
            self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.model = settings.OPENAI_CHAT_MODEL
        self.initialized = True

    async def close(self) -> None:
        if self.client:
            await self.client.close()
        self.client = None
        self.initialized = False

    async def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, TokenUsage | None]:
        """One non-streaming completion over a full message list."""
        if not self.initialized or not self.client:
            raise LLMProviderError("ChatModelProvider not initialized")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            temperature=temperature,
            max_tokens=max_tokens,
        )

        usage: TokenUsage | None = None
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage()
            usage.add(response.usage.prompt_tokens or 0, response.usage.completion_tokens or 0)
            self.usage.add(usage.prompt, usage.completion)
            run_usage = _run_usage.get()
            if run_usage is not None:
                run_usage.add(usage.prompt, usage.completion)

        if not response.choices:
            return "", usage
        return response.choices[0].message.content or "", usage

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        content, _ = await self.chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens,
            temperature,
        )
        return content


class ModelCaller:
    """Calls the provider with a per-attempt timeout and fixed-delay retries.

    Every failure is retried the same way; the provider's errors are opaque.
    When ``parser`` is given it runs inside the attempt, so output that cannot
    be parsed is retried like any other failure.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self.provider = provider
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    @property
    def model(self) -> str:
        return getattr(self.provider, "model", "") or "unknown"

    async def _attempt(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        timeout: float,
    ) -> str:
        try:
            content = await asyncio.wait_for(
                self.provider.complete(system_prompt, user_prompt, max_tokens, temperature),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelCallTimeout(f"Model call timed out after {timeout}s") from e

        if not content or not content.strip():
            raise LLMProviderError("Empty response from model")
        return content

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        timeout: float = DEFAULT_TIMEOUT,
        parser: Callable[[str], T] | None = None,
    ) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.debug("Model call attempt %d/%d", number, self.max_attempts)
                    content = await self._attempt(system_prompt, user_prompt, max_tokens, temperature, timeout)
                    return parser(content) if parser else content
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error("Model call exhausted %d attempts: %s", self.max_attempts, last_error)
            raise ModelCallExhausted(self.max_attempts, last_error) from last_error
        raise ModelCallExhausted(self.max_attempts, None)
