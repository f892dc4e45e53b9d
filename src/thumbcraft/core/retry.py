"""Rate-limit retry policy for upstream provider calls.

Every provider call made by the orchestrator goes through one
:class:`RetryPolicy`.  Only failures that :func:`is_rate_limited` recognises
are retried; anything else is re-raised on the first attempt so the
orchestrator can move straight to the next fallback provider.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import openai
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429


def is_rate_limited(exc: BaseException) -> bool:
    """Return True when an exception signals HTTP 429 Too Many Requests.

    Recognises ``openai.RateLimitError``, errors exposing ``status_code``
    (OpenAI SDK, httpx) and errors exposing an integer ``code``
    (``google.genai.errors.APIError``).
    """
    if isinstance(exc, openai.RateLimitError):
        return True
    for attr in ("status_code", "code"):
        if getattr(exc, attr, None) == RATE_LIMIT_STATUS:
            return True
    return False


class RetryPolicy:
    """Bounded fixed-delay retry applied uniformly to provider calls.

    Attributes:
        max_attempts: Total attempts including the first call.
        backoff_seconds: Fixed wait between attempts.
        is_retryable: Predicate deciding whether a failure is retried.
    """

    def __init__(
        self,
        max_attempts: int = 2,
        backoff_seconds: float = 2.0,
        is_retryable: Callable[[BaseException], bool] = is_rate_limited,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.is_retryable = is_retryable
        self._sleep = sleep

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` under the policy.

        Args:
            fn: Zero-argument coroutine function performing one provider call.

        Returns:
            Whatever ``fn`` returns on its first successful attempt.

        Raises:
            Exception: The non-retryable error, or the last retryable error
                once attempts are exhausted.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn)
