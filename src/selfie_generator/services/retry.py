"""Retry policy for calls to external providers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from selfie_generator.errors import (
    NotFoundError,
    SignatureError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries with a fixed backoff schedule.

    Only retryable ``UpstreamError`` instances are retried. Anything listed in
    ``non_retryable`` (and any other exception) propagates on the first failure.
    """

    max_attempts: int = 3
    backoff_seconds: tuple[float, ...] = (0.5, 1.0, 2.0)
    non_retryable: tuple[type[Exception], ...] = (
        SignatureError,
        ValidationError,
        NotFoundError,
        UnauthorizedError,
    )

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before the retry that follows ``attempt``."""
        if not self.backoff_seconds:
            return 0.0
        index = min(attempt - 1, len(self.backoff_seconds) - 1)
        return self.backoff_seconds[index]

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        if isinstance(exc, self.non_retryable):
            return False
        return isinstance(exc, UpstreamError) and exc.retryable

    async def call(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        """Call an async function, retrying transient upstream failures."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except Exception as exc:
                if not self.should_retry(exc, attempt):
                    raise
                delay = self.delay_for(attempt)
                _logger.warning(
                    "%s failed (attempt %s/%s), retrying in %.1fs: %s",
                    action,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
