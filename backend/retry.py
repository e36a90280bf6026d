"""Bounded retry with exponential backoff for transient I/O failures."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised with the last error attached once every attempt has failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")


class RetryPolicy:
    """Configuration for retry logic with exponential backoff."""

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        exp_base: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exp_base = exp_base
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        return min(self.base_delay * (self.exp_base ** attempt), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_transient: Callable[[BaseException], bool],
        describe: str = "operation",
    ) -> T:
        """
        Run `operation`, retrying transient failures.

        Non-transient errors propagate immediately and unchanged. When the
        budget is exhausted, RetryExhausted carries the last error.
        """
        for attempt in range(self.attempts):
            try:
                return await operation()
            except Exception as exc:
                if not is_transient(exc):
                    raise
                if attempt + 1 >= self.attempts:
                    raise RetryExhausted(self.attempts, exc) from exc
                delay = self.delay_for(attempt)
                _LOG.warning(
                    "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    describe, attempt + 1, self.attempts, delay, exc,
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")
