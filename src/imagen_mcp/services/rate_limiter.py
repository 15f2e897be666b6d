"""Sliding-window rate limiter for Vertex AI calls."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Allow at most ``max_calls`` calls in any ``window_ms`` window.

    One instance is built per process and handed to the Imagen client, so
    every executor shares the same quota.
    """

    def __init__(self, max_calls: int = 60, window_ms: int = 60_000):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self.max_calls = max_calls
        self.window_ms = window_ms
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _cleanup(self, now: float) -> None:
        cutoff = now - self.window_ms / 1000
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def acquire(self) -> None:
        """Wait until a call slot is free, then record the call."""
        async with self._lock:
            now = time.monotonic()
            self._cleanup(now)
            if len(self._calls) >= self.max_calls:
                wait = self._calls[0] + self.window_ms / 1000 - now
                if wait > 0:
                    logger.debug(
                        "Rate limit reached (%d/%d calls), waiting %.0fms",
                        len(self._calls), self.max_calls, wait * 1000,
                    )
                    await asyncio.sleep(wait)
                now = time.monotonic()
                self._cleanup(now)
            self._calls.append(now)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once a slot is available."""
        await self.acquire()
        return await fn()

    def status(self) -> dict:
        self._cleanup(time.monotonic())
        return {
            "calls_in_window": len(self._calls),
            "max_calls": self.max_calls,
            "window_ms": self.window_ms,
        }

    def reset(self) -> None:
        self._calls.clear()
