"""
Async retry with capped exponential backoff.

Used to harden uploads when ``upload.max_attempts > 1``. The retrier only
decides *whether* and *when* to try again; callers observe each retry through
``on_retry`` (e.g. to refresh a sequence token before the next attempt).
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

RetryCallable = Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 5.0
    # Fraction of the computed delay added as random jitter
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")


class AsyncRetrier:
    """Run an async factory until it succeeds or attempts run out."""

    def __init__(
        self,
        config: RetryConfig,
        *,
        should_retry: Callable[[BaseException], bool] | None = None,
        on_retry: Callable[[int, BaseException, float], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config
        self._should_retry = should_retry or (lambda _exc: True)
        self._on_retry = on_retry

    @property
    def config(self) -> RetryConfig:
        return self._config

    def compute_delay(self, attempt: int) -> float:
        """Delay before attempt ``attempt + 1`` (attempts are 1-based)."""
        cfg = self._config
        delay = min(cfg.max_delay, cfg.base_delay * (2 ** (attempt - 1)))
        if cfg.jitter > 0 and delay > 0:
            delay += random.uniform(0, delay * cfg.jitter)
        return min(delay, cfg.max_delay) if cfg.max_delay > 0 else delay

    async def retry(self, factory: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await factory()
            except Exception as exc:
                if attempt >= self._config.max_attempts or not self._should_retry(exc):
                    raise
                delay = self.compute_delay(attempt)
                if self._on_retry is not None:
                    await self._on_retry(attempt, exc, delay)
                if delay > 0:
                    await asyncio.sleep(delay)

    async def __call__(self, factory: Callable[[], Awaitable[T]]) -> T:
        return await self.retry(factory)
