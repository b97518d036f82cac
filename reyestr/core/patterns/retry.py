"""Exponential backoff retry for transient storage failures."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from reyestr.core.exceptions import TransientStoreError

T = TypeVar("T")

RetryHook = Callable[[int, Exception, float], None]


class RetryState(Enum):
    """Lifecycle of one retried call."""

    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RetryConfig:
    """Retry policy."""

    max_attempts: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 8.0  # seconds
    jitter: bool = True
    exponential_base: float = 2.0
    retry_on_exceptions: list[type] = field(default_factory=lambda: [TransientStoreError])

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")


class ExponentialBackoffRetry:
    """Runs an awaitable factory until it succeeds or the attempts run out."""

    def __init__(self, config: RetryConfig, on_retry: RetryHook | None = None):
        self.config = config
        self.on_retry = on_retry
        self.attempt_count = 0
        self.state = RetryState.READY

    async def execute(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` applying the retry policy.

        Args:
            func: Coroutine function to call
            *args: Positional arguments for ``func``
            **kwargs: Keyword arguments for ``func``

        Returns:
            Result of the first successful call

        Raises:
            Exception: The last exception once retries are exhausted, or the
                first exception that is not retryable
        """
        self.state = RetryState.RUNNING
        self.attempt_count = 0

        while True:
            try:
                self.attempt_count += 1
                result = await func(*args, **kwargs)
                self.state = RetryState.COMPLETED
                return result
            except Exception as e:
                should_retry = any(isinstance(e, exc_type) for exc_type in self.config.retry_on_exceptions)
                if not should_retry or self.attempt_count >= self.config.max_attempts:
                    self.state = RetryState.FAILED
                    raise

                delay = self._calculate_delay(self.attempt_count - 1)
                if self.on_retry is not None:
                    self.on_retry(self.attempt_count, e, delay)
                await asyncio.sleep(delay)

    def _calculate_delay(self, attempt_number: int) -> float:
        """Delay before the next attempt; ``attempt_number`` starts at 0."""
        if attempt_number < 0:
            return 0.0

        delay = self.config.base_delay * (self.config.exponential_base**attempt_number)

        if self.config.jitter:
            jitter_range = min(delay * 0.1, 1.0)
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, min(delay, self.config.max_delay))
