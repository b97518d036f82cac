"""Resilience patterns."""

from reyestr.core.patterns.retry import ExponentialBackoffRetry, RetryConfig, RetryState

__all__ = ["ExponentialBackoffRetry", "RetryConfig", "RetryState"]
