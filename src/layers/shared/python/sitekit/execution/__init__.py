"""Execution helpers."""

from sitekit.execution.retry_policy import RetryConfig, RetryPolicy

__all__ = [
    "RetryConfig",
    "RetryPolicy",
]
