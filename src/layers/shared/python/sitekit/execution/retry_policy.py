"""Retry policy with exponential backoff and jitter for store reads.

Read paths (host resolution, public lookups) retry transient store
failures. Binding mutations never go through this policy: a conflict there
is surfaced to the caller, since a retry could race a legitimate claim.

Usage:
    policy = RetryPolicy(RetryConfig(max_retries=2, base_delay=0.05))
    site = policy.call(lambda: repo.get_by_site_id(site_id))
"""

import random
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import structlog

from sitekit.utils.exceptions import StoreUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 2
    base_delay: float = 0.05  # Base delay in seconds
    max_delay: float = 1.0  # Maximum delay cap
    jitter_factor: float = 0.25  # Random jitter (0-1)
    exponential_base: float = 2.0

    retry_on: tuple[type[Exception], ...] = field(
        default_factory=lambda: (StoreUnavailableError,)
    )


class RetryPolicy:
    """Retries a callable on transient errors with exponential backoff."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Sleep function (injectable for tests).
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self.logger = logger.bind(service="retry_policy")

    def call(self, func: Callable[[], T], context: dict | None = None) -> T:
        """Call ``func``, retrying configured exceptions.

        Args:
            func: Zero-argument callable to execute.
            context: Optional context for logging.

        Returns:
            The callable's return value.

        Raises:
            The last exception once retries are exhausted, or any
            non-retryable exception immediately.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return func()
            except self.config.retry_on as e:
                if attempt > self.config.max_retries:
                    self.logger.warning(
                        "Operation failed after max retries",
                        error=str(e),
                        attempts=attempt,
                        **(context or {}),
                    )
                    raise

                delay = self.calculate_delay(attempt)
                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    attempt=attempt,
                    next_delay=delay,
                    **(context or {}),
                )
                self._sleep(delay)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the backoff delay before the next attempt.

        Args:
            attempt: Number of the attempt that just failed (1-based).

        Returns:
            Delay in seconds, capped at ``max_delay``.
        """
        delay = self.config.base_delay * (self.config.exponential_base ** (attempt - 1))
        delay = min(delay, self.config.max_delay)

        if self.config.jitter_factor > 0:
            jitter = delay * self.config.jitter_factor
            delay += random.uniform(-jitter, jitter)

        return max(0.0, delay)
