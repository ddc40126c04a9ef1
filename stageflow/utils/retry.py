"""Backoff settings for retrying actions."""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Tuple, Type

from ..config import get_config


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first)
        base_delay: Delay in seconds before the first retry
        max_delay: Ceiling for any single delay
        exponential_base: Growth factor between consecutive delays
        jitter: Whether to add random jitter to delays
        retriable_exceptions: Exception types that trigger a retry
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retriable_exceptions: Tuple[Type[Exception], ...] = field(default_factory=lambda: (Exception,))

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")

    @classmethod
    def from_engine_config(cls) -> "RetryConfig":
        """Build from the ``STAGEFLOW_RETRY_*`` settings."""
        config = get_config()
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )

    def calculate_backoff_delay(self, attempt: int) -> float:
        """Delay before ``attempt`` (0-based; the first attempt never waits)."""
        return calculate_delay(
            attempt, self.base_delay, self.max_delay, self.exponential_base, self.jitter
        )

    def is_retriable(self, exception: BaseException) -> bool:
        return isinstance(exception, self.retriable_exceptions)


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        attempts: Number of attempts made
        last_exception: The final exception that caused the retry to fail
        total_delay: Total time spent in delays
    """

    def __init__(self, attempts: int, last_exception: Exception, total_delay: float) -> None:
        self.attempts = attempts
        self.last_exception = last_exception
        self.total_delay = total_delay
        super().__init__(
            f"Retry exhausted after {attempts} attempts over {total_delay:.2f}s. "
            f"Last error: {last_exception}"
        )


def calculate_delay(
    attempt: int, base_delay: float, max_delay: float, exponential_base: float, jitter: bool = True
) -> float:
    """Calculate delay for a given retry attempt with exponential backoff and jitter.

    Args:
        attempt: Current attempt number (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential calculation
        jitter: Whether to add random jitter

    Returns:
        Calculated delay in seconds, always between 0 and max_delay
    """
    if attempt == 0:
        return 0.0

    backoff = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)

    if jitter:
        # ±25%
        spread = backoff * 0.25
        backoff += random.uniform(-spread, spread)

    return max(0.0, min(backoff, max_delay))
