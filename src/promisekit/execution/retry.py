"""Retry backoff strategies for :class:`~promisekit.execution.last_action.LastAction`.

The number of retries is always given by the push (or the LastAction
default); a strategy only decides how long to wait before each retry and
which errors are worth retrying.

Example:
    >>> from promisekit.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(base_delay=0.1, max_delay=2.0, jitter=False)
    >>> [strategy.next_delay(attempt) for attempt in range(4)]
    [0.1, 0.2, 0.4, 0.8]
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based attempt number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """Determine if the failed attempt is worth retrying.

        Args:
            attempt: Zero-based number of the retry about to happen
            error: The exception that caused the failure
        """
        return True


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) + jitter

    Attributes:
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retryable_errors: Set of exception types that are retryable (None = all)
    """

    base_delay: float = 0.1
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    retryable_errors: set[type] | None = None

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier ** attempt),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """Check the error type against ``retryable_errors``."""
        if error is not None and self.retryable_errors is not None:
            return isinstance(error, tuple(self.retryable_errors))
        return True


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries."""

    delay: float = 0.1

    def next_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class NoBackoff(RetryStrategy):
    """Retry immediately."""

    def next_delay(self, attempt: int) -> float:
        return 0.0


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "NoBackoff",
]
