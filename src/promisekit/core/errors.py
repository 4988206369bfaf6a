"""
Structured error types for promisekit.

Provides a small hierarchy of typed errors carrying a category, retry
semantics, structured context and an optional chained cause.

Manifesto:
    - **Typed Error Hierarchy:** Configuration mistakes, action failures and
      superseded work are different things and get different types
    - **Fail fast on configuration:** Configuration errors are raised
      synchronously, never delivered through a future
    - **Everything else is asynchronous:** Action failures, supersession and
      timeouts only ever reach the caller as future rejections

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      PromiseKitError                            │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ConfigurationError        ActionFailure     SupersededError    │
        │  (CONFIG)                  (ACTION)          (SUPERSEDED)       │
        │       │                                                         │
        │  NotAPromiseError          TimeoutExpired                       │
        │  ActionNotCallableError    (TIMEOUT)                            │
        │  MissingEvictionError                                           │
        │  InvalidEvictionError                                           │
        │  UnknownStepError                                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = SupersededError("newer action pushed")
    >>> error.category
    <ErrorCategory.SUPERSEDED: 'SUPERSEDED'>
    >>> error.with_context(component="last_action").to_dict()["context"]
    {'component': 'last_action'}

    Rejecting with a plain value wraps it:

    >>> failure = ActionFailure.from_reason("fail")
    >>> failure.reason
    'fail'

Tags:
    error-handling, exception-hierarchy, promisekit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification.

    Attributes:
        CONFIG: Invalid setup, raised synchronously
        ACTION: An action or promise rejected
        SUPERSEDED: Work intentionally dropped because newer work exists
        TIMEOUT: A deadline elapsed before the chain reached a point
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    CONFIG = "CONFIG"
    ACTION = "ACTION"
    SUPERSEDED = "SUPERSEDED"
    TIMEOUT = "TIMEOUT"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        component: Component that raised the error (``cache``, ``sequence``...)
        key: Cache key or step descriptor involved, if any
        attempt: Attempt number for retried actions
        metadata: Additional key-value pairs
    """

    component: str | None = None
    key: Any = None
    attempt: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["component", "key", "attempt"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PromiseKitError(Exception):
    """
    Base exception for all promisekit errors.

    Every instance carries a category, a retryable flag, an
    :class:`ErrorContext` and optionally the exception that caused it.
    Subclasses set ``default_category`` and ``default_retryable``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PromiseKitError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigurationError("bad capacity").with_context(
                component="cache", key="capacity"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (raised synchronously)
# =============================================================================


class ConfigurationError(PromiseKitError):
    """
    Invalid setup of a component or call.

    Never retryable - the caller must fix the configuration.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class NotAPromiseError(ConfigurationError):
    """A value that is not awaitable was given where a promise is required."""

    def __init__(self, value: Any, message: str | None = None):
        self.value = value
        super().__init__(message or f"{value!r} is not a promise")


class ActionNotCallableError(ConfigurationError):
    """An action that cannot be called was pushed."""

    def __init__(self, action: Any):
        self.action = action
        super().__init__(f"action {action!r} is not callable")


class MissingEvictionError(ConfigurationError):
    """A capacity was configured without an eviction policy able to evict."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"capacity {capacity} requires an eviction policy with an evict method")


class InvalidEvictionError(ConfigurationError):
    """An eviction policy name is not registered."""

    def __init__(self, name: str, known: list[str]):
        self.name = name
        super().__init__(f"unknown eviction policy {name!r}, expected one of {', '.join(known)}")


class UnknownStepError(ConfigurationError):
    """A sequence step descriptor matches none of the supported shapes."""

    def __init__(self, descriptor: Any):
        self.descriptor = descriptor
        super().__init__(f"step not recognized: {descriptor!r}")


# =============================================================================
# ASYNCHRONOUS OUTCOMES (delivered through rejection)
# =============================================================================


class ActionFailure(PromiseKitError):
    """
    An action or promise rejected with a value that is not an exception.

    Futures can only fail with exceptions, so ``Deferred.reject("fail")``
    wraps the value in an ActionFailure and keeps it on ``reason``.
    """

    default_category = ErrorCategory.ACTION
    default_retryable = True

    def __init__(self, message: str, *, reason: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.reason = reason

    @classmethod
    def from_reason(cls, reason: Any) -> ActionFailure:
        return cls(f"rejected with {reason!r}", reason=reason)


class SupersededError(PromiseKitError):
    """Work dropped because a newer push replaced it before it started."""

    default_category = ErrorCategory.SUPERSEDED
    default_retryable = False


class TimeoutExpired(PromiseKitError, TimeoutError):
    """
    Raised when a sequence does not reach a point before its deadline.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value that was exceeded, in seconds
        operation: Name/description of the operation
    """

    default_category = ErrorCategory.TIMEOUT
    default_retryable = True

    def __init__(self, timeout: float, operation: str = "operation"):
        self.timeout = timeout
        self.operation = operation
        super().__init__(f"Operation '{operation}' timed out after {timeout}s")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, PromiseKitError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (TypeError, ValueError)):
        return ErrorCategory.CONFIG
    if isinstance(error, Exception):
        return ErrorCategory.ACTION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PromiseKitError",
    "ConfigurationError",
    "NotAPromiseError",
    "ActionNotCallableError",
    "MissingEvictionError",
    "InvalidEvictionError",
    "UnknownStepError",
    "ActionFailure",
    "SupersededError",
    "TimeoutExpired",
    "categorize_error",
]
