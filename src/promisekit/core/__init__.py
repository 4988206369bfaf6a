"""promisekit core -- futures, errors, settings, logging and the promise cache.

Architecture::

    Layer 1 -- Foundations
        errors.py          Structured error hierarchy (PromiseKitError, ConfigurationError)
        deferred.py        Deferred (future + resolve/reject), continuation helpers
        settings.py        PromiseKitSettings (pydantic-settings, PROMISEKIT_ prefix)
        logging.py         structlog configuration + get_logger

    Layer 2 -- Caching
        eviction.py        EvictionPolicy + LRU / MRU / LFU / adapter
        cache.py           PromiseCache (capacity, expiry, fail interception)
"""

from promisekit.core.cache import CacheEntry, PromiseCache
from promisekit.core.deferred import (
    Deferred,
    as_exception,
    as_future,
    call_flexible,
    deferred,
    is_promise,
    on_settled,
)
from promisekit.core.errors import (
    ActionFailure,
    ActionNotCallableError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    InvalidEvictionError,
    MissingEvictionError,
    NotAPromiseError,
    PromiseKitError,
    SupersededError,
    TimeoutExpired,
    UnknownStepError,
    categorize_error,
)
from promisekit.core.eviction import (
    EvictionAdapter,
    EvictionPolicy,
    LFUPolicy,
    LRUPolicy,
    MRUPolicy,
    resolve_policy,
)
from promisekit.core.logging import configure_logging, get_logger
from promisekit.core.settings import PromiseKitSettings, get_settings

__all__ = [
    # cache
    "CacheEntry",
    "PromiseCache",
    # deferred
    "Deferred",
    "deferred",
    "as_exception",
    "as_future",
    "call_flexible",
    "is_promise",
    "on_settled",
    # errors
    "ActionFailure",
    "ActionNotCallableError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidEvictionError",
    "MissingEvictionError",
    "NotAPromiseError",
    "PromiseKitError",
    "SupersededError",
    "TimeoutExpired",
    "UnknownStepError",
    "categorize_error",
    # eviction
    "EvictionAdapter",
    "EvictionPolicy",
    "LFUPolicy",
    "LRUPolicy",
    "MRUPolicy",
    "resolve_policy",
    # logging / settings
    "configure_logging",
    "get_logger",
    "PromiseKitSettings",
    "get_settings",
]
