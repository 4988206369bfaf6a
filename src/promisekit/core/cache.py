"""
Promise cache with pluggable eviction, expiry and failure interception.

Stores futures (not values) under keys, so concurrent readers of the same
key share one in-flight operation.

Manifesto:
    Caching a promise instead of its value removes duplicate requests, but a
    naive cache keeps failed promises forever and grows without bound.

    - **Failures leave the cache:** A rejected promise is removed unless a
      ``fail`` hook takes over
    - **Transparent recovery:** With a ``fail`` hook, readers get an
      interceptor future the hook can resolve (retry, fallback value...)
    - **Bounded:** ``capacity`` + an eviction policy (LRU/MRU/LFU/custom)
    - **Expiry:** Per-entry or default ``expire_time`` in seconds

Architecture:
    ::

        PromiseCache
        ├── _entries: key → CacheEntry(promise, source, discarded, rank, timer)
        ├── policy:   EvictionPolicy (bind/on_insert/on_access/on_remove/evict)
        │
        │  set(key, promise)
        │     ├── new key and len == capacity → evict(evict_rate)
        │     ├── fail hook?  store interceptor, else store promise
        │     ├── expire_time? loop.call_later(expire_time, expire)
        │     └── policy.on_insert
        │
        │  get(key)    → policy.on_access, stored promise
        │  remove(key) → cancel timer, policy.on_remove, discarded(key, promise)

Examples:
    >>> cache = PromiseCache(eviction="lru", capacity=100, expire_time=30)
    >>> cache.set("user:1", fetch_user(1))
    >>> user = await cache.get("user:1")

Guardrails:
    ❌ DON'T: Expect ``remove`` to cancel the underlying work
    ✅ DO: Cancel it from the ``discarded`` hook if needed

Tags:
    cache, promise, eviction, lru, mru, lfu, expiry, promisekit
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from promisekit.core.deferred import Deferred, as_future, on_settled
from promisekit.core.errors import MissingEvictionError, categorize_error
from promisekit.core.eviction import EvictionPolicy, resolve_policy
from promisekit.core.logging import get_logger
from promisekit.core.settings import get_settings

logger = get_logger(__name__)

DiscardedHook = Callable[[Hashable, asyncio.Future], Any]
FailHook = Callable[[Deferred, Hashable, asyncio.Future], Any]


def _noop_discarded(key: Hashable, promise: asyncio.Future) -> None:
    pass


@dataclass(eq=False)
class CacheEntry:
    """One cached promise.

    Attributes:
        promise: Future handed to readers (the interceptor when a fail hook is set)
        source: Future originally given to ``set``
        discarded: Hook called with ``(key, promise)`` on removal
        rank: Eviction metadata maintained by the policy
        timer: Pending expiry timer, if any
    """

    promise: asyncio.Future
    source: asyncio.Future
    discarded: DiscardedHook = _noop_discarded
    rank: int = 0
    timer: asyncio.TimerHandle | None = None


class PromiseCache:
    """Key → promise store.

    Args:
        promises: Initial ``{key: promise}`` mapping, set with the defaults
        eviction: ``"lru"``, ``"mru"``, ``"lfu"``, an EvictionPolicy or any
            object with a subset of the policy hooks
        capacity: Maximum number of entries (requires a policy that evicts)
        evict_rate: Entries evicted per overflow (default 1)
        discarded: Default removal hook ``(key, promise)``
        expire_time: Default seconds before an entry is removed
        fail: Default failure hook ``(deferred, key, promise)``

    Raises:
        MissingEvictionError: ``capacity`` set without an evicting policy
        InvalidEvictionError: Unknown policy name
    """

    def __init__(
        self,
        promises: Mapping[Hashable, Any] | None = None,
        *,
        eviction: str | EvictionPolicy | Any | None = None,
        capacity: int | None = None,
        evict_rate: int | None = None,
        discarded: DiscardedHook | None = None,
        expire_time: float | None = None,
        fail: FailHook | None = None,
    ) -> None:
        settings = get_settings()
        self._entries: dict[Hashable, CacheEntry] = {}
        self.policy = resolve_policy(eviction if eviction is not None else settings.default_eviction)
        if capacity is not None and not self.policy.can_evict:
            raise MissingEvictionError(capacity)
        self.capacity = capacity
        self.evict_rate = evict_rate or settings.default_evict_rate
        self.discarded = discarded
        self.expire_time = expire_time
        self.fail = fail
        self.policy.bind(self)

        for key, promise in (promises or {}).items():
            self.set(key, promise)

    # ── Introspection ────────────────────────────────────────────────

    @property
    def length(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    @property
    def entries(self) -> Mapping[Hashable, CacheEntry]:
        """Read-only view of the entries, for eviction policies."""
        return MappingProxyType(self._entries)

    def promises(self) -> dict[Hashable, asyncio.Future]:
        """Independent copy of the key → promise bindings."""
        return {key: entry.promise for key, entry in self._entries.items()}

    # ── Mutation ─────────────────────────────────────────────────────

    def set(
        self,
        key: Hashable,
        promise: Any,
        *,
        discarded: DiscardedHook | None = None,
        expire_time: float | None = None,
        fail: FailHook | None = None,
        **options: Any,
    ) -> None:
        """Store ``promise`` under ``key``; keyword arguments override the defaults.

        Extra ``options`` are forwarded to the policy's ``on_insert``.

        Raises:
            NotAPromiseError: If ``promise`` is not awaitable
        """
        future = as_future(promise)

        if key not in self._entries and self.capacity is not None and len(self._entries) >= self.capacity:
            logger.debug("cache.overflow", key=key, length=len(self._entries), capacity=self.capacity)
            self.evict(self.evict_rate)

        fail = fail or self.fail
        if fail is not None:
            interceptor = Deferred(loop=future.get_loop())
            entry = CacheEntry(promise=interceptor.promise, source=future)
            on_settled(future, interceptor.resolve, lambda _error: self._intercept(fail, interceptor, key, future))
        else:
            entry = CacheEntry(promise=future, source=future)
            on_settled(future, None, lambda error: self._drop_failed(key, entry, error))

        entry.discarded = discarded or self.discarded or _noop_discarded
        replaced = self._entries.get(key)
        if replaced is not None and replaced.timer is not None:
            replaced.timer.cancel()
        self._entries[key] = entry

        expire_time = expire_time if expire_time is not None else self.expire_time
        if expire_time is not None:
            entry.timer = future.get_loop().call_later(expire_time, self._expire, key, entry)

        self.policy.on_insert(key, entry, options)

    def get(self, key: Hashable) -> asyncio.Future | None:
        """Stored promise for ``key`` (marks it accessed), or ``None``."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self.policy.on_access(key, entry)
        return entry.promise

    def remove(self, key: Hashable) -> asyncio.Future | None:
        """Remove ``key``, fire its discarded hook and return its promise."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        if entry.timer is not None:
            entry.timer.cancel()
        self.policy.on_remove(key, entry)
        entry.discarded(key, entry.promise)
        return entry.promise

    def evict(self, count: int) -> None:
        """Ask the policy to remove up to ``count`` entries."""
        self.policy.evict(count)

    # ── Continuations ────────────────────────────────────────────────

    def _intercept(self, fail: FailHook, interceptor: Deferred, key: Hashable, source: asyncio.Future) -> None:
        logger.debug("cache.fail_intercepted", key=key)
        try:
            fail(interceptor, key, source)
        except Exception as exc:
            interceptor.reject(exc)

    def _drop_failed(self, key: Hashable, entry: CacheEntry, error: BaseException) -> None:
        if self._entries.get(key) is entry:
            logger.debug("cache.failed_removed", key=key, category=categorize_error(error).value)
            self.remove(key)

    def _expire(self, key: Hashable, entry: CacheEntry) -> None:
        if self._entries.get(key) is entry:
            logger.debug("cache.expired", key=key)
            self.remove(key)

    def __repr__(self) -> str:
        return f"PromiseCache(length={len(self._entries)}, capacity={self.capacity}, policy={type(self.policy).__name__})"


__all__ = ["CacheEntry", "PromiseCache"]
