"""Eviction policies for :class:`~promisekit.core.cache.PromiseCache`.

A policy is told about every insert, access and removal, and picks the
victims when the cache overflows. Hooks default to no-ops; ``evict`` is only
considered available when a subclass overrides it.

Architecture:
    ::

        EvictionPolicy (no-op hooks)
        ├── LRUPolicy   : rank = policy counter at last access, evict smallest
        ├── MRUPolicy   : rank = policy counter at last access, evict largest
        ├── LFUPolicy   : rank = number of accesses, evict smallest
        └── EvictionAdapter : wraps any object exposing a subset of the hooks

Victims are picked in one pass with ``heapq.nsmallest``/``heapq.nlargest``
(bounded heap, ties resolved by scan order), never with a full sort, since
eviction may run on every insert.
"""

from __future__ import annotations

import heapq
from typing import TYPE_CHECKING, Any

from promisekit.core.errors import InvalidEvictionError
from promisekit.core.logging import get_logger

if TYPE_CHECKING:
    from promisekit.core.cache import CacheEntry, PromiseCache

logger = get_logger(__name__)


class EvictionPolicy:
    """Base policy: every hook is a no-op."""

    cache: PromiseCache | None = None

    def bind(self, cache: PromiseCache) -> None:
        """Called once by the cache that owns this policy."""
        self.cache = cache

    def on_insert(self, key: Any, entry: CacheEntry, options: dict[str, Any]) -> None:
        pass

    def on_access(self, key: Any, entry: CacheEntry) -> None:
        pass

    def on_remove(self, key: Any, entry: CacheEntry) -> None:
        pass

    def evict(self, count: int) -> None:
        pass

    @property
    def can_evict(self) -> bool:
        return type(self).evict is not EvictionPolicy.evict


class _RankedPolicy(EvictionPolicy):
    """Shared victim selection over ``entry.rank``."""

    evict_largest = False

    def victims(self, count: int) -> list[Any]:
        entries = self.cache.entries.items()
        select = heapq.nlargest if self.evict_largest else heapq.nsmallest
        return [key for key, _ in select(count, entries, key=lambda item: item[1].rank)]

    def evict(self, count: int) -> None:
        victims = self.victims(count)
        logger.debug("eviction.selected", policy=type(self).__name__, keys=victims)
        for key in victims:
            self.cache.remove(key)


class LRUPolicy(_RankedPolicy):
    """Least recently used.

    Each access stamps the entry with a counter owned by this policy
    instance; inserts start at 0, so never-read entries go first.
    """

    def __init__(self) -> None:
        self.counter = 0

    def on_insert(self, key: Any, entry: CacheEntry, options: dict[str, Any]) -> None:
        entry.rank = 0

    def on_access(self, key: Any, entry: CacheEntry) -> None:
        self.counter += 1
        entry.rank = self.counter


class MRUPolicy(LRUPolicy):
    """Most recently used: same stamping as LRU, evicts the largest stamps."""

    evict_largest = True


class LFUPolicy(_RankedPolicy):
    """Least frequently used: rank counts accesses since insert."""

    def on_insert(self, key: Any, entry: CacheEntry, options: dict[str, Any]) -> None:
        entry.rank = 0

    def on_access(self, key: Any, entry: CacheEntry) -> None:
        entry.rank += 1


class EvictionAdapter(EvictionPolicy):
    """Expose an arbitrary object as an :class:`EvictionPolicy`.

    The wrapped object may implement any of ``bind``, ``on_insert``,
    ``on_access``, ``on_remove`` and ``evict``; missing hooks stay no-ops.
    """

    _HOOKS = ("bind", "on_insert", "on_access", "on_remove", "evict")

    def __init__(self, target: Any) -> None:
        self.target = target
        self._hooks = {name: getattr(target, name) for name in self._HOOKS if callable(getattr(target, name, None))}

    def bind(self, cache: PromiseCache) -> None:
        super().bind(cache)
        if "bind" in self._hooks:
            self._hooks["bind"](cache)

    def on_insert(self, key: Any, entry: CacheEntry, options: dict[str, Any]) -> None:
        if "on_insert" in self._hooks:
            self._hooks["on_insert"](key, entry, options)

    def on_access(self, key: Any, entry: CacheEntry) -> None:
        if "on_access" in self._hooks:
            self._hooks["on_access"](key, entry)

    def on_remove(self, key: Any, entry: CacheEntry) -> None:
        if "on_remove" in self._hooks:
            self._hooks["on_remove"](key, entry)

    def evict(self, count: int) -> None:
        if "evict" in self._hooks:
            self._hooks["evict"](count)

    @property
    def can_evict(self) -> bool:
        return "evict" in self._hooks


POLICIES: dict[str, type[EvictionPolicy]] = {
    "lru": LRUPolicy,
    "mru": MRUPolicy,
    "lfu": LFUPolicy,
}


def resolve_policy(eviction: str | EvictionPolicy | Any | None) -> EvictionPolicy:
    """Build the policy instance a cache will own.

    Names create a fresh instance so no two caches share counters.

    Raises:
        InvalidEvictionError: If a name is not registered
    """
    if eviction is None:
        return EvictionPolicy()
    if isinstance(eviction, str):
        try:
            return POLICIES[eviction.lower()]()
        except KeyError:
            raise InvalidEvictionError(eviction, sorted(POLICIES)) from None
    if isinstance(eviction, EvictionPolicy):
        return eviction
    return EvictionAdapter(eviction)


__all__ = [
    "EvictionPolicy",
    "LRUPolicy",
    "MRUPolicy",
    "LFUPolicy",
    "EvictionAdapter",
    "POLICIES",
    "resolve_policy",
]
