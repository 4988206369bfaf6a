"""Ordered results: only react to the newest completed request.

Several requests for the same resource may be in flight at once (e.g. one
per keystroke of a search box) and complete in any order. The tracker
reports a completion only if no newer request has already completed, and
reports older, still-pending requests as discarded so callers can abort
them.

::

    push(A); push(B); push(C)
    B completes  → discarded(A), next(B, payload)
    A completes  → ignored (already discarded)
    C completes  → next(C, payload), last(C, payload)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from promisekit.core.deferred import as_future, on_settled
from promisekit.core.logging import get_logger

logger = get_logger(__name__)

SettleHandler = Callable[[asyncio.Future, Any], Any]


def _noop(*_args: Any) -> None:
    pass


@dataclass(eq=False)
class TrackedPromise:
    promise: asyncio.Future
    discarded: bool = False


class OrderedResultTracker:
    """Tracks the promises issued for one logical resource, in issue order.

    Args:
        promises: Initial promises to track. If some may already be done,
            pass the handlers here rather than registering them afterwards.
        on_next / on_next_fail: ``(promise, payload)`` when a promise settles
            and no newer one has settled before it
        on_last / on_last_fail: ``(promise, payload)`` when that promise was
            also the newest one tracked
        on_discarded: ``(promise)`` for older promises made obsolete
    """

    def __init__(
        self,
        promises: Iterable[Any] | None = None,
        *,
        on_next: SettleHandler | None = None,
        on_next_fail: SettleHandler | None = None,
        on_last: SettleHandler | None = None,
        on_last_fail: SettleHandler | None = None,
        on_discarded: Callable[[asyncio.Future], Any] | None = None,
    ) -> None:
        self._tracked: list[TrackedPromise] = []
        self.next(on_next, on_next_fail)
        self.last(on_last, on_last_fail)
        self.discarded(on_discarded)
        for promise in promises or ():
            self.push(promise)

    def push(self, promise: Any) -> OrderedResultTracker:
        """Track a new promise, newer than every promise tracked so far."""
        tracked = TrackedPromise(as_future(promise))
        self._tracked.append(tracked)
        on_settled(
            tracked.promise,
            lambda payload: self._settled(tracked, payload, True),
            lambda error: self._settled(tracked, error, False),
        )
        return self

    def promises(self) -> list[asyncio.Future]:
        """Copy of the promises neither settled nor discarded yet."""
        return [tracked.promise for tracked in self._tracked]

    def next(self, handler: SettleHandler | None = None, failure: SettleHandler | None = None) -> OrderedResultTracker:
        self._next = handler or _noop
        self._next_fail = failure or _noop
        return self

    def last(self, handler: SettleHandler | None = None, failure: SettleHandler | None = None) -> OrderedResultTracker:
        self._last = handler or _noop
        self._last_fail = failure or _noop
        return self

    def discarded(self, handler: Callable[[asyncio.Future], Any] | None = None) -> OrderedResultTracker:
        """Handler for promises that became obsolete; use it to abort them."""
        self._discarded = handler or _noop
        return self

    def _settled(self, tracked: TrackedPromise, payload: Any, ok: bool) -> None:
        if tracked.discarded:
            return
        while self._tracked:
            current = self._tracked.pop(0)
            if current is not tracked:
                current.discarded = True
                logger.debug("ordered.discarded", remaining=len(self._tracked))
                self._discarded(current.promise)
                continue
            (self._next if ok else self._next_fail)(tracked.promise, payload)
            if not self._tracked:
                (self._last if ok else self._last_fail)(tracked.promise, payload)
            return


__all__ = ["OrderedResultTracker", "TrackedPromise"]
