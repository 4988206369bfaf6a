"""Deferred futures and continuation helpers.

Every component in promisekit needs futures whose settlement is controlled
from the outside (a retry gate, a sequence step, a cache interceptor).
``Deferred`` pairs one ``asyncio.Future`` with ``resolve``/``reject``
capabilities and guarantees single settlement.

Example::

    dfr = deferred()
    dfr.resolve("ok")
    dfr.reject(RuntimeError("late"))   # no-op, returns False
    assert await dfr.promise == "ok"
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from promisekit.core.errors import ActionFailure, NotAPromiseError

T = TypeVar("T")


def is_promise(value: Any) -> bool:
    """True if ``value`` can be awaited (future, task, coroutine...)."""
    return inspect.isawaitable(value)


def as_future(value: Any, loop: asyncio.AbstractEventLoop | None = None) -> asyncio.Future:
    """Normalise an awaitable to a future.

    Futures are returned unchanged; coroutines are scheduled as tasks.

    Raises:
        NotAPromiseError: If ``value`` is not awaitable
    """
    if not is_promise(value):
        raise NotAPromiseError(value)
    return asyncio.ensure_future(value, loop=loop)


def as_exception(reason: Any) -> BaseException:
    """Rejection reasons must be exceptions; wrap anything else."""
    if isinstance(reason, BaseException):
        return reason
    return ActionFailure.from_reason(reason)


def on_settled(
    future: asyncio.Future,
    on_success: Callable[[Any], Any] | None = None,
    on_failure: Callable[[BaseException], Any] | None = None,
) -> None:
    """Register success/failure continuations on ``future``.

    Continuations run from the event loop once the future is done, with the
    result or the exception as single argument. Cancellation is reported as
    a failure with ``asyncio.CancelledError``.
    """

    def _dispatch(done: asyncio.Future) -> None:
        if done.cancelled():
            if on_failure is not None:
                on_failure(asyncio.CancelledError())
            return
        error = done.exception()
        if error is not None:
            if on_failure is not None:
                on_failure(error)
        elif on_success is not None:
            on_success(done.result())

    future.add_done_callback(_dispatch)


def call_flexible(func: Callable[..., T], *args: Any) -> T:
    """Call ``func`` with as many leading positional ``args`` as it accepts.

    Actions may be written as ``lambda: ...`` or ``lambda previous: ...``;
    both are valid wherever a payload is offered.
    """
    try:
        parameters = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return func(*args)

    accepted = 0
    for param in parameters:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return func(*args)
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            accepted += 1
    return func(*args[:accepted])


class Deferred(Generic[T]):
    """A pending future with external resolve/reject capabilities.

    Only the first settlement is effective; later ``resolve``/``reject``
    calls are no-ops and return ``False``.

    Attributes:
        promise: The underlying ``asyncio.Future``
    """

    __slots__ = ("promise",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        self.promise: asyncio.Future[T] = loop.create_future()

    @property
    def settled(self) -> bool:
        return self.promise.done()

    def resolve(self, value: T | None = None) -> bool:
        if self.promise.done():
            return False
        self.promise.set_result(value)
        return True

    def reject(self, reason: Any = None, *, handled: bool = False) -> bool:
        """Fail the promise with ``reason`` (wrapped if not an exception).

        ``handled=True`` marks the exception as retrieved, for rejections the
        caller has already been told about another way; awaiting the promise
        still raises.
        """
        if self.promise.done():
            return False
        self.promise.set_exception(as_exception(reason))
        if handled:
            self.promise.exception()
        return True

    def adopt(self, awaitable: Awaitable[T]) -> None:
        """Settle this deferred with the outcome of ``awaitable``."""
        future = as_future(awaitable, loop=self.promise.get_loop())
        on_settled(future, self.resolve, self.reject)

    def __repr__(self) -> str:
        return f"Deferred({self.promise!r})"


def deferred(loop: asyncio.AbstractEventLoop | None = None) -> Deferred[Any]:
    """Create a pending :class:`Deferred` bound to ``loop`` (default: running loop)."""
    return Deferred(loop)


__all__ = [
    "Deferred",
    "deferred",
    "is_promise",
    "as_future",
    "as_exception",
    "on_settled",
    "call_flexible",
]
