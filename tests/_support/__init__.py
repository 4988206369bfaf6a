"""
Test support utilities for promisekit tests.

Helpers that don't fit as pytest fixtures but are shared across test files.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


async def flush(rounds: int = 20) -> None:
    """Let pending done-callbacks run.

    Every link of a promise chain costs at least one loop iteration, so a
    few rounds are enough for the short chains used in tests.
    """
    for _ in range(rounds):
        await asyncio.sleep(0)


class ControlledAction:
    """Action whose futures are settled by the test.

    Every call records the payload it received and returns a fresh pending
    future, kept in ``futures`` in call order.

    Usage:
        action = ControlledAction()
        serializer.push(action)
        action.futures[0].set_result("ok")
    """

    def __init__(self, name: str = "action") -> None:
        self.name = name
        self.calls: list[Any] = []
        self.futures: list[asyncio.Future] = []

    def __call__(self, previous: Any = None) -> asyncio.Future:
        self.calls.append(previous)
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return future

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def resolve(self, value: Any = None, index: int = -1) -> None:
        self.futures[index].set_result(value)

    def reject(self, error: BaseException, index: int = -1) -> None:
        self.futures[index].set_exception(error)


def resolved(value: Any = None) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def rejected(error: BaseException) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_exception(error)
    return future


@contextmanager
def loop_errors() -> Iterator[list[str]]:
    """Collect messages sent to the running loop's exception handler.

    Usage:
        with loop_errors() as reported:
            ...
            gc.collect()
        assert reported == []
    """
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    reported: list[str] = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context["message"]))
    try:
        yield reported
    finally:
        loop.set_exception_handler(previous)
