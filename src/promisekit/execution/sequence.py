"""Sequence: chain asynchronous and synchronous steps in push order.

WHY
───
Callers often need "do A, then B, then C, recover with D if anything before
failed" where each step is asynchronous and steps keep being appended while
earlier ones run. ``Sequence`` keeps a single tail future; every push wires
one new step after the current tail, so push order is execution order.

ARCHITECTURE
────────────
::

    tail ──► step 1 ──► step 2 ──► ... ──► tail

    push(action, fallback)       action(deferred, payload) on success,
                                 fallback(deferred, error) on failure,
                                 failure propagates without a fallback
    push_promise(promise)        waits for the chain, then for the promise
    push_synchronous(f, fb)      f(payload) / fb(error), return value resolves
    set_timeout(handler, secs)   handler(deferred) if the chain has not
                                 reached this point within secs
    when_empty(action, fallback) runs once nothing more is queued after it

Steps settle their ``deferred`` themselves or return an awaitable that is
piped into it; whichever happens first wins.

Example::

    seq = Sequence([
        lambda dfr: dfr.adopt(api.login()),
        {"action": load_profile, "fallback": show_login_error},
        {"synchronous": render},
    ])
    await seq.promise()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from promisekit.core.deferred import Deferred, as_future, call_flexible, is_promise, on_settled
from promisekit.core.errors import ConfigurationError, TimeoutExpired, UnknownStepError
from promisekit.core.logging import get_logger

logger = get_logger(__name__)

StepAction = Callable[..., Any]


class Sequence:
    """Strictly linear chain of steps.

    Args:
        steps: Initial list of step descriptors, see :meth:`push_object`

    Raises:
        ConfigurationError: If ``steps`` is not a list or tuple
        UnknownStepError: If a descriptor is not recognized
    """

    def __init__(self, steps: list[Any] | tuple[Any, ...] | None = None) -> None:
        head: Deferred[Any] = Deferred()
        head.resolve(None)
        self._tail: asyncio.Future = head.promise
        if steps is None:
            return
        if not isinstance(steps, (list, tuple)):
            raise ConfigurationError(f"steps (if passed) must be a list, got {type(steps).__name__}")
        for step in steps:
            self.push_object(step)

    def promise(self) -> asyncio.Future:
        """Future settled by the last step currently in the sequence."""
        return self._tail

    def push_object(self, descriptor: StepAction | Mapping[str, Any]) -> Sequence:
        """Add a step described by a callable or a mapping.

        Recognized shapes:
            - ``callable``: same as :meth:`push`
            - ``{"action", "fallback"?}``: :meth:`push`
            - ``{"timeout", "duration"}``: :meth:`set_timeout`
            - ``{"when_empty", "fallback"?}``: :meth:`when_empty`
            - ``{"promise"}``: :meth:`push_promise`
            - ``{"synchronous", "fallback"?}``: :meth:`push_synchronous`
        """
        if callable(descriptor):
            return self.push(descriptor)
        if not isinstance(descriptor, Mapping):
            raise UnknownStepError(descriptor)
        if descriptor.get("action"):
            return self.push(descriptor["action"], descriptor.get("fallback"))
        if "timeout" in descriptor:
            return self.set_timeout(descriptor["timeout"], descriptor.get("duration", 0))
        if descriptor.get("when_empty"):
            return self.when_empty(descriptor["when_empty"], descriptor.get("fallback"))
        if descriptor.get("promise") is not None:
            return self.push_promise(descriptor["promise"])
        if descriptor.get("synchronous"):
            return self.push_synchronous(descriptor["synchronous"], descriptor.get("fallback"))
        raise UnknownStepError(descriptor).with_context(component="sequence")

    # ── Steps ────────────────────────────────────────────────────────

    def push(self, action: StepAction, fallback: StepAction | None = None) -> Sequence:
        """Run ``action(deferred, payload)`` after the previous step succeeds.

        ``fallback(deferred, error)`` runs instead if it failed; without a
        fallback the failure propagates to this step.
        """
        step, previous = self._append()

        def on_failure(error: BaseException) -> None:
            if fallback is None:
                step.reject(error)
            else:
                self._run(fallback, step, error)

        on_settled(previous, lambda payload: self._run(action, step, payload), on_failure)
        return self

    def push_promise(self, promise: Any) -> Sequence:
        """Gate the sequence on an independently running promise.

        The step settles with the promise's outcome once the chain reaches
        it; if the chain failed, the failure propagates after the promise
        settles.
        """
        future = as_future(promise)

        def wait_then_fail(step: Deferred, error: BaseException) -> None:
            on_settled(future, lambda _payload: step.reject(error), lambda _error: step.reject(error))

        return self.push(lambda step: step.adopt(future), wait_then_fail)

    def push_synchronous(self, action: StepAction, fallback: StepAction | None = None) -> Sequence:
        """Run a plain function; its return value resolves the step.

        Whatever the function returns, ``None`` and awaitables included, is
        the step's value, so returning never stops the sequence. If the
        function raises, the step rejects with that exception and the next
        step's fallback receives it. Without a fallback a previous failure
        propagates.
        """

        def run(func: StepAction) -> StepAction:
            return lambda step, payload: step.resolve(call_flexible(func, payload))

        return self.push(run(action), run(fallback) if fallback is not None else None)

    def set_timeout(self, handler: StepAction | None, duration: float) -> Sequence:
        """Race a timer, started now, against the chain reaching this point.

        If ``duration`` seconds elapse first, ``handler(deferred)`` runs as a
        regular action and decides this step's outcome (``handler=None``
        rejects with :class:`TimeoutExpired`). Otherwise the timer is
        cancelled, the handler never runs and the previous outcome passes
        through.
        """
        step, previous = self._append()
        fired = False

        def expire() -> None:
            nonlocal fired
            if previous.done():
                return
            fired = True
            logger.debug("sequence.timeout_fired", duration=duration)
            if handler is None:
                step.reject(TimeoutExpired(duration, operation="sequence"))
            else:
                self._run(handler, step)

        timer = asyncio.get_running_loop().call_later(duration, expire)

        def relay(settle: Callable[[Any], bool]) -> Callable[[Any], None]:
            def _relay(payload: Any) -> None:
                if not fired:
                    timer.cancel()
                    settle(payload)

            return _relay

        on_settled(previous, relay(step.resolve), relay(step.reject))
        return self

    def when_empty(self, action: StepAction, fallback: StepAction | None = None) -> Sequence:
        """Run ``action`` once, when no step has been queued after it.

        If steps are appended before the observed tail settles, the handler
        moves to the new tail and waits again; it can starve if steps keep
        arriving.
        """
        observed = self._tail

        def fire(func: StepAction | None, payload: Any, ok: bool) -> None:
            nonlocal observed
            if self._tail is not observed:
                observed = self._tail
                attach()
                return
            step, _ = self._append()
            if func is not None:
                self._run(func, step, payload)
            elif ok:
                step.resolve(payload)
            else:
                step.reject(payload)

        def attach() -> None:
            on_settled(
                observed,
                lambda payload: fire(action, payload, True),
                lambda error: fire(fallback, error, False),
            )

        attach()
        return self

    # ── Internals ────────────────────────────────────────────────────

    def _append(self) -> tuple[Deferred, asyncio.Future]:
        step: Deferred[Any] = Deferred()
        previous = self._tail
        self._tail = step.promise
        return step, previous

    def _run(self, func: StepAction, step: Deferred, *payload: Any) -> None:
        try:
            result = call_flexible(func, step, *payload)
        except Exception as exc:
            step.reject(exc)
            return
        if is_promise(result) and result is not step.promise:
            step.adopt(result)


__all__ = ["Sequence"]
