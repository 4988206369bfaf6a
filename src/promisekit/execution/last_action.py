"""Latest-action serializer: run one action at a time, keep only the newest.

WHY
───
A UI that saves on every keystroke must not send the saves concurrently
(they could land out of order) and must not send all of them either (only
the last one matters). ``LastAction`` runs at most one action at a time and,
while one is in flight, keeps only the most recently pushed one.

ARCHITECTURE
────────────
::

    push(a1) ──► a1 running
    push(a2) ──► a2 pending
    push(a3) ──► a2 rejected (SupersededError), a3 pending
    a1 done  ──► push(a1) future settles, a3 starts with a1's payload
    a3 done  ──► push(a3) future settles, on_complete / on_error fire

    drop=False turns the pending slot into a FIFO queue: every action runs,
    in push order.

Retries: a failed attempt is retried up to ``retries`` times, unless a newer
action is pending (then the retry is dropped and the newer action runs).
Dropping never cancels the in-flight work; it only stops waiting for it.

Example::

    saver = LastAction(on_complete=show_saved, on_error=show_error, retries=2)
    saver.push(lambda previous: api.save(draft))
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from promisekit.core.deferred import Deferred, as_future, call_flexible, on_settled
from promisekit.core.errors import ActionNotCallableError, SupersededError, categorize_error
from promisekit.core.logging import get_logger
from promisekit.core.settings import get_settings
from promisekit.execution.retry import RetryStrategy

logger = get_logger(__name__)


def _noop(_payload: Any) -> None:
    pass


@dataclass(eq=False)
class PushedAction:
    """One call to :meth:`LastAction.push`."""

    action: Callable[..., Any]
    retries: int
    result: Deferred
    previous: Any = None
    attempt: int = 0


class LastAction:
    """Serializer that executes the latest pushed action.

    Args:
        on_complete: Called with the result when an action succeeds and no
            newer action is waiting
        on_error: Called with the error when an action fails (retries
            exhausted) and no newer action is waiting
        retries: Default retries per push (default: settings.default_retries)
        drop: Drop pending actions when a newer one is pushed (default True)
        backoff: Optional strategy delaying (and filtering) retries

    Attributes:
        last_action: Most recently pushed action, or None
        last_response: Payload of the last action that ran to its conclusion;
            it is passed to the next action started from idle
    """

    def __init__(
        self,
        on_complete: Callable[[Any], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        retries: int | None = None,
        *,
        drop: bool = True,
        backoff: RetryStrategy | None = None,
    ) -> None:
        self.on_complete = on_complete or _noop
        self.on_error = on_error or _noop
        self.retries = retries if retries is not None else get_settings().default_retries
        self.drop = drop
        self.backoff = backoff
        self.last_action: Callable[..., Any] | None = None
        self.last_response: Any = None
        self._active: PushedAction | None = None
        self._pending: deque[PushedAction] = deque()

    @property
    def busy(self) -> bool:
        """True while an action is executing."""
        return self._active is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def push(self, action: Callable[..., Any], retries: int | None = None) -> asyncio.Future:
        """Add an action; it runs now if idle, otherwise when the current one ends.

        Args:
            action: Callable returning an awaitable; receives the previous
                action's payload if it accepts an argument
            retries: Overrides the default number of retries for this push

        Returns:
            Future settled with the outcome of this push (rejected with
            :class:`SupersededError` if a newer push dropped it)

        Raises:
            ActionNotCallableError: If ``action`` is not callable
        """
        if not callable(action):
            raise ActionNotCallableError(action)

        pushed = PushedAction(
            action=action,
            retries=self.retries if retries is None else retries,
            result=Deferred(),
        )
        self.last_action = action

        if self._active is None:
            self._start(pushed, self.last_response)
        else:
            if self.drop:
                self._drop_pending()
            self._pending.append(pushed)
        return pushed.result.promise

    # ── Execution ────────────────────────────────────────────────────

    def _drop_pending(self) -> None:
        while self._pending:
            dropped = self._pending.popleft()
            logger.debug("last_action.superseded", action=getattr(dropped.action, "__name__", repr(dropped.action)))
            dropped.result.reject(
                SupersededError("action superseded by a newer push before it started").with_context(
                    component="last_action"
                ),
                handled=True,
            )

    def _start(self, pushed: PushedAction, previous: Any) -> None:
        self._active = pushed
        pushed.previous = previous
        self._attempt(pushed)

    def _attempt(self, pushed: PushedAction) -> None:
        try:
            outcome = as_future(call_flexible(pushed.action, pushed.previous))
        except Exception as exc:
            asyncio.get_running_loop().call_soon(self._finish, pushed, False, exc)
            return
        on_settled(
            outcome,
            lambda value: self._finish(pushed, True, value),
            lambda error: self._finish(pushed, False, error),
        )

    def _finish(self, pushed: PushedAction, ok: bool, payload: Any) -> None:
        if not ok and self._should_retry(pushed, payload):
            delay = self.backoff.next_delay(pushed.attempt) if self.backoff else 0.0
            pushed.attempt += 1
            logger.debug(
                "last_action.retry",
                attempt=pushed.attempt,
                retries=pushed.retries,
                delay=delay,
                category=categorize_error(payload).value,
            )
            if delay > 0:
                asyncio.get_running_loop().call_later(delay, self._retry, pushed, payload)
            else:
                self._attempt(pushed)
            return
        self._conclude(pushed, ok, payload)

    def _should_retry(self, pushed: PushedAction, error: BaseException) -> bool:
        if pushed.attempt >= pushed.retries:
            return False
        if self.drop and self._pending:
            return False
        if self.backoff is not None and not self.backoff.should_retry(pushed.attempt, error):
            return False
        return True

    def _retry(self, pushed: PushedAction, error: BaseException) -> None:
        if self.drop and self._pending:
            logger.debug("last_action.retry_dropped", attempt=pushed.attempt)
            self._conclude(pushed, False, error)
        else:
            self._attempt(pushed)

    def _conclude(self, pushed: PushedAction, ok: bool, payload: Any) -> None:
        # A failure also reaches on_error or the next action's input.
        if ok:
            pushed.result.resolve(payload)
        else:
            pushed.result.reject(payload, handled=True)

        if self._pending:
            self._start(self._pending.popleft(), payload)
            return

        self._active = None
        self.last_response = payload
        if ok:
            self.on_complete(payload)
        else:
            self.on_error(payload)


__all__ = ["LastAction", "PushedAction"]
