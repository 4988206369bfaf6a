"""promisekit execution -- ordering and serialization of asynchronous work.

MODULE MAP
──────────
  1. last_action.py  ─ LastAction (one action at a time, newest wins, retries)
  2. ordered.py      ─ OrderedResultTracker (ignore stale completions)
  3. sequence.py     ─ Sequence (linear chain of steps with fallbacks/timeouts)
  4. retry.py        ─ backoff strategies for LastAction retries

Example::

    from promisekit.execution import LastAction, Sequence

    saver = LastAction(on_complete=print)
    saver.push(lambda: save(draft))
"""

from .last_action import LastAction, PushedAction
from .ordered import OrderedResultTracker, TrackedPromise
from .retry import ConstantBackoff, ExponentialBackoff, NoBackoff, RetryStrategy
from .sequence import Sequence

__all__ = [
    "LastAction",
    "PushedAction",
    "OrderedResultTracker",
    "TrackedPromise",
    "Sequence",
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "NoBackoff",
]
