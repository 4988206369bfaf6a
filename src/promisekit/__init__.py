"""
promisekit - client-side coordination of asynchronous work on asyncio.

- promisekit.execution.LastAction: run the latest action, drop superseded ones
- promisekit.execution.OrderedResultTracker: ignore stale completions
- promisekit.core.PromiseCache: cache futures with eviction and expiry
- promisekit.execution.Sequence: chain steps with fallbacks and timeouts
"""

__version__ = "0.1.0"

from promisekit.core import *  # noqa
from promisekit.execution import *  # noqa
