"""Deferred, cancellable callbacks used to pace automated draws."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run ``callback(*args)`` once after ``delay`` seconds.

    The returned handle must support ``cancel()``; cancelling a handle whose
    callback already ran is a no-op.
    """

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop's ``call_later``.

    Callbacks run on the loop's own thread, so the engine keeps a single
    execution context. When ``loop`` is omitted the running loop is looked up
    at scheduling time, which means automated runs must be started from inside
    a coroutine or a loop callback.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise RuntimeError(
                "AsyncioScheduler needs a running event loop; start automated "
                "runs from a coroutine or pass loop= explicitly"
            ) from exc

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        loop = self._resolve_loop()
        logger.debug(f"Scheduling {getattr(callback, '__name__', callback)!s} in {delay:.3f}s")
        return loop.call_later(delay, callback, *args)


__all__ = ["AsyncioScheduler", "Scheduler", "TimerHandle"]
