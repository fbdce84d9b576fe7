"""Loop-bound debouncing for pointer streams such as hover.

``QueuedDebouncer`` collects calls and replays them on an asyncio event loop
at a fixed cadence. Ticks run on the loop's thread, the same thread that runs
widget callbacks and the bus's ``AsyncioScheduler``, so a debounced call
never races the event bus or touches widgets from elsewhere.

There is no timer-thread fallback. Without a loop there is nothing to defer
to, and callers forward their calls directly (see ``PlotlyTraceAdapter``).
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Optional, Tuple
import asyncio
import logging

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_Call = Tuple[Tuple[Any, ...], dict]


class QueuedDebouncer:
    """Replay queued calls on an event loop, at most one per cadence.

    Parameters
    ----------
    callback : callable
        Receives the positional and keyword arguments of a queued call.
    execute_every_ms : int
        Cadence in milliseconds; must be positive.
    drop_overflow : bool
        Keep only the newest queued call at each tick. Hover streams want
        this: only the latest pointer position matters.
    loop : asyncio.AbstractEventLoop, optional
        Loop that runs the ticks. Defaults to the running loop.

    Raises
    ------
    RuntimeError
        If no loop is given and none is running.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        execute_every_ms: int,
        drop_overflow: bool = True,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "QueuedDebouncer needs an asyncio event loop; pass loop= "
                    "or create it while a loop is running"
                ) from None
        self._loop = loop
        self._callback = callback
        self._delay_s = execute_every_ms / 1000.0
        self._drop_overflow = bool(drop_overflow)
        self._calls: Deque[_Call] = deque()
        self._handle: Optional[Any] = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def pending(self) -> int:
        """Number of queued calls not yet replayed."""
        return len(self._calls)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self._calls.append((args, kwargs))
        if self._handle is None:
            self._handle = self._loop.call_later(self._delay_s, self._tick)

    def cancel(self) -> None:
        """Forget every queued call and stop the pending tick.

        Adapters call this on ``unhover`` (a hover that already ended must not
        land afterwards) and on ``unbind``.
        """
        self._calls.clear()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if not self._calls:
            return
        if self._drop_overflow:
            args, kwargs = self._calls.pop()
            self._calls.clear()
        else:
            args, kwargs = self._calls.popleft()
        if self._calls:
            self._handle = self._loop.call_later(self._delay_s, self._tick)

        try:
            self._callback(*args, **kwargs)
        except Exception:
            logger.exception("Debounced call to %r failed", self._callback)
