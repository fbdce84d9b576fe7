"""Deferred execution for the event bus.

The bus never processes an event or renders a view directly from ``emit``;
it hands callbacks to a scheduler instead. Two schedulers are provided:

- ``AsyncioScheduler`` posts callbacks to an asyncio loop with
  ``loop.call_soon``. This is what runs inside a Jupyter kernel, where widget
  callbacks already execute on a running loop.
- ``ImmediateScheduler`` is a single-threaded trampoline for plain scripts
  and tests: the outermost ``call_soon`` drains a FIFO, nested calls only
  enqueue. Ordering is identical to the asyncio case, but the outermost
  caller returns only after the queue is empty.

``default_scheduler`` picks between them: a running loop wins.

Both return handles with ``cancel()``; cancelling a handle that already ran
is a no-op. ``ImmediateScheduler`` handles also carry ``done``, which is set
once the callback has started, so callers can tell an inline run apart from
a queued one.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@runtime_checkable
class Cancellable(Protocol):
    def cancel(self) -> Any: ...


@runtime_checkable
class Scheduler(Protocol):
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> Cancellable: ...


class AsyncioScheduler:
    """Schedule callbacks on an asyncio event loop.

    Parameters
    ----------
    loop:
        Target loop. Defaults to the running loop.
    """

    def __init__(self, loop: Optional[Any] = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    @property
    def loop(self) -> Any:
        return self._loop

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> Cancellable:
        return self._loop.call_soon(callback, *args)


class _QueuedTask:
    __slots__ = ("callback", "args", "cancelled", "done")

    def __init__(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.done = False

    def cancel(self) -> None:
        self.cancelled = True


class ImmediateScheduler:
    """Run callbacks in FIFO order on the calling thread."""

    def __init__(self) -> None:
        self._queue: Deque[_QueuedTask] = deque()
        self._running = False

    @property
    def pending(self) -> int:
        return sum(1 for task in self._queue if not task.cancelled)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> Cancellable:
        task = _QueuedTask(callback, args)
        self._queue.append(task)
        if not self._running:
            self._drain()
        return task

    def _drain(self) -> None:
        self._running = True
        try:
            while self._queue:
                task = self._queue.popleft()
                if task.cancelled:
                    continue
                task.done = True
                try:
                    task.callback(*task.args)
                except Exception:
                    # Callbacks own their error reporting; this only keeps the
                    # trampoline alive for the remaining tasks.
                    logger.exception("Scheduled callback %r failed", task.callback)
        finally:
            self._running = False


def default_scheduler() -> Scheduler:
    """Return an ``AsyncioScheduler`` inside a running loop, else an ``ImmediateScheduler``."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return ImmediateScheduler()
    return AsyncioScheduler(loop)
