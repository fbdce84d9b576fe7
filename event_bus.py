"""Event bus: ordered per-group processing and isolated fan-out.

Purpose
-------
``EventBus`` receives interaction events from view adapters, resolves their
locators into canonical keys, runs the selection resolver and commits the
result to the store, then fans the new state out to every adapter
subscribed to the same group.

Concepts and structure
----------------------
- ``emit`` is synchronous only for validation: an unknown group or an
  unresolvable locator raises right there. Everything else is queued.
- Each group owns a FIFO. A drain callback is scheduled when the FIFO goes
  from idle to busy, so events of one group are resolved strictly in
  emission order while different groups never wait on each other.
- Each adapter render is its own scheduled callback. A new state for an
  adapter that still has a render pending replaces it (latest state wins).
- ``Subscription`` tracks the adapter state machine and its pending render;
  unsubscribing cancels that render only.

Important gotchas
-----------------
- The store is written only from ``_process``; views never mutate it.
- A failing ``render`` becomes ``AdapterRenderFailure``: logged, reported to
  ``on_render_failure`` callbacks, never raised into the bus.
- ``react_to`` filters by the source id of the *state*, i.e. the view whose
  event produced the revision being rendered.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Hashable, List, Literal, Optional

from .errors import AdapterRenderFailure, UnknownGroup
from .group_registry import Group, GroupRegistry
from .highlight_options import HighlightOptions
from .locators import Locator
from .scheduling import Cancellable, Scheduler, default_scheduler
from .selection_resolver import resolve as default_resolve
from .selection_store import SelectionStore
from .SelectionEvent import SelectionEvent
from .SelectionState import SelectionState
from .ViewAdapter import ViewAdapter

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

AdapterState = Literal["unregistered", "registered", "active", "rendering"]
ReactTo = Literal["all", "others", "self", "none"]
REACT_TO: tuple[str, ...] = ("all", "others", "self", "none")

Resolver = Callable[[SelectionState, SelectionEvent, HighlightOptions], SelectionState]
FailureCallback = Callable[[AdapterRenderFailure], Any]


class Emitter:
    """Callable handed to an adapter in ``bind``; tags events with ids.

    Calling ``emit(kind, payload)`` builds a ``SelectionEvent`` whose source
    is the adapter and whose group is the subscription's group, then passes
    it to the bus. After unsubscribe the emitter is closed and silently drops
    late events from library hooks that fire during teardown.
    """

    def __init__(self, bus: "EventBus", group: Group, view_id: str) -> None:
        self._bus = bus
        self._group = group
        self._view_id = view_id
        self._closed = False

    @property
    def group_id(self) -> Hashable:
        return self._group.id

    @property
    def view_id(self) -> str:
        return self._view_id

    @property
    def options(self) -> HighlightOptions:
        return self._group.options

    @property
    def keys(self) -> tuple[Hashable, ...]:
        """Canonical keys of the group, in row order."""
        return self._group.key_index.keys

    @property
    def scheduler(self) -> Scheduler:
        """Scheduler of the owning bus; adapters use it to defer their own work."""
        return self._bus.scheduler

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def __call__(
        self,
        kind: str,
        payload: Optional[Locator] = None,
        *,
        color: Optional[str] = None,
        raw: Any = None,
    ) -> None:
        if self._closed:
            logger.debug("Dropping %r event from unbound view %r", kind, self._view_id)
            return
        self._bus.emit(
            SelectionEvent(
                source_id=self._view_id,
                group_id=self._group.id,
                kind=kind,
                payload=payload,
                color=color,
                raw=raw,
            )
        )


class Subscription:
    """Handle binding one adapter to one group.

    Attributes
    ----------
    state : str
        Adapter lifecycle state (``unregistered``, ``registered``, ``active``
        or ``rendering``).
    rendered_revision : int or None
        Revision of the last state the adapter rendered successfully.
    last_error : AdapterRenderFailure or None
        Most recent render failure, cleared by the next good render.
    """

    __slots__ = (
        "_bus", "group_id", "adapter", "react_to", "emitter",
        "state", "rendered_revision", "last_error", "_pending",
    )

    def __init__(self, bus: "EventBus", group_id: Hashable, adapter: ViewAdapter, react_to: ReactTo, emitter: Emitter) -> None:
        self._bus = bus
        self.group_id = group_id
        self.adapter = adapter
        self.react_to = react_to
        self.emitter = emitter
        self.state: AdapterState = "unregistered"
        self.rendered_revision: Optional[int] = None
        self.last_error: Optional[AdapterRenderFailure] = None
        self._pending: Optional[Cancellable] = None

    @property
    def view_id(self) -> str:
        return self.adapter.view_id

    @property
    def is_subscribed(self) -> bool:
        return self.state != "unregistered"

    @property
    def has_pending_render(self) -> bool:
        return self._pending is not None

    def reacts_to(self, source_id: Optional[str]) -> bool:
        """Whether a state produced by ``source_id`` should be rendered."""
        if self.react_to == "all" or source_id is None:
            return self.react_to != "none"
        if self.react_to == "others":
            return source_id != self.view_id
        if self.react_to == "self":
            return source_id == self.view_id
        return False

    def unsubscribe(self) -> None:
        self._bus.unsubscribe(self)

    def __repr__(self) -> str:
        return (
            f"Subscription(view={self.view_id!r}, group={self.group_id!r}, "
            f"state={self.state!r}, react_to={self.react_to!r})"
        )


class EventBus:
    """Route selection events of many groups to their subscribed views.

    Parameters
    ----------
    registry : GroupRegistry
        Known groups and their key indexes.
    store : SelectionStore
        State owner; written only by this bus.
    scheduler : Scheduler, optional
        Deferred execution strategy. Defaults to :func:`default_scheduler`.
    resolver : callable, optional
        Selection policy, :func:`crosslink.selection_resolver.resolve` by
        default.
    """

    def __init__(
        self,
        registry: GroupRegistry,
        store: SelectionStore,
        *,
        scheduler: Optional[Scheduler] = None,
        resolver: Resolver = default_resolve,
    ) -> None:
        self._registry = registry
        self._store = store
        self._scheduler = scheduler if scheduler is not None else default_scheduler()
        self._resolver = resolver
        self._queues: Dict[Hashable, Deque[SelectionEvent]] = {}
        self._draining: set[Hashable] = set()
        self._subscriptions: Dict[Hashable, List[Subscription]] = {}
        self._failure_callbacks: List[FailureCallback] = []

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self, event: SelectionEvent) -> None:
        """Queue ``event`` for its group.

        Raises
        ------
        UnknownGroup
            If ``event.group_id`` is not registered.
        AmbiguousLocator
            If the payload cannot be mapped to data-scale keys.
        """
        group = self._registry.lookup(event.group_id)
        event = self._resolve_keys(group, event)

        queue = self._queues.setdefault(group.id, deque())
        queue.append(event)
        logger.debug("emit %s from %r into %r (%d key(s))", event.kind, event.source_id, group.id, len(event.keys or ()))
        if group.id not in self._draining:
            self._draining.add(group.id)
            self._scheduler.call_soon(self._drain, group.id)

    def resolve(self, group_id: Hashable, locator: Optional[Locator]) -> frozenset:
        """Resolve ``locator`` against the key index of ``group_id``."""
        group = self._registry.lookup(group_id)
        if locator is None:
            return frozenset()
        return group.key_index.resolve(locator)

    def _resolve_keys(self, group: Group, event: SelectionEvent) -> SelectionEvent:
        if event.keys is not None:
            return event.resolved(event.keys & group.key_index.domain)
        if event.payload is None:
            return event.resolved(frozenset())
        return event.resolved(group.key_index.resolve(event.payload))

    def _drain(self, group_id: Hashable) -> None:
        try:
            queue = self._queues.get(group_id)
            while queue:
                self._process(group_id, queue.popleft())
        finally:
            self._draining.discard(group_id)

    def _process(self, group_id: Hashable, event: SelectionEvent) -> None:
        if group_id not in self._registry or group_id not in self._store:
            logger.debug("Dropping %s event for torn-down group %r", event.kind, group_id)
            return
        group = self._registry.lookup(group_id)
        current = self._store.get(group_id)
        try:
            new_state = self._resolver(current, event, group.options)
        except Exception:
            logger.exception(
                "Resolving %s event from %r failed; group %r keeps revision %d",
                event.kind, event.source_id, group_id, current.revision,
            )
            return
        if new_state is current:
            logger.debug("%s event from %r left group %r unchanged", event.kind, event.source_id, group_id)
            return
        try:
            self._store.set(group_id, new_state)
        except ValueError:
            logger.exception("Refusing state for group %r produced by %r", group_id, event.source_id)
            return
        self._fan_out(group_id, new_state)

    # ------------------------------------------------------------------
    # Subscriptions and fan-out
    # ------------------------------------------------------------------

    def subscribe(self, group_id: Hashable, adapter: ViewAdapter, *, react_to: ReactTo = "all") -> Subscription:
        """Bind ``adapter`` to ``group_id`` and schedule its first render.

        Parameters
        ----------
        group_id : hashable
            Registered group.
        adapter : ViewAdapter
            Object implementing the adapter protocol.
        react_to : {"all", "others", "self", "none"}
            Which sources trigger re-rendering: every view, every view but
            this one, only this one, or none (send-only view).

        Raises
        ------
        UnknownGroup
            If the group is not registered, or has no state in the store.
            Nothing is bound in that case.
        TypeError
            If ``adapter`` does not implement the protocol.
        ValueError
            If the adapter is already subscribed, or ``react_to`` is invalid.
        """
        group = self._registry.lookup(group_id)
        if not isinstance(adapter, ViewAdapter):
            raise TypeError(f"{type(adapter).__name__} does not implement the ViewAdapter protocol")
        if react_to not in REACT_TO:
            raise ValueError(f"react_to must be one of {REACT_TO}, got {react_to!r}")
        for subs in self._subscriptions.values():
            for sub in subs:
                if sub.adapter is adapter:
                    raise ValueError(
                        f"Adapter {adapter.view_id!r} is already subscribed to group {sub.group_id!r}"
                    )

        # Fails for a group missing from the store before anything is bound.
        initial = self._store.get(group.id)

        emitter = Emitter(self, group, adapter.view_id)
        sub = Subscription(self, group.id, adapter, react_to, emitter)
        adapter.bind(emitter)
        sub.state = "registered"
        self._subscriptions.setdefault(group.id, []).append(sub)
        logger.debug("subscribed %r to %r (react_to=%s)", adapter.view_id, group.id, react_to)

        if react_to != "none":
            self._dispatch(sub, initial)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Detach ``sub``; idempotent and safe during view teardown."""
        if sub.state == "unregistered":
            return
        if sub._pending is not None:
            sub._pending.cancel()
            sub._pending = None
        sub.state = "unregistered"
        sub.emitter.close()
        subs = self._subscriptions.get(sub.group_id)
        if subs is not None and sub in subs:
            subs.remove(sub)
            if not subs:
                del self._subscriptions[sub.group_id]
        try:
            sub.adapter.unbind()
        except Exception:
            logger.exception("Adapter %r failed to unbind", sub.view_id)
        logger.debug("unsubscribed %r from %r", sub.view_id, sub.group_id)

    def subscriptions(self, group_id: Optional[Hashable] = None) -> List[Subscription]:
        """Return live subscriptions, optionally for one group."""
        if group_id is not None:
            return list(self._subscriptions.get(group_id, ()))
        return [sub for subs in self._subscriptions.values() for sub in subs]

    def drop_group(self, group_id: Hashable) -> None:
        """Unsubscribe every adapter of ``group_id`` and discard queued events."""
        for sub in self.subscriptions(group_id):
            self.unsubscribe(sub)
        self._queues.pop(group_id, None)

    def on_render_failure(self, callback: FailureCallback) -> Callable[[], None]:
        """Register ``callback(failure)``; returns a function that removes it."""
        self._failure_callbacks.append(callback)

        def _remove() -> None:
            if callback in self._failure_callbacks:
                self._failure_callbacks.remove(callback)

        return _remove

    def _fan_out(self, group_id: Hashable, state: SelectionState) -> None:
        for sub in self.subscriptions(group_id):
            if sub.reacts_to(state.source_id):
                self._dispatch(sub, state)

    def _dispatch(self, sub: Subscription, state: SelectionState) -> None:
        if sub._pending is not None:
            sub._pending.cancel()
        handle = self._scheduler.call_soon(self._render, sub, state)
        # An inline scheduler may already have run the render.
        sub._pending = None if getattr(handle, "done", False) else handle

    def _render(self, sub: Subscription, state: SelectionState) -> None:
        sub._pending = None
        if sub.state == "unregistered":
            return
        previous = sub.state
        sub.state = "rendering"
        started = time.monotonic()
        try:
            sub.adapter.render(state)
        except Exception as exc:
            failure = AdapterRenderFailure(sub.view_id, state.group_id, state.revision, exc)
            if sub.state == "rendering":
                sub.state = previous
            sub.last_error = failure
            logger.error("%s", failure, exc_info=exc)
            self._report(failure)
            return
        finally:
            self._check_duration(sub, state, time.monotonic() - started)

        if sub.state == "rendering":
            sub.state = "active"
        sub.rendered_revision = state.revision
        sub.last_error = None

    def _check_duration(self, sub: Subscription, state: SelectionState, elapsed_s: float) -> None:
        try:
            budget = self._registry.lookup(state.group_id).options.render_timeout_ms
        except UnknownGroup:
            return
        if budget is not None and elapsed_s * 1000.0 > budget:
            logger.warning(
                "Adapter %r took %.1f ms to render group %r (budget %.1f ms)",
                sub.view_id, elapsed_s * 1000.0, state.group_id, budget,
            )

    def _report(self, failure: AdapterRenderFailure) -> None:
        for callback in list(self._failure_callbacks):
            try:
                callback(failure)
            except Exception:
                logger.exception("Render-failure callback %r failed", callback)
