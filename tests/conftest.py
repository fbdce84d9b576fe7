from __future__ import annotations

from collections import deque
from typing import Any, Callable

import pytest

from crosslink.event_bus import EventBus
from crosslink.group_registry import GroupRegistry
from crosslink.highlight_options import HighlightOptions
from crosslink.scheduling import ImmediateScheduler
from crosslink.selection_store import SelectionStore


class _ManualHandle:
    def __init__(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler that only runs callbacks when the test says so."""

    def __init__(self) -> None:
        self.handles: deque[_ManualHandle] = deque()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> _ManualHandle:
        handle = _ManualHandle(callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self.handles if not h.cancelled)

    def run_once(self) -> None:
        batch = list(self.handles)
        self.handles.clear()
        for handle in batch:
            if not handle.cancelled:
                handle.callback(*handle.args)

    def run_all(self) -> None:
        while self.handles:
            self.run_once()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def registry() -> GroupRegistry:
    return GroupRegistry()


@pytest.fixture
def store(registry: GroupRegistry) -> SelectionStore:
    return SelectionStore(registry)


@pytest.fixture
def make_group(registry: GroupRegistry, store: SelectionStore):
    def _make(group_id: Any, keys, **options: Any):
        group = registry.register(group_id, keys, HighlightOptions(**options))
        store.init_group(group_id)
        return group

    return _make


@pytest.fixture
def bus(registry: GroupRegistry, store: SelectionStore) -> EventBus:
    return EventBus(registry, store, scheduler=ImmediateScheduler())


@pytest.fixture
def manual_bus(registry: GroupRegistry, store: SelectionStore, manual_scheduler: ManualScheduler) -> EventBus:
    return EventBus(registry, store, scheduler=manual_scheduler)
