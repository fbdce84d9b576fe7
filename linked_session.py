"""Session orchestration for linked views.

Purpose
-------
This module provides ``LinkedSession`` (one visualization session: registry,
store and bus wired together) and ``SharedData`` (the handle views link
through, one per group). Multiple sessions are fully isolated; nothing here
lives at module level.

Concepts and structure
----------------------
- ``LinkedSession.share`` loads rows, registers the group, seeds the store
  (``default_values``) and returns a ``SharedData``.
- ``SharedData.link`` subscribes a view adapter; ``select``/``clear`` drive
  the group from Python the same way an indirect control would.
- ``SharedData.selected_rows`` is the hand-off to aggregation code: it
  returns the canonical rows whose key is currently selected. Summaries are
  recomputed by the caller; there is no automatic inversion of a summary back
  to its rows.

Examples
--------
>>> from crosslink import LinkedSession, CallbackAdapter  # doctest: +SKIP
>>> with LinkedSession() as session:  # doctest: +SKIP
...     years = session.share([{"year": y} for y in range(2000, 2016)], key="year", group="years")
...     years.link(CallbackAdapter("table", print))
...     years.select([2005], source_id="scatter")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Optional, Tuple

from .data_loader import CoordSpec, FieldSpec, load_group, load_matrix
from .errors import AdapterRenderFailure
from .event_bus import EventBus, ReactTo, Subscription
from .group_registry import Group, GroupRegistry
from .highlight_options import HighlightOptions
from .key_index import KeyIndex
from .locators import KeyList, Locator
from .scheduling import Scheduler
from .selection_store import SelectionStore
from .SelectionEvent import SelectionEvent
from .SelectionState import SelectionState
from .ViewAdapter import ViewAdapter

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DEFAULT_SOURCE_ID = "python"


class SharedData:
    """Handle on one registered group.

    Instances are created by :meth:`LinkedSession.share`; they are not meant
    to be constructed directly.
    """

    def __init__(self, session: "LinkedSession", group: Group, rows: Tuple[Any, ...]) -> None:
        self._session = session
        self._group = group
        self._rows = rows

    @property
    def group_id(self) -> Hashable:
        return self._group.id

    @property
    def group(self) -> Group:
        return self._group

    @property
    def options(self) -> HighlightOptions:
        return self._group.options

    @property
    def key_index(self) -> KeyIndex:
        return self._group.key_index

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        return self._group.key_index.keys

    @property
    def rows(self) -> Tuple[Any, ...]:
        return self._rows

    @property
    def selection(self) -> SelectionState:
        """Current committed state of the group."""
        return self._session.store.get(self._group.id)

    @property
    def selected_keys(self) -> FrozenSet[Hashable]:
        return self.selection.selected

    def link(self, adapter: ViewAdapter, *, react_to: ReactTo = "all") -> Subscription:
        """Subscribe ``adapter`` to this group (see :meth:`EventBus.subscribe`)."""
        return self._session.bus.subscribe(self._group.id, adapter, react_to=react_to)

    def unlink(self, subscription: Subscription) -> None:
        self._session.bus.unsubscribe(subscription)

    def emit(self, kind: str, payload: Optional[Locator] = None, *, source_id: str = DEFAULT_SOURCE_ID, color: Optional[str] = None) -> None:
        """Emit a raw event into this group on behalf of ``source_id``."""
        self._session.bus.emit(
            SelectionEvent(source_id=source_id, group_id=self._group.id, kind=kind, payload=payload, color=color)
        )

    def select(self, keys: Iterable[Hashable], *, source_id: str = DEFAULT_SOURCE_ID, color: Optional[str] = None) -> None:
        """Select ``keys`` as an indirect-manipulation control would."""
        self.emit("set", KeyList(keys), source_id=source_id, color=color)

    def clear(self, *, source_id: str = DEFAULT_SOURCE_ID) -> None:
        self.emit("clear", source_id=source_id)

    def selected_rows(self) -> List[Any]:
        """Canonical rows whose key is selected, in canonical order."""
        positions = self._group.key_index.positions_of(self.selected_keys)
        return [self._rows[i] for i in positions]

    def __repr__(self) -> str:
        return f"SharedData(group={self._group.id!r}, rows={len(self._rows)}, mode={self.options.mode!r})"


class LinkedSession:
    """One visualization session owning its groups, store and bus.

    Parameters
    ----------
    scheduler : Scheduler, optional
        Passed to :class:`EventBus`; defaults to the running asyncio loop if
        there is one, else synchronous in-order execution.
    **defaults :
        Default :class:`HighlightOptions` fields for every group of the
        session (``mode="persistent"``, ``on="select"``, ...).
    """

    def __init__(self, *, scheduler: Optional[Scheduler] = None, **defaults: Any) -> None:
        self._defaults = HighlightOptions().with_overrides(**defaults)
        self._registry = GroupRegistry()
        self._store = SelectionStore(self._registry)
        self._bus = EventBus(self._registry, self._store, scheduler=scheduler)
        self._shared: Dict[Hashable, SharedData] = {}
        self._group_counter = 0
        self._closed = False

    @property
    def registry(self) -> GroupRegistry:
        return self._registry

    @property
    def store(self) -> SelectionStore:
        return self._store

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def defaults(self) -> HighlightOptions:
        return self._defaults

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_group_id(self) -> str:
        self._group_counter += 1
        return f"group:{self._group_counter}"

    def share(
        self,
        rows: Any,
        key: Optional[FieldSpec] = None,
        *,
        group: Optional[Hashable] = None,
        coords: Optional[Mapping[str, CoordSpec]] = None,
        **options: Any,
    ) -> SharedData:
        """Declare shared data and return its handle.

        Parameters
        ----------
        rows : sequence or frame-like
            Canonical rows (see :func:`crosslink.data_loader.load_group`).
        key : str, int or callable, optional
            Key extractor.
        group : hashable, optional
            Group id; several ``share`` calls with the same id and the same
            keys return handles on the same group. Defaults to a fresh id.
        coords : mapping, optional
            Coordinates for geometric locators.
        **options :
            :class:`HighlightOptions` overrides for this group.

        Raises
        ------
        DuplicateGroup
            If ``group`` already exists with different keys.
        """
        self._require_open()
        if not hasattr(rows, "columns"):
            rows = tuple(rows)
        group_id = group if group is not None else self._next_group_id()
        loaded, index = load_group(
            rows, key, group_id=group_id, coords=coords,
            options=self._defaults.with_overrides(**options),
        )
        existing = self._shared.get(group_id)
        registered = self._registry.register(group_id, index, loaded.options)
        if existing is not None:
            return existing
        return self._attach(registered, _rows_tuple(rows))

    def share_matrix(self, row_labels: Iterable[Hashable], col_labels: Iterable[Hashable], *, group: Optional[Hashable] = None, **options: Any) -> SharedData:
        """Declare a matrix-shaped group keyed by ``(row_label, col_label)``."""
        self._require_open()
        group_id = group if group is not None else self._next_group_id()
        loaded, index, rows = load_matrix(
            row_labels, col_labels, group_id=group_id,
            options=self._defaults.with_overrides(**options),
        )
        existing = self._shared.get(group_id)
        registered = self._registry.register(group_id, index, loaded.options)
        if existing is not None:
            return existing
        return self._attach(registered, rows)

    def _attach(self, group: Group, rows: Tuple[Any, ...]) -> SharedData:
        self._store.init_group(group.id)
        shared = SharedData(self, group, rows)
        self._shared[group.id] = shared
        defaults = group.options.default_values
        if defaults:
            self._bus.emit(
                SelectionEvent(source_id=DEFAULT_SOURCE_ID, group_id=group.id, kind="set", payload=KeyList(defaults))
            )
        logger.debug("shared %r", shared)
        return shared

    def shared(self, group_id: Hashable) -> SharedData:
        """Return the handle of ``group_id``."""
        self._registry.lookup(group_id)
        return self._shared[group_id]

    def on_render_failure(self, callback: Callable[[AdapterRenderFailure], Any]) -> Callable[[], None]:
        return self._bus.on_render_failure(callback)

    def drop(self, group_id: Hashable) -> None:
        """Tear down one group: unsubscribe its views and forget its state."""
        self._bus.drop_group(group_id)
        self._store.drop_group(group_id)
        self._registry.unregister(group_id)
        self._shared.pop(group_id, None)

    def close(self) -> None:
        """Tear down every group. Idempotent."""
        if self._closed:
            return
        for group_id in list(self._registry):
            self.drop(group_id)
        self._closed = True

    def _require_open(self) -> None:
        if self._closed:
            raise RuntimeError("LinkedSession is closed")

    def __enter__(self) -> "LinkedSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"LinkedSession(groups={list(self._registry)}, closed={self._closed})"


def _rows_tuple(rows: Any) -> Tuple[Any, ...]:
    to_dict = getattr(rows, "to_dict", None)
    if callable(to_dict) and hasattr(rows, "index") and hasattr(rows, "columns"):
        return tuple(to_dict("records"))
    return tuple(rows)
