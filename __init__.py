"""Top-level public API for the ``crosslink`` package.

``crosslink`` links independent interactive views through a shared selection
per data group, entirely on the client side:

>>> from crosslink import LinkedSession, CallbackAdapter  # doctest: +SKIP
>>> session = LinkedSession(mode="persistent")  # doctest: +SKIP
>>> cities = session.share(rows, key="city", group="cities")  # doctest: +SKIP
>>> cities.link(CallbackAdapter("summary", print))  # doctest: +SKIP

It exposes both the session facade and the lower-level building blocks (key
index, store, resolver, bus, adapter protocol) for custom integrations.
"""

from .errors import (
    AdapterRenderFailure,
    AmbiguousLocator,
    CrosslinkError,
    DuplicateGroup,
    UnknownGroup,
)
from .locators import KeyList, Lasso, Region, RowPositions
from .key_index import KeyIndex
from .highlight_options import HIGHLIGHT_OPTIONS, HighlightOptions
from .SelectionEvent import EVENT_KINDS, SelectionEvent
from .SelectionState import SelectionLayer, SelectionState
from .selection_resolver import resolve
from .group_registry import Group, GroupRegistry
from .selection_store import SelectionStore
from .scheduling import AsyncioScheduler, ImmediateScheduler, default_scheduler
from .event_bus import Emitter, EventBus, Subscription
from .ViewAdapter import CallbackAdapter, ViewAdapter
from .data_loader import load_group, load_matrix
from .linked_session import LinkedSession, SharedData
from .debouncing import QueuedDebouncer
from .plotly_adapter import PlotlyTraceAdapter, matrix_point_to_row
from .widget_adapters import ColorPickerAdapter, SelectorAdapter

__all__ = [
    "AdapterRenderFailure",
    "AmbiguousLocator",
    "CrosslinkError",
    "DuplicateGroup",
    "UnknownGroup",
    "KeyList",
    "Lasso",
    "Region",
    "RowPositions",
    "KeyIndex",
    "HIGHLIGHT_OPTIONS",
    "HighlightOptions",
    "EVENT_KINDS",
    "SelectionEvent",
    "SelectionLayer",
    "SelectionState",
    "resolve",
    "Group",
    "GroupRegistry",
    "SelectionStore",
    "AsyncioScheduler",
    "ImmediateScheduler",
    "default_scheduler",
    "Emitter",
    "EventBus",
    "Subscription",
    "CallbackAdapter",
    "ViewAdapter",
    "load_group",
    "load_matrix",
    "LinkedSession",
    "SharedData",
    "QueuedDebouncer",
    "PlotlyTraceAdapter",
    "matrix_point_to_row",
    "ColorPickerAdapter",
    "SelectorAdapter",
]
