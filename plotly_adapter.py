"""Plotly ``FigureWidget`` trace adapter.

Purpose
-------
``PlotlyTraceAdapter`` links one trace of a ``plotly.graph_objects.FigureWidget``
to a group. It translates the trace's Python-side interaction callbacks into
selection events and renders selection states as per-point marker colour and
opacity.

Concepts and structure
----------------------
- Point identity: by default trace point ``i`` is canonical row ``i``. Pass
  ``keys`` (one key per point, like Plotly's ``key`` attribute) when the
  trace shows rows in another order or a subset, or ``point_to_row`` for
  custom mappings (see :func:`matrix_point_to_row` for heatmaps).
- Event mapping: ``on_click`` → ``click``, ``on_hover`` → ``hover``,
  ``on_unhover`` → ``unhover``, ``on_selection`` → ``select``,
  ``on_deselect`` → ``deselect``, axis range changes → ``relayout`` (a
  data-scale ``Region`` over the visible ranges).
- Only the group's ``on``/``off`` kinds are forwarded. When ``debounce_ms``
  is set and the bus runs on an ``AsyncioScheduler``, hover is debounced
  with :class:`QueuedDebouncer` on that scheduler's loop. Without a loop,
  hovers are forwarded as they arrive, on the thread Plotly calls us from.

Important gotchas
-----------------
- ``FigureWidget`` exposes no double-click callback to Python; groups with
  ``off="doubleclick"`` are cleared from a control or ``SharedData.clear``.
- Plotly's ``on_click(callback)`` *replaces* existing callbacks on the trace;
  ``unbind`` therefore clears them.
- Plotly offers no way to remove a ``layout.on_change`` callback. The
  relayout hook is registered once per adapter with ``append=True`` (other
  range callbacks on the figure keep working) and stays on the figure after
  ``unbind``, where it does nothing until the adapter is bound again.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, List, Optional, Sequence

import numpy as np
import plotly.graph_objects as go

from .debouncing import QueuedDebouncer
from .locators import KeyList, Locator, Region, RowPositions
from .scheduling import AsyncioScheduler
from .SelectionState import SelectionState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def matrix_point_to_row(n_cols: int) -> Callable[[Any], int]:
    """Map heatmap point indices ``[i, j]`` to row-major cell positions."""

    def _to_row(ind: Any) -> int:
        if isinstance(ind, (list, tuple)):
            i, j = ind
            return int(i) * n_cols + int(j)
        return int(ind)

    return _to_row


class PlotlyTraceAdapter:
    """Link one ``FigureWidget`` trace to a group.

    Parameters
    ----------
    figure_widget : plotly.graph_objects.FigureWidget
        Live figure holding the trace.
    trace_index : int
        Index of the trace in ``figure_widget.data``.
    view_id : str, optional
        Adapter identity. Defaults to ``"plotly:<trace uid>"``.
    keys : sequence of hashable, optional
        Key of every trace point, in trace order.
    point_to_row : callable, optional
        Maps a Plotly point index to a canonical row position.
    base_color : str, optional
        Colour of unselected points; defaults to the trace's own scalar
        marker colour.
    x_field, y_field : str
        Key-index coordinates matching the trace axes (used for
        ``relayout`` regions).
    """

    def __init__(
        self,
        figure_widget: go.FigureWidget,
        trace_index: int = 0,
        *,
        view_id: Optional[str] = None,
        keys: Optional[Sequence[Hashable]] = None,
        point_to_row: Optional[Callable[[Any], int]] = None,
        base_color: Optional[str] = None,
        x_field: str = "x",
        y_field: str = "y",
    ) -> None:
        self._figure = figure_widget
        self._trace = figure_widget.data[trace_index]
        self._view_id = str(view_id) if view_id is not None else f"plotly:{self._trace.uid}"
        self._point_keys = tuple(keys) if keys is not None else None
        self._point_to_row = point_to_row or int
        self._base_color = base_color
        self._x_field = x_field
        self._y_field = y_field
        self._emit: Any = None
        self._hover_debouncer: Optional[QueuedDebouncer] = None
        self._original_marker: Optional[dict[str, Any]] = None
        self._relayout_hooked = False
        self._wanted: frozenset = frozenset()

    @property
    def view_id(self) -> str:
        return self._view_id

    @property
    def trace(self) -> Any:
        return self._trace

    @property
    def figure_widget(self) -> go.FigureWidget:
        return self._figure

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def bind(self, emit: Any) -> None:
        self._emit = emit
        options = emit.options
        wanted = {options.on, options.off}
        self._wanted = frozenset(wanted)
        if options.debounce_ms > 0 and "hover" in wanted:
            self._hover_debouncer = self._make_hover_debouncer(emit, options.debounce_ms)
        if self._has_marker():
            marker = self._trace.marker
            self._original_marker = {"color": marker.color, "opacity": marker.opacity}

        trace = self._trace
        if "click" in wanted:
            trace.on_click(self._on_click)
        if "hover" in wanted:
            trace.on_hover(self._on_hover)
        if "unhover" in wanted:
            trace.on_unhover(self._on_unhover)
        if "select" in wanted:
            trace.on_selection(self._on_selection)
        if "deselect" in wanted:
            trace.on_deselect(self._on_deselect)
        if "relayout" in wanted and not self._relayout_hooked:
            self._figure.layout.on_change(self._on_relayout, "xaxis.range", "yaxis.range", append=True)
            self._relayout_hooked = True

    def _make_hover_debouncer(self, emit: Any, debounce_ms: int) -> Optional[QueuedDebouncer]:
        scheduler = getattr(emit, "scheduler", None)
        if not isinstance(scheduler, AsyncioScheduler):
            logger.debug("%r forwards hovers undebounced: the bus has no event loop", self._view_id)
            return None
        return QueuedDebouncer(self._forward, execute_every_ms=debounce_ms, loop=scheduler.loop)

    def unbind(self) -> None:
        if self._hover_debouncer is not None:
            self._hover_debouncer.cancel()
            self._hover_debouncer = None
        trace = self._trace
        trace.on_click(None)
        trace.on_hover(None)
        trace.on_unhover(None)
        trace.on_selection(None)
        trace.on_deselect(None)
        if self._original_marker is not None:
            with self._figure.batch_update():
                trace.marker.color = self._original_marker["color"]
                trace.marker.opacity = self._original_marker["opacity"]
            self._original_marker = None
        self._emit = None
        self._wanted = frozenset()

    # ------------------------------------------------------------------
    # Plotly callbacks -> events
    # ------------------------------------------------------------------

    def _payload(self, point_inds: Sequence[Any]) -> Locator:
        if self._point_keys is not None:
            return KeyList(self._point_keys[int(i)] for i in point_inds)
        return RowPositions(self._point_to_row(i) for i in point_inds)

    def _forward(self, kind: str, payload: Optional[Locator], raw: Any = None) -> None:
        if self._emit is None:
            return
        self._emit(kind, payload, raw=raw)

    def _on_click(self, trace: Any, points: Any, state: Any = None) -> None:
        if points.point_inds:
            self._forward("click", self._payload(points.point_inds), raw=points)

    def _on_hover(self, trace: Any, points: Any, state: Any = None) -> None:
        if not points.point_inds:
            return
        payload = self._payload(points.point_inds)
        if self._hover_debouncer is not None:
            self._hover_debouncer("hover", payload, points)
        else:
            self._forward("hover", payload, raw=points)

    def _on_unhover(self, trace: Any, points: Any, state: Any = None) -> None:
        if self._hover_debouncer is not None:
            # a queued hover must not land after the unhover that ends it
            self._hover_debouncer.cancel()
        self._forward("unhover", None, raw=points)

    def _on_selection(self, trace: Any, points: Any, selector: Any = None) -> None:
        self._forward("select", self._payload(points.point_inds), raw=selector)

    def _on_deselect(self, trace: Any, points: Any, *args: Any) -> None:
        self._forward("deselect", None, raw=points)

    def _on_relayout(self, layout: Any, x_range: Any, y_range: Any) -> None:
        if "relayout" not in self._wanted:
            return
        region = Region(
            x=tuple(x_range) if x_range is not None else None,
            y=tuple(y_range) if y_range is not None else None,
            x_field=self._x_field,
            y_field=self._y_field,
        )
        self._forward("relayout", region)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _has_marker(self) -> bool:
        return "marker" in self._trace

    def _point_count(self) -> int:
        if self._point_keys is not None:
            return len(self._point_keys)
        xs = getattr(self._trace, "x", None)
        if xs is None:
            xs = getattr(self._trace, "y", None)
        return 0 if xs is None else len(xs)

    def _keys_in_trace_order(self, n: int) -> List[Hashable]:
        if self._point_keys is not None:
            return list(self._point_keys)
        domain = self._emit.keys if self._emit is not None else ()
        out: List[Hashable] = []
        for i in range(n):
            row = self._point_to_row(i)
            out.append(domain[row] if 0 <= row < len(domain) else None)
        return out

    def _resolved_base_color(self) -> str:
        if self._base_color is not None:
            return self._base_color
        original = (self._original_marker or {}).get("color")
        if isinstance(original, str):
            return original
        return "#444444"

    def render(self, state: SelectionState) -> None:
        if not self._has_marker() or self._emit is None:
            return
        n = self._point_count()
        keys = self._keys_in_trace_order(n)
        base = self._resolved_base_color()

        if state.is_empty:
            colors: Any = self._original_marker["color"] if self._original_marker else base
            opacity: Any = self._original_marker["opacity"] if self._original_marker else None
        else:
            color_map = state.color_map()
            colors = [color_map.get(k, base) for k in keys]
            dim = self._emit.options.opacity_dim
            opacity = np.where([k in color_map for k in keys], 1.0, dim).tolist()

        with self._figure.batch_update():
            self._trace.marker.color = colors
            self._trace.marker.opacity = opacity
        logger.debug("rendered %r (revision %d, %d points)", self._view_id, state.revision, n)
