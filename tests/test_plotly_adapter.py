from __future__ import annotations

import asyncio
import threading
import time
from types import SimpleNamespace

import plotly.graph_objects as go
import pytest

from crosslink import LinkedSession
from crosslink.highlight_options import DEFAULT_PALETTE
from crosslink.plotly_adapter import PlotlyTraceAdapter, matrix_point_to_row
from crosslink.scheduling import ImmediateScheduler
from crosslink.ViewAdapter import CallbackAdapter, ViewAdapter

ROWS = [{"year": 2000, "v": 1.0}, {"year": 2001, "v": 2.0}, {"year": 2002, "v": 3.0}]


def _points(*inds: int) -> SimpleNamespace:
    return SimpleNamespace(point_inds=list(inds))


def _figure(**marker) -> go.FigureWidget:
    return go.FigureWidget(
        data=[go.Scatter(x=[2000, 2001, 2002], y=[1.0, 2.0, 3.0], mode="markers", marker=marker or None)]
    )


@pytest.fixture
def session():
    with LinkedSession(scheduler=ImmediateScheduler()) as s:
        yield s


def test_adapter_implements_the_protocol() -> None:
    adapter = PlotlyTraceAdapter(_figure(), view_id="scatter")
    assert isinstance(adapter, ViewAdapter)
    assert adapter.view_id == "scatter"


def test_click_selects_and_render_dims_unselected_points(session) -> None:
    years = session.share(ROWS, key="year", group="years", opacity_dim=0.3)
    fig = _figure()
    adapter = PlotlyTraceAdapter(fig, view_id="scatter")
    years.link(adapter)

    adapter._on_click(fig.data[0], _points(1))

    assert years.selected_keys == frozenset({2001})
    marker = fig.data[0].marker
    assert list(marker.color) == ["#444444", DEFAULT_PALETTE[0], "#444444"]
    assert list(marker.opacity) == [0.3, 1.0, 0.3]

    years.clear()
    assert fig.data[0].marker.color is None
    assert fig.data[0].marker.opacity is None


def test_empty_click_is_not_forwarded(session) -> None:
    years = session.share(ROWS, key="year", group="years")
    fig = _figure()
    adapter = PlotlyTraceAdapter(fig)
    years.link(adapter)
    adapter._on_click(fig.data[0], _points())
    assert years.selection.revision == 0


def test_explicit_point_keys_map_trace_order(session) -> None:
    years = session.share(ROWS, key="year", group="years", mode="persistent", palette=("red", "blue"))
    fig = _figure(color="grey")
    adapter = PlotlyTraceAdapter(fig, view_id="reversed", keys=[2002, 2001, 2000])
    years.link(adapter)

    adapter._on_click(fig.data[0], _points(0))
    years.select([2000])

    assert years.selected_keys == frozenset({2000, 2002})
    assert list(fig.data[0].marker.color) == ["red", "grey", "blue"]


def test_box_selection_and_deselect(session) -> None:
    years = session.share(ROWS, key="year", group="years", on="select")
    fig = _figure()
    adapter = PlotlyTraceAdapter(fig, view_id="scatter")
    years.link(adapter)

    adapter._on_selection(fig.data[0], _points(0, 2), None)
    assert years.selected_keys == frozenset({2000, 2002})

    adapter._on_deselect(fig.data[0], _points())
    assert years.selection.is_empty


def test_relayout_selects_the_visible_range(session) -> None:
    years = session.share(ROWS, key="year", group="years", on="relayout", coords={"x": "year", "y": "v"})
    fig = _figure()
    adapter = PlotlyTraceAdapter(fig, view_id="zoom")
    years.link(adapter)

    adapter._on_relayout(fig.layout, (2000.5, 2002), None)

    assert years.selected_keys == frozenset({2001, 2002})


def test_hover_is_debounced_on_the_event_loop() -> None:
    threads = []

    async def _main():
        with LinkedSession(on="hover", debounce_ms=20) as session:
            years = session.share(ROWS, key="year", group="years")
            fig = _figure()
            adapter = PlotlyTraceAdapter(fig, view_id="hover")
            years.link(CallbackAdapter("thread-log", lambda _state: threads.append(threading.current_thread())))
            years.link(adapter)
            await asyncio.sleep(0)

            adapter._on_hover(fig.data[0], _points(0))
            adapter._on_hover(fig.data[0], _points(2))
            await asyncio.sleep(0)
            assert years.selection.revision == 0

            await asyncio.sleep(0.1)
            assert years.selected_keys == frozenset({2002})

            # The unhover ends the hover, so the queued one never lands.
            adapter._on_hover(fig.data[0], _points(1))
            adapter._on_unhover(fig.data[0], _points())
            await asyncio.sleep(0.1)
            return years.selected_keys

    assert asyncio.run(_main()) == frozenset({2002})
    assert threads and all(t is threading.main_thread() for t in threads)


def test_hover_without_an_event_loop_is_forwarded_on_the_calling_thread(session) -> None:
    threads = []
    years = session.share(ROWS, key="year", group="years", on="hover", debounce_ms=20)
    fig = _figure()
    adapter = PlotlyTraceAdapter(fig, view_id="hover")
    years.link(CallbackAdapter("thread-log", lambda _state: threads.append(threading.current_thread())))
    years.link(adapter)

    adapter._on_hover(fig.data[0], _points(1))
    assert years.selected_keys == frozenset({2001})

    # Nothing is left to fire later from another thread.
    time.sleep(0.1)
    assert years.selection.revision == 1
    assert len(threads) == 2
    assert all(t is threading.main_thread() for t in threads)


class _CountingAdapter(PlotlyTraceAdapter):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.relayouts = 0

    def _on_relayout(self, layout, x_range, y_range) -> None:
        self.relayouts += 1
        super()._on_relayout(layout, x_range, y_range)


def test_relayout_hook_is_added_once_and_keeps_other_callbacks(session) -> None:
    years = session.share(ROWS, key="year", group="years", on="relayout", coords={"x": "year", "y": "v"})
    fig = _figure()
    others = []
    fig.layout.on_change(lambda _layout, x_range, _y: others.append(tuple(x_range)), "xaxis.range", "yaxis.range")
    adapter = _CountingAdapter(fig, view_id="zoom")
    sub = years.link(adapter)
    years.unlink(sub)
    years.link(adapter)

    fig.layout.xaxis.range = [2000.5, 2002]

    assert others == [(2000.5, 2002)]
    assert adapter.relayouts == 1
    assert years.selected_keys == frozenset({2001, 2002})


def test_two_relayout_views_share_one_figure(session) -> None:
    years = session.share(ROWS, key="year", group="years", on="relayout", coords={"x": "year", "y": "v"})
    values = session.share(ROWS, key="v", group="values", on="relayout", coords={"x": "year", "y": "v"})
    fig = go.FigureWidget(
        data=[
            go.Scatter(x=[2000, 2001, 2002], y=[1.0, 2.0, 3.0], mode="markers"),
            go.Scatter(x=[2000, 2001, 2002], y=[1.0, 2.0, 3.0], mode="markers"),
        ]
    )
    years.link(PlotlyTraceAdapter(fig, 0, view_id="years-zoom"))
    values_sub = values.link(PlotlyTraceAdapter(fig, 1, view_id="values-zoom"))

    fig.layout.xaxis.range = [1999, 2000.5]
    assert years.selected_keys == frozenset({2000})
    assert values.selected_keys == frozenset({1.0})

    # An unlinked view keeps its hook on the figure but stays silent.
    values.unlink(values_sub)
    fig.layout.xaxis.range = [2001.5, 2003]
    assert years.selected_keys == frozenset({2002})
    assert values.selected_keys == frozenset({1.0})


def test_unlink_restores_the_original_marker(session) -> None:
    years = session.share(ROWS, key="year", group="years")
    fig = _figure(color="blue", opacity=0.8)
    adapter = PlotlyTraceAdapter(fig, view_id="scatter")
    sub = years.link(adapter)
    adapter._on_click(fig.data[0], _points(0))
    assert list(fig.data[0].marker.color) == [DEFAULT_PALETTE[0], "blue", "blue"]

    years.unlink(sub)

    assert fig.data[0].marker.color == "blue"
    assert fig.data[0].marker.opacity == 0.8
    adapter._on_click(fig.data[0], _points(1))
    assert years.selected_keys == frozenset({2000})


def test_matrix_point_to_row() -> None:
    to_row = matrix_point_to_row(3)
    assert to_row([1, 2]) == 5
    assert to_row((0, 1)) == 1
    assert to_row(4) == 4


def test_traces_without_markers_render_nothing(session) -> None:
    pairs = session.share_matrix(["a", "b"], ["x", "y"], group="pairs")
    fig = go.FigureWidget(data=[go.Heatmap(z=[[1, 2], [3, 4]])])
    adapter = PlotlyTraceAdapter(fig, view_id="heat", point_to_row=matrix_point_to_row(2))
    pairs.link(adapter)

    adapter._on_click(fig.data[0], _points([1, 0]))

    assert pairs.selected_keys == frozenset({("b", "x")})
