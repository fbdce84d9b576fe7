"""Selection policy coverage: transient, persistent and dynamic modes."""

from __future__ import annotations

import pytest

from crosslink.highlight_options import DEFAULT_PALETTE, HighlightOptions
from crosslink.selection_resolver import classify, resolve
from crosslink.SelectionEvent import SelectionEvent
from crosslink.SelectionState import SelectionLayer, SelectionState


def _event(kind: str, keys=(), *, source: str = "view", color=None, group="g") -> SelectionEvent:
    return SelectionEvent(source_id=source, group_id=group, kind=kind, color=color, keys=frozenset(keys))


def test_classify_follows_on_off_triggers() -> None:
    opts = HighlightOptions(on="hover")
    assert classify(_event("hover"), opts) == "select"
    assert classify(_event("set"), opts) == "select"
    assert classify(_event("doubleclick"), opts) == "clear"
    assert classify(_event("clear"), opts) == "clear"
    assert classify(_event("click"), opts) == "ignore"
    assert classify(_event("color", color="#fff"), opts) == "ignore"
    assert classify(_event("color", color="#fff"), HighlightOptions(mode="dynamic")) == "color"


def test_transient_select_replaces_the_single_layer() -> None:
    opts = HighlightOptions(color="red")
    state = SelectionState.empty("g")

    first = resolve(state, _event("click", {1}), opts)
    second = resolve(first, _event("click", {2, 3}, source="other"), opts)

    assert first.layers == (SelectionLayer(frozenset({1}), "red", "view"),)
    assert second.selected == frozenset({2, 3})
    assert len(second.layers) == 1
    assert second.revision == 2
    assert second.source_id == "other"


def test_repeating_the_same_transient_selection_is_a_no_op() -> None:
    opts = HighlightOptions()
    state = resolve(SelectionState.empty("g"), _event("click", {1}), opts)
    assert resolve(state, _event("click", {1}), opts) is state


def test_transient_empty_select_clears() -> None:
    opts = HighlightOptions()
    state = resolve(SelectionState.empty("g"), _event("click", {1}), opts)
    cleared = resolve(state, _event("click", ()), opts)
    assert cleared.is_empty
    assert cleared.revision == state.revision + 1


def test_clearing_an_empty_state_changes_nothing() -> None:
    state = SelectionState.empty("g")
    assert resolve(state, _event("doubleclick"), HighlightOptions()) is state


def test_ignored_kinds_return_the_same_state() -> None:
    state = SelectionState.empty("g")
    assert resolve(state, _event("hover", {1}), HighlightOptions(on="click")) is state


def test_persistent_select_appends_layers_with_palette_colours() -> None:
    opts = HighlightOptions(mode="persistent", on="select", palette=("#111111", "#222222"))
    state = SelectionState.empty("g", mode="persistent")
    for keys in ({1}, {2}, {3}):
        state = resolve(state, _event("select", keys), opts)

    assert [layer.color for layer in state.layers] == ["#111111", "#222222", "#111111"]
    assert state.selected == frozenset({1, 2, 3})
    assert state.mode == "persistent"


def test_persistent_empty_select_keeps_layers() -> None:
    opts = HighlightOptions(mode="persistent")
    state = resolve(SelectionState.empty("g"), _event("click", {1}), opts)
    assert resolve(state, _event("click", ()), opts) is state


def test_persistent_clear_drops_every_layer() -> None:
    opts = HighlightOptions(mode="persistent", on="select")
    state = SelectionState.empty("g")
    state = resolve(state, _event("select", {1}), opts)
    state = resolve(state, _event("select", {2}), opts)
    cleared = resolve(state, _event("deselect"), opts)
    assert cleared.layers == ()
    assert cleared.revision == 3


def test_dynamic_colour_choice_applies_to_next_layers() -> None:
    opts = HighlightOptions(mode="dynamic")
    state = SelectionState.empty("g", mode="dynamic")

    picked = resolve(state, _event("color", color="#ff0000", source="picker"), opts)
    assert picked.pending_color == "#ff0000"
    assert picked.revision == 1
    assert picked.layers == ()
    assert resolve(picked, _event("color", color="#ff0000"), opts) is picked

    selected = resolve(picked, _event("click", {1}), opts)
    assert selected.layers[-1].color == "#ff0000"

    explicit = resolve(selected, _event("click", {2}, color="#00ff00"), opts)
    assert explicit.color_map() == {1: "#ff0000", 2: "#00ff00"}


def test_dynamic_without_choice_falls_back_to_palette() -> None:
    opts = HighlightOptions(mode="dynamic")
    state = resolve(SelectionState.empty("g"), _event("click", {1}), opts)
    assert state.layers[0].color == DEFAULT_PALETTE[0]


def test_dynamic_clear_resets_pending_colour_even_without_layers() -> None:
    opts = HighlightOptions(mode="dynamic")
    picked = resolve(SelectionState.empty("g"), _event("color", color="#abcdef"), opts)
    cleared = resolve(picked, _event("clear"), opts)
    assert cleared.pending_color is None
    assert cleared.revision == picked.revision + 1


def test_newest_layer_wins_in_colour_map() -> None:
    opts = HighlightOptions(mode="persistent", palette=("a", "b"))
    state = SelectionState.empty("g")
    state = resolve(state, _event("click", {1, 2}), opts)
    state = resolve(state, _event("click", {2}), opts)
    assert state.color_map() == {1: "a", 2: "b"}


def test_events_for_another_group_are_rejected() -> None:
    with pytest.raises(ValueError, match="cannot be applied"):
        resolve(SelectionState.empty("g"), _event("click", {1}, group="h"), HighlightOptions())


def test_unresolved_events_select_nothing() -> None:
    event = SelectionEvent(source_id="v", group_id="g", kind="click")
    assert not event.is_resolved
    state = SelectionState.empty("g")
    assert resolve(state, event, HighlightOptions()) is state
