"""Selection policy: combine the current state with one resolved event.

``resolve`` is a pure function. It never touches the store; the event bus
commits whatever it returns. Returning the *same* state object signals
"nothing changed" and the bus skips the fan-out.

Policy table
------------
================  ===============================  ==========================
mode              select event                     clear event
================  ===============================  ==========================
transient         replace the sole layer           drop the sole layer
persistent        append layer, next palette       drop every layer
                  colour
dynamic           append layer, user-chosen        drop every layer, reset
                  colour                           the colour picker
================  ===============================  ==========================

An empty select is a clear in transient mode and a no-op otherwise.
"""

from __future__ import annotations

from dataclasses import replace
from typing import FrozenSet, Hashable

from .highlight_options import HighlightOptions
from .SelectionEvent import SelectionEvent
from .SelectionState import SelectionLayer, SelectionState


def classify(event: SelectionEvent, options: HighlightOptions) -> str:
    """Return ``"select"``, ``"clear"``, ``"color"`` or ``"ignore"`` for ``event``."""
    if event.kind == "clear" or event.kind == options.off:
        return "clear"
    if event.kind == "set" or event.kind == options.on:
        return "select"
    if event.kind == "color":
        return "color" if options.is_dynamic else "ignore"
    return "ignore"


def resolve(state: SelectionState, event: SelectionEvent, options: HighlightOptions) -> SelectionState:
    """Compute the state that follows ``state`` after ``event``.

    Parameters
    ----------
    state : SelectionState
        Current committed state of the group.
    event : SelectionEvent
        Event whose ``keys`` were already resolved by the key index.
    options : HighlightOptions
        The group's policy.

    Returns
    -------
    SelectionState
        A new state, or ``state`` itself when the event changes nothing.
    """
    if event.group_id != state.group_id:
        raise ValueError(
            f"Event for group {event.group_id!r} cannot be applied to group {state.group_id!r}"
        )
    action = classify(event, options)
    if action == "ignore":
        return state
    if action == "clear":
        return _clear(state, event, options)
    if action == "color":
        return _pick_color(state, event)

    keys: FrozenSet[Hashable] = event.keys if event.keys is not None else frozenset()
    if not keys:
        if options.is_persistent:
            return state
        return _clear(state, event, options)

    if not options.is_persistent:
        layer = SelectionLayer(keys=keys, color=options.highlight_color, source_id=event.source_id)
        if state.layers == (layer,):
            return state
        return _commit(state, event, options, layers=(layer,))

    if options.is_dynamic:
        color = event.color or state.pending_color or options.layer_color(len(state.layers))
    else:
        color = options.layer_color(len(state.layers))
    layer = SelectionLayer(keys=keys, color=color, source_id=event.source_id)
    return _commit(state, event, options, layers=state.layers + (layer,))


def _clear(state: SelectionState, event: SelectionEvent, options: HighlightOptions) -> SelectionState:
    reset_picker = options.is_dynamic and state.pending_color is not None
    if not state.layers and not reset_picker:
        return state
    return _commit(state, event, options, layers=(), pending_color=None)


def _pick_color(state: SelectionState, event: SelectionEvent) -> SelectionState:
    if event.color == state.pending_color:
        return state
    return replace(
        state,
        pending_color=event.color,
        revision=state.revision + 1,
        source_id=event.source_id,
    )


def _commit(state: SelectionState, event: SelectionEvent, options: HighlightOptions, **changes) -> SelectionState:
    return replace(
        state,
        mode=options.mode,
        revision=state.revision + 1,
        source_id=event.source_id,
        **changes,
    )
