"""ipywidgets adapters for indirect manipulation.

Two controls are provided:

- ``SelectorAdapter`` wraps a ``SelectMultiple`` (or single ``Dropdown``) whose
  options are the group's keys. Picking values emits a ``set`` event with an
  explicit key list; emptying it emits ``clear``. Rendering writes the
  selected keys back so the control follows direct manipulation in other
  views. In persistent and dynamic modes, adding items emits ``set`` with the
  added keys only (one new layer), and removing an item emits ``clear``
  followed by ``set`` with what is left, since layers cannot lose keys. That
  restart also drops selected keys the control does not offer.
- ``ColorPickerAdapter`` wraps a ``ColorPicker`` for dynamic mode. Changing
  the colour emits a ``color`` event that sets the colour of the next layer;
  a clear resets the picker to its default.

Both guard against echo: values written during ``render`` are not sent back
to the bus.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Optional, Sequence

import ipywidgets as widgets
from IPython.display import display

from .locators import KeyList
from .SelectionState import SelectionState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def _default_label(key: Hashable) -> str:
    if isinstance(key, tuple):
        return " / ".join(str(part) for part in key)
    return str(key)


class SelectorAdapter:
    """Dropdown/select-multiple control bound to a group's keys.

    Parameters
    ----------
    view_id : str
        Adapter identity.
    multiple : bool, default=True
        ``SelectMultiple`` when true, ``Dropdown`` otherwise.
    label : callable, optional
        Maps a key to its option label.
    description : str
        Widget description.
    keys : sequence, optional
        Restrict the offered options to these keys (default: whole domain).

    Examples
    --------
    >>> selector = SelectorAdapter("cities-dropdown")  # doctest: +SKIP
    >>> shared.link(selector)  # doctest: +SKIP
    >>> selector  # doctest: +SKIP
    """

    def __init__(
        self,
        view_id: str,
        *,
        multiple: bool = True,
        label: Optional[Callable[[Hashable], str]] = None,
        description: str = "",
        keys: Optional[Sequence[Hashable]] = None,
    ) -> None:
        self._view_id = str(view_id)
        self._multiple = bool(multiple)
        self._label = label or _default_label
        self._keys = tuple(keys) if keys is not None else None
        self._emit: Any = None
        self._syncing = False
        self._offered: tuple = ()
        if self._multiple:
            self.widget = widgets.SelectMultiple(options=(), description=description)
        else:
            self.widget = widgets.Dropdown(options=(), value=None, description=description)

    @property
    def view_id(self) -> str:
        return self._view_id

    def bind(self, emit: Any) -> None:
        self._emit = emit
        self._offered = tuple(self._keys if self._keys is not None else emit.keys)
        options = [(self._label(k), k) for k in self._offered]
        self._syncing = True
        try:
            self.widget.options = options
            if not self._multiple:
                self.widget.value = None
        finally:
            self._syncing = False
        self.widget.observe(self._on_value_change, names="value")

    def unbind(self) -> None:
        self.widget.unobserve(self._on_value_change, names="value")
        self._emit = None

    def _on_value_change(self, change: Any) -> None:
        if self._syncing or self._emit is None:
            return
        new = change["new"] if isinstance(change, dict) else change.new
        if self._multiple:
            chosen = tuple(new or ())
        else:
            chosen = () if new is None else (new,)
        if not chosen:
            self._emit("clear", None, raw=change)
        elif self._multiple and self._emit.options.is_persistent:
            old = change["old"] if isinstance(change, dict) else change.old
            self._emit_layered(tuple(old or ()), chosen, change)
        else:
            self._emit("set", KeyList(chosen), raw=change)

    def _emit_layered(self, old: tuple, chosen: tuple, change: Any) -> None:
        if set(old) - set(chosen):
            self._emit("clear", None, raw=change)
            self._emit("set", KeyList(chosen), raw=change)
            return
        added = tuple(k for k in chosen if k not in old)
        if added:
            self._emit("set", KeyList(added), raw=change)

    def render(self, state: SelectionState) -> None:
        order = {k: i for i, k in enumerate(self._offered)}
        selected = sorted((k for k in state.selected if k in order), key=order.__getitem__)
        self._syncing = True
        try:
            if self._multiple:
                self.widget.value = tuple(selected)
            else:
                # A dropdown shows a single key; anything else reads as no choice.
                self.widget.value = selected[0] if len(selected) == 1 else None
        finally:
            self._syncing = False

    def _ipython_display_(self, **kwargs: Any) -> None:
        display(self.widget)


class ColorPickerAdapter:
    """Colour picker for dynamic (persistent + user-coloured) selection.

    Parameters
    ----------
    view_id : str
        Adapter identity.
    default : str, optional
        Picker colour when no colour has been chosen; defaults to the first
        colour of the group's palette.
    description : str
        Widget description.
    """

    def __init__(self, view_id: str, *, default: Optional[str] = None, description: str = "Color") -> None:
        self._view_id = str(view_id)
        self._default = default
        self._emit: Any = None
        self._syncing = False
        self.widget = widgets.ColorPicker(concise=False, description=description, value=default or "#636efa")

    @property
    def view_id(self) -> str:
        return self._view_id

    @property
    def default(self) -> str:
        """Colour shown when no colour is pending."""
        if self._default is not None:
            return self._default
        if self._emit is not None:
            return self._emit.options.palette[0]
        return "#636efa"

    def bind(self, emit: Any) -> None:
        if not emit.options.is_dynamic:
            logger.warning(
                "Color picker %r bound to group %r in %r mode; colour choices will be ignored",
                self._view_id, emit.group_id, emit.options.mode,
            )
        self._emit = emit
        self._set_value(self.default)
        self.widget.observe(self._on_value_change, names="value")

    def unbind(self) -> None:
        self.widget.unobserve(self._on_value_change, names="value")
        self._emit = None

    def _set_value(self, value: str) -> None:
        self._syncing = True
        try:
            self.widget.value = value
        finally:
            self._syncing = False

    def _on_value_change(self, change: Any) -> None:
        if self._syncing or self._emit is None:
            return
        new = change["new"] if isinstance(change, dict) else change.new
        self._emit("color", None, color=new, raw=change)

    def render(self, state: SelectionState) -> None:
        self._set_value(state.pending_color or self.default)

    def _ipython_display_(self, **kwargs: Any) -> None:
        display(self.widget)
