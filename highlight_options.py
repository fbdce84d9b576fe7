"""Highlight policy options shared by every view in a group.

This module centralizes the selection policy knobs (mode, trigger events,
colours, dimming, timing) in one frozen dataclass, ``HighlightOptions``, and
documents each field in ``HIGHLIGHT_OPTIONS`` so that help text and tests have
a single place to look.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Hashable, Literal, Optional, Tuple

import plotly.colors

from .SelectionEvent import EVENT_KINDS

Mode = Literal["transient", "persistent", "dynamic"]
MODES: tuple[str, ...] = ("transient", "persistent", "dynamic")

# Kinds a view can be configured to select on.
TRIGGER_KINDS: tuple[str, ...] = ("hover", "click", "select", "relayout")

# Default "off" trigger for each "on" trigger.
DEFAULT_OFF: dict[str, str] = {
    "hover": "doubleclick",
    "click": "doubleclick",
    "select": "deselect",
    "relayout": "doubleclick",
}

DEFAULT_PALETTE: Tuple[str, ...] = tuple(plotly.colors.qualitative.Plotly)

HIGHLIGHT_OPTIONS: dict[str, str] = {
    "mode": "Selection mode: 'transient' (new selection replaces old), 'persistent' (selections accumulate as layers) or 'dynamic' (persistent with a user-chosen colour per layer).",
    "on": "Event kind that selects: hover, click, select (drag/box/lasso) or relayout.",
    "off": "Event kind that clears. Defaults to doubleclick, or deselect when on='select'.",
    "color": "Highlight colour for transient mode. Defaults to the first palette colour.",
    "palette": "Colours assigned to successive persistent layers (cycled).",
    "opacity_dim": "Opacity applied to unselected marks while a selection is active (0..1).",
    "debounce_ms": "Minimum spacing between hover events forwarded by adapters. 0 disables debouncing.",
    "render_timeout_ms": "Soft render budget; slower adapters are logged, never aborted. None disables.",
    "default_values": "Keys selected when the group is created.",
}


@dataclass(frozen=True)
class HighlightOptions:
    """Selection policy for one group.

    Parameters
    ----------
    mode : {"transient", "persistent", "dynamic"}
        See :data:`HIGHLIGHT_OPTIONS`.
    on, off : str
        Trigger kinds. ``off`` defaults from ``on`` (see ``DEFAULT_OFF``).
    color : str or None
        Transient highlight colour.
    palette : tuple[str, ...]
        Layer colours for persistent modes.
    opacity_dim : float
        Opacity of unselected marks.
    debounce_ms : int
        Hover debounce cadence for adapters that support it.
    render_timeout_ms : float or None
        Soft per-render budget.
    default_values : tuple
        Initial selection.

    Examples
    --------
    >>> HighlightOptions(mode="persistent", on="select").off
    'deselect'
    """

    mode: Mode = "transient"
    on: str = "click"
    off: Optional[str] = None
    color: Optional[str] = None
    palette: Tuple[str, ...] = DEFAULT_PALETTE
    opacity_dim: float = 0.2
    debounce_ms: int = 0
    render_timeout_ms: Optional[float] = 250.0
    default_values: Tuple[Hashable, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}")
        if self.on not in TRIGGER_KINDS:
            raise ValueError(f"on must be one of {TRIGGER_KINDS}, got {self.on!r}")
        if self.off is None:
            object.__setattr__(self, "off", DEFAULT_OFF[self.on])
        elif self.off not in EVENT_KINDS:
            raise ValueError(f"off must be one of {EVENT_KINDS}, got {self.off!r}")
        if self.off == self.on:
            raise ValueError(f"on and off triggers must differ (both {self.on!r})")

        palette = tuple(str(c) for c in self.palette)
        if not palette:
            raise ValueError("palette must contain at least one colour")
        object.__setattr__(self, "palette", palette)

        opacity = float(self.opacity_dim)
        if not 0.0 <= opacity <= 1.0:
            raise ValueError(f"opacity_dim must be within [0, 1], got {self.opacity_dim!r}")
        object.__setattr__(self, "opacity_dim", opacity)

        if int(self.debounce_ms) < 0:
            raise ValueError("debounce_ms must be >= 0")
        object.__setattr__(self, "debounce_ms", int(self.debounce_ms))

        if self.render_timeout_ms is not None and self.render_timeout_ms <= 0:
            raise ValueError("render_timeout_ms must be > 0 or None")

        if isinstance(self.default_values, (str, bytes)):
            object.__setattr__(self, "default_values", (self.default_values,))
        else:
            object.__setattr__(self, "default_values", tuple(self.default_values))

    @property
    def is_persistent(self) -> bool:
        """Whether selections accumulate as layers."""
        return self.mode != "transient"

    @property
    def is_dynamic(self) -> bool:
        return self.mode == "dynamic"

    @property
    def highlight_color(self) -> str:
        """Colour used for the transient layer."""
        return self.color if self.color is not None else self.palette[0]

    def layer_color(self, layer_index: int) -> str:
        """Palette colour assigned to the ``layer_index``-th persistent layer."""
        return self.palette[layer_index % len(self.palette)]

    def with_overrides(self, **overrides: Any) -> "HighlightOptions":
        """Return a copy with ``overrides`` applied (unknown names raise)."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise TypeError(f"Unknown highlight option(s): {', '.join(unknown)}")
        if "on" in overrides and "off" not in overrides:
            overrides["off"] = None
        return replace(self, **overrides)
