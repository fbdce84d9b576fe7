"""Locator payloads carried by selection events.

A locator describes *which* observations an interaction touched, before the
key index turns it into canonical keys:

- ``RowPositions``: positions in the group's canonical row order (what a
  Plotly trace reports as ``point_inds``),
- ``KeyList``: literal keys, as sent by indirect-manipulation controls,
- ``Region``: a data-scale bounding box (brush),
- ``Lasso``: a data-scale polygon.

Pixel-scale geometry is representable (``scale="pixel"``) so that rendering
layers can forward what they have, but the key index refuses it with
``AmbiguousLocator``; converting pixels to data units is the renderer's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Literal, Optional, Tuple, Union

Scale = Literal["data", "pixel"]
Interval = Tuple[float, float]


@dataclass(frozen=True)
class RowPositions:
    """Row positions in canonical order."""

    positions: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", tuple(int(p) for p in self.positions))


@dataclass(frozen=True)
class KeyList:
    """Explicit keys, already known to the caller."""

    keys: Tuple[Hashable, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(self.keys))


@dataclass(frozen=True)
class Region:
    """Axis-aligned bounding box over two stored coordinates.

    Parameters
    ----------
    x, y : tuple[float, float] or None
        Inclusive bounds. ``None`` leaves that axis unconstrained, which gives
        one-dimensional brushes.
    x_field, y_field : str
        Names of the coordinates stored in the key index.
    scale : {"data", "pixel"}
        Unit of the bounds. Only ``"data"`` can be resolved.
    """

    x: Optional[Interval] = None
    y: Optional[Interval] = None
    x_field: str = "x"
    y_field: str = "y"
    scale: Scale = "data"


@dataclass(frozen=True)
class Lasso:
    """Closed polygon over two stored coordinates (vertices in order)."""

    xs: Tuple[float, ...]
    ys: Tuple[float, ...]
    x_field: str = "x"
    y_field: str = "y"
    scale: Scale = "data"

    def __post_init__(self) -> None:
        object.__setattr__(self, "xs", tuple(float(v) for v in self.xs))
        object.__setattr__(self, "ys", tuple(float(v) for v in self.ys))
        if len(self.xs) != len(self.ys):
            raise ValueError("Lasso needs the same number of x and y vertices")


Locator = Union[RowPositions, KeyList, Region, Lasso]
