"""Key index: canonical keys, row positions and data-scale coordinates.

Purpose
-------
``KeyIndex`` is the immutable snapshot a data loader produces for one group.
It owns the canonical key order (one key per row, or per cell for matrix
data), the reverse ``key -> position`` map and any numeric coordinates
needed to evaluate geometric locators.

Architecture notes
------------------
- The index never mutates after construction; a new dataset means a new
  group.
- ``resolve`` always returns a subset of the key domain, which is what lets
  the selection store keep its subset invariant without re-checking every
  producer.
- Geometry is evaluated with numpy on the stored coordinate columns. Points
  whose coordinate is NaN never match.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Dict, FrozenSet, Hashable, Iterator, Optional, Sequence, Tuple

import numpy as np

from .errors import AmbiguousLocator
from .locators import KeyList, Lasso, Locator, Region, RowPositions

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class KeyIndex:
    """Immutable mapping between observation keys and canonical positions.

    Parameters
    ----------
    keys : iterable of hashable
        Canonical keys in row order. Keys must be unique.
    coords : mapping[str, sequence of float], optional
        Numeric coordinates per row, used by ``Region`` and ``Lasso``
        locators. Every column must have one value per key.

    Examples
    --------
    >>> idx = KeyIndex(["a", "b", "c"], coords={"x": [0.0, 1.0, 2.0]})
    >>> sorted(idx.resolve(RowPositions([0, 2])))
    ['a', 'c']
    >>> sorted(idx.resolve(Region(x=(0.5, 5.0))))
    ['b', 'c']
    """

    __slots__ = ("_keys", "_positions", "_coords", "_domain")

    def __init__(self, keys: Iterable[Hashable], *, coords: Optional[Mapping[str, Sequence[float]]] = None) -> None:
        ordered = tuple(keys)
        positions: Dict[Hashable, int] = {}
        for pos, key in enumerate(ordered):
            try:
                hash(key)
            except TypeError as exc:
                raise TypeError(f"Key at position {pos} is not hashable: {key!r}") from exc
            if key in positions:
                raise ValueError(f"Duplicate key {key!r} at positions {positions[key]} and {pos}")
            positions[key] = pos

        columns: Dict[str, np.ndarray] = {}
        for name, values in (coords or {}).items():
            arr = np.asarray(values, dtype=float)
            if arr.shape != (len(ordered),):
                raise ValueError(
                    f"Coordinate {name!r} has shape {arr.shape}; expected ({len(ordered)},)"
                )
            arr.setflags(write=False)
            columns[str(name)] = arr

        self._keys: Tuple[Hashable, ...] = ordered
        self._positions = positions
        self._coords = columns
        self._domain: FrozenSet[Hashable] = frozenset(ordered)

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        """Canonical keys in row order."""
        return self._keys

    @property
    def domain(self) -> FrozenSet[Hashable]:
        """Key domain as a frozen set."""
        return self._domain

    @property
    def coordinate_names(self) -> Tuple[str, ...]:
        return tuple(self._coords)

    def coordinate(self, name: str) -> np.ndarray:
        """Return the read-only coordinate column ``name``."""
        try:
            return self._coords[name]
        except KeyError:
            raise KeyError(f"No coordinate named {name!r}") from None

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._keys)

    def __contains__(self, key: object) -> bool:
        try:
            return key in self._positions
        except TypeError:
            return False

    def position(self, key: Hashable) -> int:
        """Return the canonical position of ``key``."""
        return self._positions[key]

    def positions_of(self, keys: Iterable[Hashable]) -> np.ndarray:
        """Return sorted positions of the known keys in ``keys``."""
        found = [self._positions[k] for k in keys if k in self._positions]
        return np.array(sorted(found), dtype=int)

    def mask_of(self, keys: Iterable[Hashable]) -> np.ndarray:
        """Return a boolean row mask that is ``True`` where the key is in ``keys``."""
        mask = np.zeros(len(self._keys), dtype=bool)
        mask[self.positions_of(keys)] = True
        return mask

    def same_domain(self, other: "KeyIndex") -> bool:
        """Whether ``other`` indexes exactly the same keys in the same order."""
        return self._keys == other._keys

    # ------------------------------------------------------------------
    # Locator resolution
    # ------------------------------------------------------------------

    def resolve(self, locator: Locator) -> FrozenSet[Hashable]:
        """Resolve ``locator`` into a subset of the key domain.

        Raises
        ------
        AmbiguousLocator
            For pixel-scale geometry or geometry over coordinates this index
            does not store.
        IndexError
            For row positions outside ``[0, len(self))``.
        TypeError
            For unsupported locator objects.
        """
        if isinstance(locator, KeyList):
            return self._resolve_keys(locator)
        if isinstance(locator, RowPositions):
            return self._resolve_positions(locator)
        if isinstance(locator, Region):
            return self._keys_where(self._region_mask(locator))
        if isinstance(locator, Lasso):
            return self._keys_where(self._lasso_mask(locator))
        raise TypeError(f"Unsupported locator type: {type(locator).__name__}")

    def _resolve_keys(self, locator: KeyList) -> FrozenSet[Hashable]:
        known = frozenset(k for k in locator.keys if k in self)
        if len(known) != len(set(locator.keys)):
            logger.debug("Dropped %d key(s) outside the key domain", len(set(locator.keys)) - len(known))
        return known

    def _resolve_positions(self, locator: RowPositions) -> FrozenSet[Hashable]:
        n = len(self._keys)
        out = set()
        for pos in locator.positions:
            if pos < 0 or pos >= n:
                raise IndexError(f"Row position {pos} out of range for {n} rows")
            out.add(self._keys[pos])
        return frozenset(out)

    def _require_xy(self, locator: Region | Lasso) -> Tuple[np.ndarray, np.ndarray]:
        if locator.scale != "data":
            raise AmbiguousLocator(
                f"{type(locator).__name__} is in {locator.scale!r} units; "
                "interaction payloads must carry data-scale values"
            )
        missing = [f for f in (locator.x_field, locator.y_field) if f not in self._coords]
        if isinstance(locator, Region):
            # An unconstrained axis does not need a stored coordinate.
            missing = [
                f for f, bounds in ((locator.x_field, locator.x), (locator.y_field, locator.y))
                if bounds is not None and f not in self._coords
            ]
        if missing:
            raise AmbiguousLocator(
                f"Cannot map {type(locator).__name__} onto data coordinates; "
                f"missing {', '.join(repr(m) for m in missing)} "
                f"(available: {list(self._coords)})"
            )
        nan = np.full(len(self._keys), np.nan)
        return self._coords.get(locator.x_field, nan), self._coords.get(locator.y_field, nan)

    def _region_mask(self, locator: Region) -> np.ndarray:
        xs, ys = self._require_xy(locator)
        mask = np.ones(len(self._keys), dtype=bool)
        for values, bounds in ((xs, locator.x), (ys, locator.y)):
            if bounds is None:
                continue
            lo, hi = sorted((float(bounds[0]), float(bounds[1])))
            mask &= (values >= lo) & (values <= hi)
        return mask

    def _lasso_mask(self, locator: Lasso) -> np.ndarray:
        xs, ys = self._require_xy(locator)
        px = np.asarray(locator.xs)
        py = np.asarray(locator.ys)
        inside = np.zeros(len(self._keys), dtype=bool)
        if len(px) < 3:
            return inside
        # Even-odd ray casting, one polygon edge at a time.
        j = len(px) - 1
        for i in range(len(px)):
            xi, yi, xj, yj = px[i], py[i], px[j], py[j]
            with np.errstate(divide="ignore", invalid="ignore"):
                crosses = ((yi > ys) != (yj > ys)) & (
                    xs < (xj - xi) * (ys - yi) / (yj - yi) + xi
                )
            inside ^= crosses
            j = i
        return inside

    def _keys_where(self, mask: np.ndarray) -> FrozenSet[Hashable]:
        return frozenset(self._keys[i] for i in np.flatnonzero(mask))

    def __repr__(self) -> str:
        return f"KeyIndex(n={len(self._keys)}, coords={list(self._coords)})"
