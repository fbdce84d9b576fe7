"""Build groups and key indexes from canonical rows.

The data loader is the only place keys are assigned. ``load_group`` accepts
the usual tabular shapes without depending on a dataframe library:

- a sequence of mappings (``[{"year": 2000, ...}, ...]``),
- a sequence of plain objects (attributes are read with ``getattr``),
- a sequence of tuples (fields are integer positions),
- any frame-like object exposing ``to_dict("records")`` and ``index``
  (pandas, for example); without an explicit key the index labels become the
  keys.

``load_matrix`` covers matrix-shaped domains (pairwise grids, heatmaps) where
each *cell* is one observation keyed by ``(row_label, col_label)``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, Union

from .group_registry import Group
from .highlight_options import HighlightOptions
from .key_index import KeyIndex

FieldSpec = Union[str, int, Callable[[Any], Any]]
CoordSpec = Union[FieldSpec, Sequence[float]]


def _records(rows: Any) -> Tuple[List[Any], Optional[List[Hashable]]]:
    """Return ``(records, index_labels)`` for ``rows``."""
    to_dict = getattr(rows, "to_dict", None)
    if callable(to_dict) and hasattr(rows, "index") and hasattr(rows, "columns"):
        return list(to_dict("records")), list(rows.index)
    if isinstance(rows, Mapping):
        raise TypeError("rows must be a sequence of records, not a mapping")
    return list(rows), None


def field_getter(spec: FieldSpec) -> Callable[[Any], Any]:
    """Return a callable reading ``spec`` from one row.

    ``spec`` may be a callable (used as is), an ``int`` (tuple position) or a
    ``str`` (mapping key, falling back to an attribute).
    """
    if callable(spec):
        return spec
    if isinstance(spec, int):
        return lambda row: row[spec]
    if isinstance(spec, str):
        def _get(row: Any) -> Any:
            if isinstance(row, Mapping):
                return row[spec]
            try:
                return getattr(row, spec)
            except AttributeError:
                raise KeyError(f"Row {row!r} has no field {spec!r}") from None
        return _get
    raise TypeError(f"Unsupported field spec: {spec!r}")


def _key_of(value: Any) -> Hashable:
    # numpy scalars and lists from frame records become plain hashables
    item = getattr(value, "item", None)
    if callable(item) and getattr(value, "shape", None) == ():
        return item()
    if isinstance(value, list):
        return tuple(value)
    return value


def load_group(
    rows: Any,
    key: Optional[FieldSpec] = None,
    *,
    group_id: Hashable,
    coords: Optional[Mapping[str, CoordSpec]] = None,
    options: Optional[HighlightOptions] = None,
) -> Tuple[Group, KeyIndex]:
    """Assign keys to ``rows`` and return the group with its key index.

    Parameters
    ----------
    rows : sequence or frame-like
        Canonical rows, in the order views refer to them by position.
    key : str, int or callable, optional
        Key extractor. ``None`` uses frame index labels when available and
        row positions otherwise.
    group_id : hashable
        Identifier of the group being declared.
    coords : mapping[str, spec], optional
        Coordinates stored for geometric locators. Each value is a field
        spec or an explicit sequence of numbers (one per row).
    options : HighlightOptions, optional
        Selection policy of the group.

    Returns
    -------
    (Group, KeyIndex)
        The (not yet registered) group and its index.

    Raises
    ------
    ValueError
        If two rows produce the same key, or a coordinate column has the
        wrong length.

    Examples
    --------
    >>> rows = [{"year": y, "n": y - 1999} for y in range(2000, 2003)]
    >>> group, index = load_group(rows, "year", group_id="years", coords={"x": "year"})
    >>> index.keys
    (2000, 2001, 2002)
    """
    records, index_labels = _records(rows)
    if key is not None:
        getter = field_getter(key)
        keys = [_key_of(getter(r)) for r in records]
    elif index_labels is not None:
        keys = [_key_of(label) for label in index_labels]
    else:
        keys = list(range(len(records)))

    columns: Dict[str, List[float]] = {}
    for name, spec in (coords or {}).items():
        if isinstance(spec, (str, int)) or callable(spec):
            getter = field_getter(spec)
            columns[name] = [_as_float(getter(r)) for r in records]
        else:
            columns[name] = [_as_float(v) for v in spec]

    index = KeyIndex(keys, coords=columns)
    group = Group(id=group_id, key_index=index, options=options or HighlightOptions())
    return group, index


def load_matrix(
    row_labels: Iterable[Hashable],
    col_labels: Iterable[Hashable],
    *,
    group_id: Hashable,
    options: Optional[HighlightOptions] = None,
) -> Tuple[Group, KeyIndex, Tuple[Dict[str, Hashable], ...]]:
    """Declare a matrix-shaped group with one key per cell.

    Cells are laid out row-major, keyed ``(row_label, col_label)``, and carry
    integer ``row``/``col`` coordinates so rectangular brushes work on the
    grid.

    Returns
    -------
    (Group, KeyIndex, rows)
        ``rows`` holds one ``{"row": ..., "col": ...}`` record per cell.
    """
    rlabels = list(row_labels)
    clabels = list(col_labels)
    keys: List[Tuple[Hashable, Hashable]] = []
    rows: List[Dict[str, Hashable]] = []
    row_pos: List[float] = []
    col_pos: List[float] = []
    for i, r in enumerate(rlabels):
        for j, c in enumerate(clabels):
            keys.append((r, c))
            rows.append({"row": r, "col": c})
            row_pos.append(float(i))
            col_pos.append(float(j))
    index = KeyIndex(keys, coords={"row": row_pos, "col": col_pos})
    group = Group(id=group_id, key_index=index, options=options or HighlightOptions())
    return group, index, tuple(rows)


def _as_float(value: Any) -> float:
    if value is None:
        return float("nan")
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")
