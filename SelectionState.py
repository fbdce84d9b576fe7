"""Immutable selection state snapshots.

``SelectionState`` is what the store holds and what every view adapter
receives in ``render``. A state is a stack of ``SelectionLayer`` objects:
transient mode keeps at most one layer, persistent modes append one layer per
committed selection. Views only ever see whole snapshots; the resolver builds
a new one for every change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Hashable, Optional, Tuple

from .highlight_options import Mode


@dataclass(frozen=True)
class SelectionLayer:
    """One committed selection.

    Parameters
    ----------
    keys : frozenset
        Selected keys of this layer.
    color : str
        Colour assigned when the layer was committed.
    source_id : str or None
        View that produced the selection.
    """

    keys: FrozenSet[Hashable]
    color: str
    source_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.keys, frozenset):
            object.__setattr__(self, "keys", frozenset(self.keys))


@dataclass(frozen=True)
class SelectionState:
    """Selection snapshot for one group.

    Parameters
    ----------
    group_id : hashable
        Owning group.
    mode : str
        Mode the state was resolved under.
    layers : tuple[SelectionLayer, ...]
        Committed layers, oldest first.
    pending_color : str or None
        Colour picked for the next layer (dynamic mode); ``None`` means the
        palette default.
    revision : int
        Monotonic counter bumped on every committed change.
    source_id : str or None
        View whose event produced this revision.
    """

    group_id: Hashable
    mode: Mode = "transient"
    layers: Tuple[SelectionLayer, ...] = field(default_factory=tuple)
    pending_color: Optional[str] = None
    revision: int = 0
    source_id: Optional[str] = None

    @classmethod
    def empty(cls, group_id: Hashable, mode: Mode = "transient") -> "SelectionState":
        return cls(group_id=group_id, mode=mode)

    @property
    def selected(self) -> FrozenSet[Hashable]:
        """Union of all layer keys."""
        if not self.layers:
            return frozenset()
        if len(self.layers) == 1:
            return self.layers[0].keys
        return frozenset().union(*(layer.keys for layer in self.layers))

    @property
    def is_empty(self) -> bool:
        return not any(layer.keys for layer in self.layers)

    def color_map(self) -> Dict[Hashable, str]:
        """Map each selected key to the colour of the newest layer holding it."""
        out: Dict[Hashable, str] = {}
        for layer in self.layers:
            for key in layer.keys:
                out[key] = layer.color
        return out

    def __repr__(self) -> str:
        return (
            f"SelectionState(group={self.group_id!r}, mode={self.mode!r}, "
            f"layers={len(self.layers)}, selected={len(self.selected)}, "
            f"revision={self.revision})"
        )
