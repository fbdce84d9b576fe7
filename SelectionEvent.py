"""Standardized interaction event payloads.

This module defines ``SelectionEvent``, the immutable message every view
adapter (and indirect-manipulation control) hands to the event bus, plus the
vocabulary of event kinds the resolver understands.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, FrozenSet, Hashable, Optional

from .locators import Locator

EVENT_KINDS: tuple[str, ...] = (
    "hover",
    "unhover",
    "click",
    "doubleclick",
    "select",
    "deselect",
    "relayout",
    "set",
    "clear",
    "color",
)
"""Recognised values for ``SelectionEvent.kind``.

``set`` is emitted by indirect controls (explicit key list) and always counts
as a selection. ``clear`` always clears. ``color`` only carries a colour
choice for dynamic mode.
"""


@dataclass(frozen=True)
class SelectionEvent:
    """Normalized interaction event emitted by a view.

    Parameters
    ----------
    source_id : str
        Identity of the emitting view.
    group_id : hashable
        Group whose selection the event targets.
    kind : str
        One of :data:`EVENT_KINDS`.
    payload : Locator or None
        Which observations the interaction touched. ``None`` is read as an
        empty selection.
    color : str, optional
        Colour chosen by the user (``color`` events, dynamic mode).
    keys : frozenset or None
        Canonical keys, filled in by the bus after key resolution. Producers
        leave it ``None``.
    raw : Any, optional
        Library payload the event was built from (debugging only).

    Examples
    --------
    >>> from crosslink.locators import KeyList  # doctest: +SKIP
    >>> SelectionEvent("scatter", "years", "click", KeyList([2005]))  # doctest: +SKIP
    """

    source_id: str
    group_id: Hashable
    kind: str
    payload: Optional[Locator] = None
    color: Optional[str] = None
    keys: Optional[FrozenSet[Hashable]] = None
    raw: Any = None

    def __post_init__(self) -> None:
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {self.kind!r}; expected one of {EVENT_KINDS}")
        if self.keys is not None and not isinstance(self.keys, frozenset):
            object.__setattr__(self, "keys", frozenset(self.keys))

    @property
    def is_resolved(self) -> bool:
        return self.keys is not None

    def resolved(self, keys: FrozenSet[Hashable]) -> "SelectionEvent":
        """Return a copy carrying the canonical ``keys``."""
        return replace(self, keys=frozenset(keys))
