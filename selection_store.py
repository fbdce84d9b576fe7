"""Per-session selection store.

The store is the single source of truth for every group's ``SelectionState``.
It only supports whole-state reads and atomic whole-state replacement; the
event bus is the only writer and commits what the resolver returned. A state
that breaks the subset invariant is refused, so a faulty producer can never
leave the store half-updated or out of its key domain.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, Iterator

from .errors import UnknownGroup
from .group_registry import GroupRegistry
from .SelectionState import SelectionState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class SelectionStore:
    """Hold the current ``SelectionState`` of every registered group.

    Parameters
    ----------
    registry : GroupRegistry
        Registry used to validate states against each group's key domain.
    """

    def __init__(self, registry: GroupRegistry) -> None:
        self._registry = registry
        self._states: Dict[Hashable, SelectionState] = {}

    def init_group(self, group_id: Hashable) -> SelectionState:
        """Create the empty initial state for a freshly registered group."""
        group = self._registry.lookup(group_id)
        state = self._states.get(group_id)
        if state is None:
            state = SelectionState.empty(group_id, mode=group.options.mode)
            self._states[group_id] = state
        return state

    def drop_group(self, group_id: Hashable) -> None:
        """Forget the state of ``group_id`` (no-op when absent)."""
        self._states.pop(group_id, None)

    def get(self, group_id: Hashable) -> SelectionState:
        """Return the committed state for ``group_id``."""
        try:
            return self._states[group_id]
        except KeyError:
            raise UnknownGroup(group_id) from None

    def set(self, group_id: Hashable, state: SelectionState) -> None:
        """Atomically replace the state of ``group_id``.

        Raises
        ------
        UnknownGroup
            If the group has no state.
        ValueError
            If ``state`` belongs to another group or selects keys outside the
            group's key domain.
        """
        if group_id not in self._states:
            raise UnknownGroup(group_id)
        if state.group_id != group_id:
            raise ValueError(f"State for group {state.group_id!r} cannot be stored under {group_id!r}")
        domain = self._registry.lookup(group_id).key_index.domain
        stray = state.selected - domain
        if stray:
            raise ValueError(
                f"Selection for group {group_id!r} contains {len(stray)} key(s) outside its domain"
            )
        self._states[group_id] = state
        logger.debug("store[%r] <- %r", group_id, state)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._states

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._states))

    def __len__(self) -> int:
        return len(self._states)
