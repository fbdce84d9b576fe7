"""Group registry: which shared dataset each group id stands for."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, Iterator, Optional, Union

from .errors import DuplicateGroup, UnknownGroup
from .highlight_options import HighlightOptions
from .key_index import KeyIndex


@dataclass(frozen=True)
class Group:
    """A shared-data scope.

    Parameters
    ----------
    id : hashable
        Group identifier.
    key_index : KeyIndex
        Canonical keys (and coordinates) of the group's dataset.
    options : HighlightOptions
        Selection policy applied to every event of the group.
    """

    id: Hashable
    key_index: KeyIndex
    options: HighlightOptions = field(default_factory=HighlightOptions)

    @property
    def mode(self) -> str:
        return self.options.mode


class GroupRegistry:
    """Own the ``group id -> Group`` mapping of one session."""

    def __init__(self) -> None:
        self._groups: Dict[Hashable, Group] = {}

    def register(
        self,
        group_id: Hashable,
        key_domain: Union[KeyIndex, Iterable[Hashable]],
        options: Optional[HighlightOptions] = None,
    ) -> Group:
        """Register ``group_id`` over ``key_domain`` and return the group.

        Registering the same id again with the same keys (same order) returns
        the existing group; the first registration's options win.

        Raises
        ------
        DuplicateGroup
            If ``group_id`` is registered with a different key domain.
        """
        index = key_domain if isinstance(key_domain, KeyIndex) else KeyIndex(key_domain)
        existing = self._groups.get(group_id)
        if existing is not None:
            if not existing.key_index.same_domain(index):
                raise DuplicateGroup(group_id)
            return existing
        group = Group(id=group_id, key_index=index, options=options or HighlightOptions())
        self._groups[group_id] = group
        return group

    def lookup(self, group_id: Hashable) -> Group:
        """Return the group registered as ``group_id``."""
        try:
            return self._groups[group_id]
        except KeyError:
            raise UnknownGroup(group_id) from None

    def unregister(self, group_id: Hashable) -> None:
        """Remove ``group_id`` (no-op when absent)."""
        self._groups.pop(group_id, None)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._groups

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._groups))

    def __len__(self) -> int:
        return len(self._groups)
