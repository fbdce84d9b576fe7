"""Exception taxonomy for linked selection.

``UnknownGroup``, ``DuplicateGroup`` and ``AmbiguousLocator`` are raised
synchronously to the caller of the offending operation (registration,
emission or locator resolution) and are never retried.

``AdapterRenderFailure`` is different: the event bus builds it around the
exception a view adapter raised inside ``render`` and reports it (logger and
failure callbacks) without propagating, so sibling adapters keep rendering.
"""

from __future__ import annotations

from typing import Hashable, Optional

__all__ = [
    "CrosslinkError",
    "UnknownGroup",
    "DuplicateGroup",
    "AmbiguousLocator",
    "AdapterRenderFailure",
]


class CrosslinkError(Exception):
    """Base class for every error raised by ``crosslink``."""


class UnknownGroup(CrosslinkError, KeyError):
    """A group id was used before it was registered (or after teardown)."""

    def __init__(self, group_id: Hashable) -> None:
        super().__init__(group_id)
        self.group_id = group_id

    def __str__(self) -> str:
        return f"Unknown group: {self.group_id!r}"


class DuplicateGroup(CrosslinkError, ValueError):
    """A group id is already registered with a different key domain."""

    def __init__(self, group_id: Hashable) -> None:
        super().__init__(
            f"Group {group_id!r} is already registered with a conflicting key domain"
        )
        self.group_id = group_id


class AmbiguousLocator(CrosslinkError, ValueError):
    """A locator cannot be mapped onto data-scale coordinates."""


class AdapterRenderFailure(CrosslinkError, RuntimeError):
    """A view adapter raised while rendering a selection state.

    Parameters
    ----------
    view_id : str
        Identity of the failing adapter.
    group_id : hashable
        Group whose state was being rendered.
    revision : int
        Revision of the state the adapter failed to render.
    """

    def __init__(self, view_id: str, group_id: Hashable, revision: int, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(
            f"Adapter {view_id!r} failed to render group {group_id!r} "
            f"(revision {revision}){detail}"
        )
        self.view_id = view_id
        self.group_id = group_id
        self.revision = revision
        self.__cause__ = cause
