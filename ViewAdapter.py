"""View adapter capability protocol.

Any object with this shape can take part in linking; there is no base class
to inherit from, so rendering libraries that share no code can still
cooperate. The bus drives the lifecycle:

``unregistered -> registered -> active <-> rendering -> active -> unregistered``

- ``bind(emit)`` is called on subscribe. The adapter installs its library
  hooks and keeps ``emit`` to report interactions.
- ``render(state)`` is called (deferred) after every committed change the
  adapter's subscription reacts to, and once right after subscribing.
- ``unbind()`` is called on unsubscribe and must remove the hooks.

``CallbackAdapter`` is the minimal implementation, useful for dependent
summary views and for driving a group from plain Python.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable

from .locators import Locator
from .SelectionState import SelectionState

if TYPE_CHECKING:
    from .event_bus import Emitter


@runtime_checkable
class ViewAdapter(Protocol):
    @property
    def view_id(self) -> str: ...

    def bind(self, emit: "Emitter") -> None: ...

    def unbind(self) -> None: ...

    def render(self, state: SelectionState) -> None: ...


class CallbackAdapter:
    """Adapter that forwards every rendered state to a callable.

    Parameters
    ----------
    view_id : str
        Adapter identity.
    callback : callable, optional
        Invoked as ``callback(state)`` on render. ``None`` makes a send-only
        view.

    Examples
    --------
    >>> seen = []
    >>> adapter = CallbackAdapter("summary", seen.append)
    >>> adapter.view_id
    'summary'
    """

    def __init__(self, view_id: str, callback: Optional[Callable[[SelectionState], Any]] = None) -> None:
        self._view_id = str(view_id)
        self._callback = callback
        self._emit: Optional["Emitter"] = None
        self.last_state: Optional[SelectionState] = None

    @property
    def view_id(self) -> str:
        return self._view_id

    @property
    def is_bound(self) -> bool:
        return self._emit is not None

    def bind(self, emit: "Emitter") -> None:
        self._emit = emit

    def unbind(self) -> None:
        self._emit = None

    def render(self, state: SelectionState) -> None:
        self.last_state = state
        if self._callback is not None:
            self._callback(state)

    def emit(self, kind: str, payload: Optional[Locator] = None, *, color: Optional[str] = None) -> None:
        """Report an interaction as if it happened in this view."""
        if self._emit is None:
            raise RuntimeError(f"Adapter {self._view_id!r} is not bound to a group")
        self._emit(kind, payload, color=color)
