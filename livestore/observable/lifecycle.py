"""
Observer contexts and their activation state.

An `ObserverContext` stands for whatever owns a subscription (a screen, a
session, a background job). Its state is driven externally; observable cells
consult it before every delivery and drop the subscription once the context
is destroyed.
"""

from __future__ import annotations

import enum
import threading
from typing import Callable, List

from livestore.utils.logging import get_logger

log = get_logger(__name__)


class LifecycleError(RuntimeError):
    """Raised on an invalid lifecycle transition."""


class LifecycleState(enum.IntEnum):
    DESTROYED = 0
    INITIALIZED = 1
    CREATED = 2
    STARTED = 3
    RESUMED = 4

    def is_at_least(self, other: "LifecycleState") -> bool:
        return self >= other


StateListener = Callable[["ObserverContext", LifecycleState], None]


class ObserverContext:
    """
    Owner of observer subscriptions with an explicit activation state.

    A context is active while its state is at least STARTED. DESTROYED is
    terminal.
    """

    def __init__(self, name: str = "context", state: LifecycleState = LifecycleState.INITIALIZED):
        if state is LifecycleState.DESTROYED:
            raise LifecycleError("A context cannot be created destroyed")
        self.name = name
        self._state = state
        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []

    def __repr__(self) -> str:
        return f"ObserverContext({self.name!r}, {self._state.name})"

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.is_at_least(LifecycleState.STARTED)

    @property
    def is_destroyed(self) -> bool:
        return self._state is LifecycleState.DESTROYED

    def add_listener(self, listener: StateListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def move_to(self, state: LifecycleState) -> None:
        with self._lock:
            if self._state is LifecycleState.DESTROYED:
                raise LifecycleError(f"{self!r} is destroyed")
            if state is self._state:
                return
            self._state = state
            listeners = list(self._listeners)
        log.debug("Context state changed", extra={"context": self.name, "state": state.name})
        for listener in listeners:
            listener(self, state)
        if state is LifecycleState.DESTROYED:
            with self._lock:
                self._listeners.clear()

    def create(self) -> None:
        self.move_to(LifecycleState.CREATED)

    def activate(self) -> None:
        self.move_to(LifecycleState.STARTED)

    def resume(self) -> None:
        self.move_to(LifecycleState.RESUMED)

    def deactivate(self) -> None:
        self.move_to(LifecycleState.CREATED)

    def destroy(self) -> None:
        self.move_to(LifecycleState.DESTROYED)


class _ForeverContext(ObserverContext):
    """Context that is always active; used by `observe_forever`."""

    def __init__(self) -> None:
        super().__init__("forever", LifecycleState.RESUMED)

    def move_to(self, state: LifecycleState) -> None:
        raise LifecycleError("The forever context cannot change state")


FOREVER = _ForeverContext()


__all__ = ["FOREVER", "LifecycleError", "LifecycleState", "ObserverContext"]
