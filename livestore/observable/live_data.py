"""
Lifecycle-aware observable value cells.

`LiveData` holds the latest value of something (typically a query result)
and pushes it to subscribers whose `ObserverContext` is active. Delivery
rules:

- a subscriber receives the current value on activation and every later
  value while it stays active;
- while inactive it receives nothing; on reactivation it receives only the
  latest value, never the ones it missed;
- versions delivered to one subscriber strictly increase, so a stale value is
  never delivered after a newer one;
- subscriptions end automatically when their context is destroyed.

Usage:
    from livestore.observable import MutableLiveData, ObserverContext

    names = MutableLiveData[list]()
    screen = ObserverContext("screen")
    names.subscribe(screen, print)
    screen.activate()
    names.set_value(["Ada"])   # prints ['Ada']
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, List, Optional, TypeVar

from livestore.observable.dispatcher import Dispatcher, get_main_dispatcher
from livestore.observable.lifecycle import FOREVER, LifecycleState, ObserverContext
from livestore.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

_NOT_SET = object()
_START_VERSION = -1


class Subscription(Generic[T]):
    """Handle binding one callback to one context on one `LiveData`."""

    def __init__(
        self,
        live_data: Optional["LiveData[T]"],
        context: ObserverContext,
        callback: Callable[[T], None],
    ) -> None:
        self._live_data = live_data
        self.context = context
        self.callback = callback
        self.last_version = _START_VERSION
        self.active = False
        self.cancelled = live_data is None

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else ("active" if self.active else "inactive")
        return f"Subscription({self.context.name!r}, {state})"

    def cancel(self) -> None:
        if self._live_data is not None:
            self._live_data._remove(self)

    def _on_state_change(self, context: ObserverContext, state: LifecycleState) -> None:
        if self._live_data is None:
            return
        if state is LifecycleState.DESTROYED:
            self._live_data._remove(self)
        else:
            self._live_data._change_active(self, context.is_active)


class LiveData(Generic[T]):
    """
    Read-only observable cell; subclasses publish with `_set_value` and
    `_post_value`.

    `_set_value` delivers synchronously on the calling thread. `_post_value`
    hands the value to the dispatcher thread; posts that arrive before the
    dispatcher runs are coalesced and only the last one is delivered.
    """

    def __init__(self, value=_NOT_SET, dispatcher: Optional[Dispatcher] = None) -> None:
        self._lock = threading.RLock()
        self._value = value
        self._version = _START_VERSION if value is _NOT_SET else 0
        self._pending = _NOT_SET
        self._subscriptions: List[Subscription[T]] = []
        self._active_count = 0
        self._dispatching = False
        self._dispatch_invalidated = False
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            self._dispatcher = get_main_dispatcher()
        return self._dispatcher

    @property
    def value(self) -> Optional[T]:
        with self._lock:
            return None if self._value is _NOT_SET else self._value

    @property
    def version(self) -> int:
        return self._version

    def is_set(self) -> bool:
        return self._value is not _NOT_SET

    def has_observers(self) -> bool:
        with self._lock:
            return bool(self._subscriptions)

    def has_active_observers(self) -> bool:
        with self._lock:
            return self._active_count > 0

    def subscribe(self, context: ObserverContext, callback: Callable[[T], None]) -> Subscription[T]:
        """
        Register `callback` for values published while `context` is active.

        Subscribing with a destroyed context returns an inert subscription.
        """
        with self._lock:
            if context.is_destroyed:
                return Subscription(None, context, callback)
            for existing in self._subscriptions:
                if existing.callback is callback:
                    if existing.context is not context:
                        raise ValueError("Cannot bind the same callback to different contexts")
                    return existing
            sub = Subscription(self, context, callback)
            self._subscriptions.append(sub)
        context.add_listener(sub._on_state_change)
        if context.is_destroyed:
            self._remove(sub)
        else:
            self._change_active(sub, context.is_active)
        return sub

    def observe_forever(self, callback: Callable[[T], None]) -> Subscription[T]:
        """Register a callback that is always active until cancelled."""
        return self.subscribe(FOREVER, callback)

    def remove_observers(self, context: ObserverContext) -> None:
        with self._lock:
            subs = [s for s in self._subscriptions if s.context is context]
        for sub in subs:
            self._remove(sub)

    def on_active(self) -> None:
        """Called when the number of active subscribers goes from 0 to 1."""

    def on_inactive(self) -> None:
        """Called when the number of active subscribers drops to 0."""

    def _is_stale(self) -> bool:
        """
        Whether the held value is known to be outdated.

        Stale values are not delivered; a fresh value is expected to follow.
        """
        return False

    def _remove(self, sub: Subscription[T]) -> None:
        with self._lock:
            if sub.cancelled:
                return
            self._subscriptions.remove(sub)
        sub.context.remove_listener(sub._on_state_change)
        self._change_active(sub, False)
        sub.cancelled = True

    def _change_active(self, sub: Subscription[T], active: bool) -> None:
        with self._lock:
            if sub.cancelled or sub.active == active:
                return
            sub.active = active
            before = self._active_count
            self._active_count += 1 if active else -1
            became_active = before == 0 and active
            became_inactive = self._active_count == 0 and not active
        if became_active:
            self.on_active()
        if became_inactive:
            self.on_inactive()
        if active:
            self._dispatch(sub)

    def _consider_notify(self, sub: Subscription[T]) -> None:
        if sub.cancelled or not sub.active or not sub.context.is_active:
            return
        if sub.last_version >= self._version or self._is_stale():
            return
        sub.last_version = self._version
        sub.callback(self._value)

    def _dispatch(self, initiator: Optional[Subscription[T]]) -> None:
        with self._lock:
            if self._dispatching:
                # Re-entrant publish from a callback: restart the outer loop.
                self._dispatch_invalidated = True
                return
            self._dispatching = True
            try:
                while True:
                    self._dispatch_invalidated = False
                    if initiator is not None:
                        self._consider_notify(initiator)
                        initiator = None
                    else:
                        for sub in list(self._subscriptions):
                            self._consider_notify(sub)
                            if self._dispatch_invalidated:
                                break
                    if not self._dispatch_invalidated:
                        break
            finally:
                self._dispatching = False

    def _set_value(self, value: T) -> None:
        with self._lock:
            self._version += 1
            self._value = value
            self._dispatch(None)

    def _post_value(self, value: T) -> None:
        with self._lock:
            schedule = self._pending is _NOT_SET
            self._pending = value
        if schedule:
            self.dispatcher.submit(self._deliver_pending)

    def _post_value_if_changed(self, value: T) -> None:
        """
        Post `value` unless it equals the held value and nothing is pending.

        An unchanged value is not given a new version; subscribers that have
        not seen the held version yet still receive it on the dispatcher.
        """
        with self._lock:
            unchanged = (
                self._pending is _NOT_SET and self._value is not _NOT_SET and self._value == value
            )
        if unchanged:
            self.dispatcher.submit(self._redispatch)
        else:
            self._post_value(value)

    def _redispatch(self) -> None:
        self._dispatch(None)

    def _deliver_pending(self) -> None:
        with self._lock:
            value = self._pending
            self._pending = _NOT_SET
            if value is not _NOT_SET:
                self._set_value(value)


class MutableLiveData(LiveData[T]):
    """`LiveData` with public publishing methods."""

    def set_value(self, value: T) -> None:
        self._set_value(value)

    def post_value(self, value: T) -> None:
        self._post_value(value)


__all__ = ["LiveData", "MutableLiveData", "Subscription"]
