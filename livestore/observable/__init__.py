"""
Observable package for livestore.

Lifecycle-aware value cells, the observer contexts that gate their delivery,
and the dispatcher thread that delivers posted values.
"""

from livestore.observable.dispatcher import Dispatcher, get_main_dispatcher
from livestore.observable.lifecycle import (
    FOREVER,
    LifecycleError,
    LifecycleState,
    ObserverContext,
)
from livestore.observable.live_data import LiveData, MutableLiveData, Subscription

__all__ = [
    "Dispatcher",
    "get_main_dispatcher",
    "FOREVER",
    "LifecycleError",
    "LifecycleState",
    "ObserverContext",
    "LiveData",
    "MutableLiveData",
    "Subscription",
]
