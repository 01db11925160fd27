from __future__ import annotations

import pytest

from livestore.observable.lifecycle import (
    FOREVER,
    LifecycleError,
    LifecycleState,
    ObserverContext,
)


def test_context_is_active_from_started_upwards() -> None:
    context = ObserverContext("screen")
    assert context.is_active is False

    context.create()
    assert context.is_active is False

    context.activate()
    assert context.is_active is True

    context.resume()
    assert context.state is LifecycleState.RESUMED
    assert context.is_active is True

    context.deactivate()
    assert context.state is LifecycleState.CREATED
    assert context.is_active is False


def test_listeners_see_each_transition_once() -> None:
    context = ObserverContext("screen")
    seen: list[LifecycleState] = []
    context.add_listener(lambda ctx, state: seen.append(state))

    context.activate()
    context.activate()
    context.deactivate()
    context.destroy()

    assert seen == [LifecycleState.STARTED, LifecycleState.CREATED, LifecycleState.DESTROYED]


def test_removed_listener_is_not_called() -> None:
    context = ObserverContext("screen")
    seen: list[LifecycleState] = []

    def listener(ctx: ObserverContext, state: LifecycleState) -> None:
        seen.append(state)

    context.add_listener(listener)
    context.remove_listener(listener)
    context.activate()

    assert seen == []


def test_destroyed_is_terminal() -> None:
    context = ObserverContext("screen")
    context.destroy()

    assert context.is_destroyed is True
    with pytest.raises(LifecycleError):
        context.activate()


def test_context_cannot_start_destroyed() -> None:
    with pytest.raises(LifecycleError):
        ObserverContext("x", LifecycleState.DESTROYED)


def test_forever_context_is_always_active() -> None:
    assert FOREVER.is_active is True
    with pytest.raises(LifecycleError):
        FOREVER.deactivate()


def test_state_ordering() -> None:
    assert LifecycleState.RESUMED.is_at_least(LifecycleState.STARTED)
    assert not LifecycleState.CREATED.is_at_least(LifecycleState.STARTED)
    assert not LifecycleState.DESTROYED.is_at_least(LifecycleState.INITIALIZED)
