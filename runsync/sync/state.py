"""ActivityState and its observable holder.

``ActivityState`` is the fact mirrored between the wrist and the phone.  Each
process owns exactly one ``ActivityStateHolder``; the channel only carries
immutable snapshots of it.

The holder replaces auto-notifying published fields with an explicit
subscription: listeners run synchronously on the dispatcher's context after
every committed mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from runsync.sync.dispatch import Dispatcher

logger = logging.getLogger("runsync.sync.state")

StateListener = Callable[["ActivityState"], None]


@dataclass(frozen=True)
class ActivityState:
    """Synchronized activity fact.

    Attributes:
        is_running: Whether an activity session is currently considered active.
        heart_rate: Most recent heart rate in BPM.  ``0`` means "no reading".
                    Only meaningful while ``is_running`` is True.
    """

    is_running: bool = False
    heart_rate: float = 0.0


class Subscription:
    """Handle returned by ``ActivityStateHolder.subscribe()``.

    The registration is invalidated when ``cancel()`` is called; cancelling
    twice is harmless.
    """

    def __init__(self, holder: ActivityStateHolder, listener: StateListener) -> None:
        self._holder = holder
        self._listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._holder._remove(self._listener)
            self.active = False


class ActivityStateHolder:
    """Single-owner, observable container for a process's ActivityState."""

    def __init__(
        self, dispatcher: Dispatcher, initial: ActivityState | None = None
    ) -> None:
        self._dispatcher = dispatcher
        self._state = initial or ActivityState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ActivityState:
        return self._state

    def subscribe(self, listener: StateListener) -> Subscription:
        """Register a listener called after every committed mutation.

        Args:
            listener: Callable receiving the new ActivityState.

        Returns:
            Subscription whose ``cancel()`` removes the listener.
        """
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def commit(
        self, *, is_running: bool | None = None, heart_rate: float | None = None
    ) -> ActivityState:
        """Update one or both fields and notify listeners.

        Must run on the dispatcher's context.

        Returns:
            The newly committed state.
        """
        changes: dict[str, object] = {}
        if is_running is not None:
            changes["is_running"] = is_running
        if heart_rate is not None:
            changes["heart_rate"] = float(heart_rate)
        return self.set(replace(self._state, **changes))

    def set(self, state: ActivityState) -> ActivityState:
        """Replace the whole state and notify listeners.

        Notification happens even when ``state`` equals the current value.
        """
        self._dispatcher.assert_current()
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("ActivityState listener %r failed", listener)
        return state
