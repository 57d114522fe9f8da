"""Shared fixtures for the sync core tests.

Each test gets a wrist / phone pair wired through an in-process loopback
channel.  Both sides use ManualDispatchers, so nothing touches state until
the test drains the relevant dispatcher.
"""

from __future__ import annotations

from typing import Any

import pytest

from runsync.sensors.simulated import SimulatedSensorFeed
from runsync.sync.dispatch import ManualDispatcher
from runsync.sync.messenger import PeerMessenger
from runsync.sync.publisher import StateSync
from runsync.sync.receiver import StateReceiver
from runsync.sync.state import ActivityState, ActivityStateHolder
from runsync.transport.base import ActivationState, ChannelDelegate
from runsync.transport.loopback import LoopbackChannel


class RecordingDelegate(ChannelDelegate):
    """Channel delegate that records every event it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_activation_complete(
        self, state: ActivationState, error: Exception | None
    ) -> None:
        self.events.append(("activation", state, error))

    def on_message(self, payload: dict[str, Any]) -> None:
        self.events.append(("message", payload))

    def on_inactive(self) -> None:
        self.events.append(("inactive",))

    def on_deactivate(self) -> None:
        self.events.append(("deactivate",))


# ---------------------------------------------------------------------------
# Channel fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def channels() -> tuple[LoopbackChannel, LoopbackChannel]:
    return LoopbackChannel.pair()


@pytest.fixture
def wrist_channel(channels) -> LoopbackChannel:
    return channels[0]


@pytest.fixture
def phone_channel(channels) -> LoopbackChannel:
    return channels[1]


# ---------------------------------------------------------------------------
# Phone side
# ---------------------------------------------------------------------------


@pytest.fixture
def phone_dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def phone_holder(phone_dispatcher: ManualDispatcher) -> ActivityStateHolder:
    return ActivityStateHolder(phone_dispatcher)


@pytest.fixture
def receiver(
    phone_channel: LoopbackChannel,
    phone_holder: ActivityStateHolder,
    phone_dispatcher: ManualDispatcher,
) -> StateReceiver:
    r = StateReceiver(phone_channel, phone_holder, phone_dispatcher)
    r.start()
    return r


# ---------------------------------------------------------------------------
# Wrist side
# ---------------------------------------------------------------------------


@pytest.fixture
def wrist_dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def wrist_holder(wrist_dispatcher: ManualDispatcher) -> ActivityStateHolder:
    return ActivityStateHolder(wrist_dispatcher)


@pytest.fixture
def messenger(wrist_channel: LoopbackChannel) -> PeerMessenger:
    m = PeerMessenger(wrist_channel)
    m.activate()
    return m


@pytest.fixture
def feed() -> SimulatedSensorFeed:
    return SimulatedSensorFeed(interval_seconds=0)


@pytest.fixture
def publisher(
    feed: SimulatedSensorFeed,
    messenger: PeerMessenger,
    wrist_holder: ActivityStateHolder,
    wrist_dispatcher: ManualDispatcher,
) -> StateSync:
    """Publisher before ``activate()``; tests activate it themselves."""
    return StateSync(feed, messenger, wrist_holder, wrist_dispatcher)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def emit_all(
    feed: SimulatedSensorFeed, dispatcher: ManualDispatcher, bpms: list[float]
) -> None:
    """Emit each reading and drain the wrist dispatcher after it."""
    for bpm in bpms:
        feed.emit(bpm)
        dispatcher.run_pending()


def running(heart_rate: float) -> dict[str, Any]:
    return {"action": "running", "heartRate": heart_rate}


def standing(heart_rate: float = 0.0) -> dict[str, Any]:
    return {"action": "standing", "heartRate": heart_rate}


IDLE = ActivityState()
