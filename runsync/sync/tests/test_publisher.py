"""Tests for the wrist-side publishers (StateSync and LegacyStateSync)."""

from __future__ import annotations

import asyncio

import pytest

from runsync.sensors.base import SessionConfig, SessionHandle
from runsync.sensors.simulated import SimulatedSensorFeed
from runsync.sync.dispatch import ManualDispatcher
from runsync.sync.messenger import PeerMessenger
from runsync.sync.publisher import LegacyStateSync, StateSync
from runsync.sync.receiver import StateReceiver
from runsync.sync.state import ActivityState, ActivityStateHolder
from runsync.transport.loopback import LoopbackChannel

from runsync.sync.tests.conftest import IDLE, emit_all, running, standing


# ---------------------------------------------------------------------------
# Sensor-derived state
# ---------------------------------------------------------------------------


class TestSensorDerivedState:
    @pytest.mark.asyncio
    async def test_threshold_scenario_sends_expected_messages(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        assert await publisher.activate() is True

        emit_all(feed, wrist_dispatcher, [70, 85, 105, 120, 95])

        assert wrist_channel.sent == [running(105), running(120), standing()]
        assert publisher.state == IDLE

    @pytest.mark.asyncio
    async def test_idle_samples_send_nothing(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [60, 72, 100, 88])
        assert wrist_channel.sent == []

    @pytest.mark.asyncio
    async def test_threshold_is_strict(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [100])
        assert publisher.state.is_running is False
        emit_all(feed, wrist_dispatcher, [100.5])
        assert publisher.state.is_running is True

    @pytest.mark.asyncio
    async def test_each_flip_sends_once(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [110, 90, 80, 115, 70])

        actions = [p["action"] for p in wrist_channel.sent]
        assert actions == ["running", "standing", "running", "standing"]

    @pytest.mark.asyncio
    async def test_local_state_updates_when_peer_unreachable(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        messenger: PeerMessenger,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        wrist_channel.reachable = False

        emit_all(feed, wrist_dispatcher, [130, 135])

        assert publisher.state == ActivityState(is_running=True, heart_rate=135.0)
        assert wrist_channel.sent == []
        assert messenger.stats.skipped == 2

    @pytest.mark.asyncio
    async def test_samples_wait_for_dispatcher(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
    ) -> None:
        await publisher.activate()
        feed.emit(150)
        assert publisher.state == IDLE
        wrist_dispatcher.run_pending()
        assert publisher.state.is_running is True

    @pytest.mark.asyncio
    async def test_custom_threshold(
        self,
        feed: SimulatedSensorFeed,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_dispatcher: ManualDispatcher,
    ) -> None:
        publisher = StateSync(
            feed, messenger, wrist_holder, wrist_dispatcher, running_threshold_bpm=140
        )
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [120, 141])
        assert publisher.state == ActivityState(is_running=True, heart_rate=141.0)


class TestLiveStream:
    @pytest.mark.asyncio
    async def test_stream_opens_on_running_and_closes_on_standing(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
    ) -> None:
        await publisher.activate()

        emit_all(feed, wrist_dispatcher, [120])
        assert feed.active_stream_count == 1
        assert publisher.live_stream is not None

        emit_all(feed, wrist_dispatcher, [80])
        assert feed.active_stream_count == 0
        assert publisher.live_stream is None

    @pytest.mark.asyncio
    async def test_manual_start_replaces_existing_stream(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [125])
        first = publisher.live_stream

        assert await publisher.start_running() is True

        assert feed.active_stream_count == 1
        assert publisher.live_stream is not None
        assert publisher.live_stream != first


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_denied_authorization_leaves_publisher_inert(
        self,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        feed = SimulatedSensorFeed(authorized=False)
        publisher = StateSync(feed, messenger, wrist_holder, wrist_dispatcher)

        assert await publisher.activate() is False
        assert publisher.is_inert
        assert feed.is_observing is False

        publisher.handle_sample(150)
        assert await publisher.start_running() is False
        assert await publisher.stop_running() is False

        assert publisher.state == IDLE
        assert wrist_channel.sent == []


# ---------------------------------------------------------------------------
# Manual session commands
# ---------------------------------------------------------------------------


class TestManualSession:
    @pytest.mark.asyncio
    async def test_start_running_announces_running(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()

        assert await publisher.start_running() is True

        assert wrist_channel.sent == [running(0)]
        assert publisher.state == ActivityState(is_running=True, heart_rate=0.0)
        assert len(feed.open_sessions) == 1

    @pytest.mark.asyncio
    async def test_threshold_not_applied_during_session(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()

        emit_all(feed, wrist_dispatcher, [80, 95])

        assert publisher.state == ActivityState(is_running=True, heart_rate=95.0)
        assert wrist_channel.sent == [running(0), running(80), running(95)]

    @pytest.mark.asyncio
    async def test_second_start_is_ignored(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
    ) -> None:
        await publisher.activate()
        assert await publisher.start_running() is True
        assert await publisher.start_running() is False
        assert len(feed.open_sessions) == 1

    @pytest.mark.asyncio
    async def test_session_create_failure_changes_nothing(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        feed.fail_session_create = True

        assert await publisher.start_running() is False

        assert publisher.state == IDLE
        assert publisher.session is None
        assert wrist_channel.sent == []

    @pytest.mark.asyncio
    async def test_stop_running_announces_standing(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()
        emit_all(feed, wrist_dispatcher, [128])

        assert await publisher.stop_running() is True
        wrist_dispatcher.run_pending()

        assert wrist_channel.sent[-1] == standing()
        assert publisher.state == IDLE
        assert publisher.session is None
        assert feed.open_sessions == []
        assert feed.active_stream_count == 0

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_a_no_op(
        self,
        publisher: StateSync,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        assert await publisher.stop_running() is False
        assert wrist_channel.sent == []

    @pytest.mark.asyncio
    async def test_stop_when_idle_resends_standing_if_configured(
        self,
        feed: SimulatedSensorFeed,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        publisher = StateSync(
            feed,
            messenger,
            wrist_holder,
            wrist_dispatcher,
            resend_standing_when_idle=True,
        )
        await publisher.activate()

        assert await publisher.stop_running() is True
        assert await publisher.stop_running() is True

        assert wrist_channel.sent == [standing(), standing()]
        assert publisher.state == IDLE

    @pytest.mark.asyncio
    async def test_stop_cancels_sensor_derived_running(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [140])

        assert await publisher.stop_running() is True

        assert wrist_channel.sent == [running(140), standing()]
        assert feed.active_stream_count == 0

    @pytest.mark.asyncio
    async def test_session_end_failure_keeps_running(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()
        feed.fail_session_end = True

        assert await publisher.stop_running() is False

        assert publisher.state.is_running is True
        assert publisher.session is not None
        assert wrist_channel.sent == [running(0)]

    @pytest.mark.asyncio
    async def test_session_ended_outside_app_goes_idle(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()
        assert publisher.session is not None

        feed.end_externally(publisher.session)
        assert publisher.state.is_running is True
        wrist_dispatcher.run_pending()

        assert publisher.session is None
        assert publisher.state == IDLE
        assert wrist_channel.sent == [running(0), standing()]

    @pytest.mark.asyncio
    async def test_manual_override_disabled(
        self,
        feed: SimulatedSensorFeed,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        publisher = StateSync(
            feed,
            messenger,
            wrist_holder,
            wrist_dispatcher,
            manual_override_enabled=False,
        )
        await publisher.activate()

        assert await publisher.start_running() is False
        assert publisher.session is None
        assert wrist_channel.sent == []

        emit_all(feed, wrist_dispatcher, [130])
        assert publisher.state.is_running is True

    @pytest.mark.asyncio
    async def test_close_ends_open_session(
        self,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()

        await publisher.close()

        assert feed.open_sessions == []
        assert feed.active_stream_count == 0
        assert wrist_channel.sent[-1] == standing()


# ---------------------------------------------------------------------------
# End to end: wrist publisher → channel → phone receiver
# ---------------------------------------------------------------------------


class TestPhoneMirror:
    @pytest.mark.asyncio
    async def test_phone_tracks_wrist(
        self,
        publisher: StateSync,
        receiver: StateReceiver,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        phone_dispatcher: ManualDispatcher,
    ) -> None:
        await publisher.activate()

        emit_all(feed, wrist_dispatcher, [70, 105, 120])
        phone_dispatcher.run_pending()
        assert receiver.state == ActivityState(is_running=True, heart_rate=120.0)
        assert receiver.state == publisher.state

        emit_all(feed, wrist_dispatcher, [95])
        phone_dispatcher.run_pending()
        assert receiver.state == IDLE
        assert receiver.messages_applied == 3

    @pytest.mark.asyncio
    async def test_phone_keeps_stale_state_while_unreachable(
        self,
        publisher: StateSync,
        receiver: StateReceiver,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        phone_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        emit_all(feed, wrist_dispatcher, [125])
        phone_dispatcher.run_pending()

        wrist_channel.reachable = False
        emit_all(feed, wrist_dispatcher, [90])
        phone_dispatcher.run_pending()

        assert publisher.state == IDLE
        assert receiver.state == ActivityState(is_running=True, heart_rate=125.0)


# ---------------------------------------------------------------------------
# Legacy buttons
# ---------------------------------------------------------------------------


class TestLegacyStateSync:
    def test_buttons_send_heart_rate_less_messages(
        self,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_channel: LoopbackChannel,
    ) -> None:
        legacy = LegacyStateSync(messenger, wrist_holder)
        assert legacy.status == LegacyStateSync.IDLE

        legacy.run()
        assert legacy.status == LegacyStateSync.RUNNING
        assert legacy.state.is_running is True

        legacy.stand()
        assert legacy.status == LegacyStateSync.STANDING
        assert legacy.state.is_running is False

        assert wrist_channel.sent == [{"action": "running"}, {"action": "standing"}]

    def test_presses_are_not_deduplicated(
        self,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_channel: LoopbackChannel,
    ) -> None:
        legacy = LegacyStateSync(messenger, wrist_holder)
        legacy.run()
        legacy.run()
        assert wrist_channel.sent == [{"action": "running"}, {"action": "running"}]

    def test_status_updates_even_when_unreachable(
        self,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_channel: LoopbackChannel,
    ) -> None:
        wrist_channel.reachable = False
        legacy = LegacyStateSync(messenger, wrist_holder)
        legacy.run()
        assert legacy.status == LegacyStateSync.RUNNING
        assert wrist_channel.sent == []

    def test_phone_keeps_heart_rate_from_legacy_message(
        self,
        messenger: PeerMessenger,
        wrist_holder: ActivityStateHolder,
        wrist_channel: LoopbackChannel,
        receiver: StateReceiver,
        phone_dispatcher: ManualDispatcher,
    ) -> None:
        wrist_channel.send(running(140))
        phone_dispatcher.run_pending()

        LegacyStateSync(messenger, wrist_holder).stand()
        phone_dispatcher.run_pending()

        assert receiver.state == ActivityState(is_running=False, heart_rate=140.0)


# ---------------------------------------------------------------------------
# Overlapping manual commands
# ---------------------------------------------------------------------------


class YieldingSensorFeed(SimulatedSensorFeed):
    """Simulated feed whose session calls give up the loop before completing."""

    async def begin_session(self, config: SessionConfig) -> SessionHandle:
        await asyncio.sleep(0)
        return await super().begin_session(config)

    async def end_session(self, handle: SessionHandle) -> None:
        await asyncio.sleep(0)
        await super().end_session(handle)


@pytest.fixture
def yielding_feed() -> YieldingSensorFeed:
    return YieldingSensorFeed(interval_seconds=0)


@pytest.fixture
def yielding_publisher(
    yielding_feed: YieldingSensorFeed,
    messenger: PeerMessenger,
    wrist_holder: ActivityStateHolder,
    wrist_dispatcher: ManualDispatcher,
) -> StateSync:
    return StateSync(yielding_feed, messenger, wrist_holder, wrist_dispatcher)


class TestOverlappingCommands:
    @pytest.mark.asyncio
    async def test_concurrent_starts_open_one_session(
        self,
        yielding_publisher: StateSync,
        yielding_feed: YieldingSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await yielding_publisher.activate()

        results = await asyncio.gather(
            yielding_publisher.start_running(), yielding_publisher.start_running()
        )

        assert sorted(results) == [False, True]
        assert len(yielding_feed.open_sessions) == 1
        assert wrist_channel.sent == [running(0)]

        await yielding_publisher.stop_running()
        assert yielding_feed.open_sessions == []
        assert yielding_feed.active_stream_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_stops_send_standing_once(
        self,
        yielding_publisher: StateSync,
        yielding_feed: YieldingSensorFeed,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await yielding_publisher.activate()
        await yielding_publisher.start_running()

        results = await asyncio.gather(
            yielding_publisher.stop_running(), yielding_publisher.stop_running()
        )

        assert sorted(results) == [False, True]
        assert wrist_channel.sent == [running(0), standing()]
        assert yielding_publisher.state == IDLE
        assert yielding_feed.open_sessions == []


# ---------------------------------------------------------------------------
# Unusable samples
# ---------------------------------------------------------------------------


class TestUnusableSamples:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", [-1.0, float("nan"), float("inf")])
    async def test_dropped_during_manual_session(
        self,
        bad: float,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()
        await publisher.start_running()

        emit_all(feed, wrist_dispatcher, [bad])

        assert publisher.state == ActivityState(is_running=True, heart_rate=0.0)
        assert wrist_channel.sent == [running(0)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", [-1.0, float("nan"), float("inf")])
    async def test_dropped_while_sensor_running(
        self,
        bad: float,
        publisher: StateSync,
        feed: SimulatedSensorFeed,
        wrist_dispatcher: ManualDispatcher,
        wrist_channel: LoopbackChannel,
    ) -> None:
        await publisher.activate()

        emit_all(feed, wrist_dispatcher, [120, bad, 125])

        assert publisher.state == ActivityState(is_running=True, heart_rate=125.0)
        assert wrist_channel.sent == [running(120), running(125)]
