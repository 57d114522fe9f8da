"""Wrist-side publisher: decide the current ActivityState and push every change.

State sources:

    Sensor-derived   Every heart-rate sample is compared to a fixed
                     threshold (``bpm > 100`` by default).  A flip updates
                     local state, opens / closes the live stream, and sends
                     the new state.  While running, every sample is also
                     sent as telemetry.  While idle and unchanged nothing
                     is sent.

    Manual session   ``start_running()`` / ``stop_running()`` open and close
                     a sensor-backed activity session directly.  While a
                     session is open the threshold is not applied.

    Legacy buttons   ``LegacyStateSync`` has no sensor at all; it flips a
                     local boolean and sends a heart-rate-less message.

Local state is authoritative for the wrist's own display regardless of what
happens to the messages.  Sensor authorization failure leaves the publisher
inert for the rest of the process lifetime.

Threading: sensor callbacks arrive on the feed's context and are re-posted
to the dispatcher; every other entry point must already be on it.
"""

from __future__ import annotations

import asyncio
import logging

from runsync.sensors.base import (
    AuthorizationDeniedError,
    HeartRateSample,
    SensorDelegate,
    SensorFeed,
    SessionConfig,
    SessionCreateFailedError,
    SessionError,
    SessionHandle,
    SessionState,
    StreamHandle,
)
from runsync.sync.dispatch import Dispatcher
from runsync.sync.messenger import PeerMessenger
from runsync.sync.protocol import build_legacy_message, build_message, is_usable_heart_rate
from runsync.sync.state import ActivityState, ActivityStateHolder

logger = logging.getLogger("runsync.sync.publisher")

DEFAULT_RUNNING_THRESHOLD_BPM = 100.0


class StateSync(SensorDelegate):
    """Sensor-backed publisher with manual session overrides."""

    def __init__(
        self,
        feed: SensorFeed,
        messenger: PeerMessenger,
        holder: ActivityStateHolder,
        dispatcher: Dispatcher,
        *,
        running_threshold_bpm: float = DEFAULT_RUNNING_THRESHOLD_BPM,
        manual_override_enabled: bool = True,
        resend_standing_when_idle: bool = False,
    ) -> None:
        """Initialize the publisher.

        Args:
            feed:                      Heart-rate sensor feed.
            messenger:                 Reachability-gated sender.
            holder:                    The wrist's ActivityState.
            dispatcher:                Context that owns ``holder``.
            running_threshold_bpm:     Samples strictly above this mean running.
            manual_override_enabled:   False ignores start/stop commands
                                       (production builds).
            resend_standing_when_idle: Re-send ``standing`` when
                                       ``stop_running()`` finds nothing to stop.
        """
        self._feed = feed
        self._messenger = messenger
        self._holder = holder
        self._dispatcher = dispatcher
        self._threshold = running_threshold_bpm
        self._manual_override_enabled = manual_override_enabled
        self._resend_standing_when_idle = resend_standing_when_idle
        self._authorized: bool | None = None
        self._stream: StreamHandle | None = None
        self._session: SessionHandle | None = None
        self._command_lock = asyncio.Lock()
        feed.set_delegate(self)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ActivityState:
        return self._holder.state

    @property
    def is_inert(self) -> bool:
        return self._authorized is False

    @property
    def session(self) -> SessionHandle | None:
        return self._session

    @property
    def live_stream(self) -> StreamHandle | None:
        return self._stream

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> bool:
        """Request sensor authorization and start ambient observation.

        Returns:
            True if the publisher is live, False if it is permanently inert.
        """
        try:
            await self._feed.request_authorization()
        except AuthorizationDeniedError as exc:
            self._authorized = False
            logger.warning("Sensor authorization denied, publisher is inert: %s", exc)
            return False
        self._authorized = True
        self._feed.observe()
        logger.info(
            "Publisher active on %s (threshold %.0f BPM)",
            self._feed.DISPLAY_NAME,
            self._threshold,
        )
        return True

    async def close(self) -> None:
        """Close any open session and live stream."""
        if self._session is not None:
            await self.stop_running()
        self._stop_stream()

    # ------------------------------------------------------------------
    # SensorDelegate callbacks; may be called from any context
    # ------------------------------------------------------------------

    def on_heart_rate_samples(self, samples: list[HeartRateSample]) -> None:
        if samples:
            self._dispatcher.post(self.handle_sample, samples[-1].bpm)

    def on_session_state_change(
        self,
        handle: SessionHandle,
        state: SessionState,
        error: Exception | None = None,
    ) -> None:
        if state is SessionState.FAILED:
            logger.error(
                "Sensor session %s failed: %s", handle.session_id, error or SessionError("unknown")
            )
        elif state in (SessionState.ENDED, SessionState.STOPPED):
            self._dispatcher.post(self._handle_session_closed, handle)
        else:
            logger.debug("Sensor session %s: %s", handle.session_id, state.value)

    # ------------------------------------------------------------------
    # Sensor-derived state machine (dispatcher context)
    # ------------------------------------------------------------------

    def handle_sample(self, bpm: float) -> None:
        """Fold one heart-rate sample into local state."""
        self._dispatcher.assert_current()
        if self.is_inert:
            return
        if not is_usable_heart_rate(bpm):
            logger.warning("Dropping unusable heart-rate sample: %r", bpm)
            return

        if self._session is not None:
            self._announce_running(bpm)
            return

        was_running = self._holder.state.is_running
        is_now_running = bpm > self._threshold

        if is_now_running and not was_running:
            logger.info("Heart rate %.0f BPM above threshold: running", bpm)
            self._start_stream()
            self._announce_running(bpm)
        elif was_running and not is_now_running:
            logger.info("Heart rate %.0f BPM at or below threshold: standing", bpm)
            self._go_idle()
        elif is_now_running:
            self._announce_running(bpm)

    def _handle_session_closed(self, handle: SessionHandle) -> None:
        if self._session is None or self._session.session_id != handle.session_id:
            return
        logger.info("Sensor session %s ended outside the app", handle.session_id)
        self._session = None
        self._go_idle()

    # ------------------------------------------------------------------
    # Manual session commands (dispatcher context)
    # ------------------------------------------------------------------

    async def start_running(self) -> bool:
        """Open an activity session and announce ``running``.

        Manual commands are serialized, so a start that overlaps another
        start sees the first session and is ignored.

        Returns:
            True if a session was opened.
        """
        self._dispatcher.assert_current()
        if not self._manual_allowed("start_running"):
            return False

        async with self._command_lock:
            if self._session is not None:
                logger.info("start_running: session %s already open", self._session.session_id)
                return False

            try:
                handle = await self._feed.begin_session(SessionConfig())
            except SessionCreateFailedError as exc:
                logger.warning("Could not start running session: %s", exc)
                return False

            self._session = handle
            self._start_stream()
            self._announce_running(self._holder.state.heart_rate)
            logger.info("Running session %s started", handle.session_id)
            return True

    async def stop_running(self) -> bool:
        """Close the activity session and announce ``standing``.

        With nothing to stop this is a no-op unless
        ``resend_standing_when_idle`` is set.  A stop that overlaps another
        stop finds nothing left to stop.

        Returns:
            True if a ``standing`` message was produced.
        """
        self._dispatcher.assert_current()
        if not self._manual_allowed("stop_running"):
            return False

        async with self._command_lock:
            handle = self._session
            if handle is None and not self._holder.state.is_running:
                if self._resend_standing_when_idle:
                    self._holder.commit(is_running=False, heart_rate=0.0)
                    self._send_state()
                    return True
                logger.debug("stop_running: already stopped")
                return False

            if handle is not None:
                try:
                    await self._feed.end_session(handle)
                except SessionError as exc:
                    logger.error("Could not end session %s: %s", handle.session_id, exc)
                    return False
                self._session = None
                logger.info("Running session %s stopped", handle.session_id)

            self._go_idle()
            return True

    def _manual_allowed(self, command: str) -> bool:
        if self.is_inert:
            logger.warning("%s ignored: sensor authorization was denied", command)
            return False
        if not self._manual_override_enabled:
            logger.warning("%s ignored: manual override disabled in this build", command)
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _announce_running(self, bpm: float) -> None:
        self._holder.commit(is_running=True, heart_rate=bpm)
        self._send_state()

    def _go_idle(self) -> None:
        self._stop_stream()
        self._holder.commit(is_running=False, heart_rate=0.0)
        self._send_state()

    def _send_state(self) -> None:
        self._messenger.send(build_message(self._holder.state))

    def _start_stream(self) -> None:
        if self._stream is not None:
            self._feed.stop_live_stream(self._stream)
        self._stream = self._feed.start_live_stream()

    def _stop_stream(self) -> None:
        if self._stream is None:
            return
        self._feed.stop_live_stream(self._stream)
        self._stream = None


class LegacyStateSync:
    """Sensorless publisher driven by two buttons.

    Each press flips the local flag, updates the status text, and sends a
    message without heart rate.  Presses are never de-duplicated.
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STANDING = "STANDING"

    def __init__(self, messenger: PeerMessenger, holder: ActivityStateHolder) -> None:
        self._messenger = messenger
        self._holder = holder
        self.status = self.IDLE

    @property
    def state(self) -> ActivityState:
        return self._holder.state

    def run(self) -> None:
        self._press(True)

    def stand(self) -> None:
        self._press(False)

    def _press(self, running: bool) -> None:
        self._messenger.send(build_legacy_message(running))
        self.status = self.RUNNING if running else self.STANDING
        self._holder.commit(is_running=running)
