"""Scripted in-memory heart-rate feed.

Useful wherever there is no real sensor: the test suite, local demos, and
environments without ambient workout triggers.  Failures can be injected for
every stage of the sensor lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable

from runsync.sensors.base import (
    AuthorizationDeniedError,
    HeartRateSample,
    SensorFeed,
    SessionConfig,
    SessionCreateFailedError,
    SessionError,
    SessionHandle,
    SessionState,
)

logger = logging.getLogger("runsync.sensors.simulated")


class SimulatedSensorFeed(SensorFeed):
    """Heart-rate feed driven by ``emit()`` calls or a fixed script."""

    SOURCE_ID = "simulated"
    DISPLAY_NAME = "Simulated Sensor"

    def __init__(
        self,
        *,
        script: Iterable[float] = (),
        interval_seconds: float = 1.0,
        authorized: bool = True,
        fail_session_create: bool = False,
        fail_session_end: bool = False,
    ) -> None:
        """Initialize the feed.

        Args:
            script:              BPM values emitted by ``run()``.
            interval_seconds:    Delay between scripted samples.
            authorized:          False makes ``request_authorization()`` fail.
            fail_session_create: Make ``begin_session()`` fail.
            fail_session_end:    Make ``end_session()`` fail.
        """
        super().__init__()
        self.script = list(script)
        self.interval_seconds = interval_seconds
        self.authorized = authorized
        self.fail_session_create = fail_session_create
        self.fail_session_end = fail_session_end
        self.open_sessions: list[SessionHandle] = []

    async def request_authorization(self) -> None:
        if not self.authorized:
            raise AuthorizationDeniedError("Simulated sensor: heart-rate access denied")
        logger.debug("Simulated sensor: authorization granted")

    async def begin_session(self, config: SessionConfig) -> SessionHandle:
        if self.fail_session_create:
            raise SessionCreateFailedError("Simulated sensor: could not create session")
        handle = SessionHandle(config=config)
        self.open_sessions.append(handle)
        self._publish_session_state(handle, SessionState.STARTING)
        self._publish_session_state(handle, SessionState.RUNNING)
        return handle

    async def end_session(self, handle: SessionHandle) -> None:
        if self.fail_session_end:
            error = SessionError("Simulated sensor: session did not end cleanly")
            self._publish_session_state(handle, SessionState.FAILED, error)
            raise error
        if handle in self.open_sessions:
            self.open_sessions.remove(handle)
        self._publish_session_state(handle, SessionState.ENDED)

    def emit(self, bpm: float, timestamp: datetime | None = None) -> None:
        """Publish a single reading."""
        sample = HeartRateSample(timestamp=timestamp or datetime.now(timezone.utc), bpm=float(bpm))
        self._publish_samples([sample])

    def end_externally(self, handle: SessionHandle) -> None:
        """Simulate the session being ended outside the app."""
        if handle in self.open_sessions:
            self.open_sessions.remove(handle)
        self._publish_session_state(handle, SessionState.STOPPED)

    async def run(self) -> None:
        for bpm in self.script:
            self.emit(bpm)
            await asyncio.sleep(self.interval_seconds)
