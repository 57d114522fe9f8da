"""Base classes and data models for heart-rate sensor feeds.

Every feed subclasses SensorFeed and reports through a SensorDelegate.  The
publisher only ever sees these types, so a feed backed by a simulator, an
exported health log, or a real device driver are interchangeable.

Sample delivery has two modes:

    ambient observation  ``observe()``; cheap spot checks that run for the
                         whole process lifetime once authorized.
    live stream          ``start_live_stream()``; high-rate delivery opened
                         only while an activity is running.  While any live
                         stream is open it supersedes ambient observation.

Callbacks may fire on any thread or task.
"""

from __future__ import annotations

import enum
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

logger = logging.getLogger("runsync.sensors")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SensorError(Exception):
    """Base class for sensor feed failures."""


class AuthorizationDeniedError(SensorError):
    """Heart-rate read access was refused.  Permanent for the process lifetime."""


class SessionCreateFailedError(SensorError):
    """An activity session could not be started."""


class SessionError(SensorError):
    """Mid-session fault.  Session state is uncertain afterwards."""


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeartRateSample:
    """One heart-rate reading.

    Attributes:
        timestamp: UTC time the reading was taken.
        bpm:       Beats per minute.
    """

    timestamp: datetime
    bpm: float


class SessionState(str, enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    ENDED = "ended"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionConfig:
    """Activity session parameters passed to ``begin_session()``."""

    activity_type: str = "running"
    location_type: str = "outdoor"


@dataclass(frozen=True)
class SessionHandle:
    """Opaque reference to an open activity session."""

    config: SessionConfig
    session_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class StreamHandle:
    """Opaque reference to an open live heart-rate stream."""

    stream_id: int


class SensorDelegate:
    """Receives sensor feed events.  Override the events you care about."""

    def on_heart_rate_samples(self, samples: list[HeartRateSample]) -> None:
        """A batch of new samples arrived, oldest first."""

    def on_session_state_change(
        self,
        handle: SessionHandle,
        state: SessionState,
        error: Exception | None = None,
    ) -> None:
        """An activity session changed state."""


# ---------------------------------------------------------------------------
# Abstract base feed
# ---------------------------------------------------------------------------


class SensorFeed(ABC):
    """Abstract base class for all heart-rate feeds.

    Subclasses must implement:
        - request_authorization()
        - begin_session()
        - end_session()

    Optional override:
        - run()   drive a finite feed (replay, script) to completion
    """

    #: Registry slug (e.g. 'simulated').
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Feed"

    def __init__(self) -> None:
        self._delegate: SensorDelegate | None = None
        self._observing = False
        self._streams: dict[int, StreamHandle] = {}
        self._stream_ids = itertools.count(1)

    def set_delegate(self, delegate: SensorDelegate) -> None:
        self._delegate = delegate

    @abstractmethod
    async def request_authorization(self) -> None:
        """Ask for heart-rate read access.

        Raises:
            AuthorizationDeniedError: If access is refused.
        """

    @abstractmethod
    async def begin_session(self, config: SessionConfig) -> SessionHandle:
        """Open an activity session and begin collection.

        Raises:
            SessionCreateFailedError: If the session cannot be started.
        """

    @abstractmethod
    async def end_session(self, handle: SessionHandle) -> None:
        """End collection and close the session.

        Raises:
            SessionError: If the session could not be ended cleanly.
        """

    async def run(self) -> None:
        """Drive the feed until it is exhausted.

        Live feeds push samples on their own; the default returns immediately.
        """
        return None

    # ------------------------------------------------------------------
    # Sample subscriptions shared by all feeds
    # ------------------------------------------------------------------

    @property
    def is_observing(self) -> bool:
        return self._observing

    @property
    def active_stream_count(self) -> int:
        return len(self._streams)

    def observe(self) -> None:
        """Start ambient observation.  Idempotent."""
        if not self._observing:
            logger.info("%s: ambient heart-rate observation started", self.DISPLAY_NAME)
        self._observing = True

    def start_live_stream(self) -> StreamHandle:
        """Open a live heart-rate stream.

        Callers own the handle and must stop it; opening a second stream
        without stopping the first produces duplicate deliveries.
        """
        handle = StreamHandle(stream_id=next(self._stream_ids))
        self._streams[handle.stream_id] = handle
        logger.debug("%s: live stream %d opened", self.DISPLAY_NAME, handle.stream_id)
        return handle

    def stop_live_stream(self, handle: StreamHandle) -> None:
        """Close a live stream.  Unknown or already-closed handles are ignored."""
        if self._streams.pop(handle.stream_id, None) is not None:
            logger.debug("%s: live stream %d closed", self.DISPLAY_NAME, handle.stream_id)

    def _publish_samples(self, samples: list[HeartRateSample]) -> None:
        """Route samples to each open live stream, else to ambient observation."""
        if not samples or self._delegate is None:
            return
        if self._streams:
            for _ in list(self._streams):
                self._delegate.on_heart_rate_samples(list(samples))
        elif self._observing:
            self._delegate.on_heart_rate_samples(list(samples))

    def _publish_session_state(
        self, handle: SessionHandle, state: SessionState, error: Exception | None = None
    ) -> None:
        if self._delegate is not None:
            self._delegate.on_session_state_change(handle, state, error)
