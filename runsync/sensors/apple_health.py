"""Apple Health export replay feed.

Replays heart-rate readings from an Apple Health ``export.xml`` as if they
were arriving live from the watch.  Handy for exercising the publisher with
a real workout's heart-rate curve.

Apple Health writes each reading as::

    <Record type="HKQuantityTypeIdentifierHeartRate" unit="count/min"
            startDate="2026-02-23 07:00:05 -0800" value="72"/>

"Authorization" here means the export can be read and contains at least one
heart-rate record.  Sessions are bookkeeping only; the export cannot start a
workout.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from xml.etree import ElementTree as ET

from runsync.sensors.base import (
    AuthorizationDeniedError,
    HeartRateSample,
    SensorFeed,
    SessionConfig,
    SessionHandle,
    SessionState,
)

logger = logging.getLogger("runsync.sensors.apple_health")

_HK_HEART_RATE = "HKQuantityTypeIdentifierHeartRate"
_HK_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def _parse_hk_datetime(value: str) -> datetime | None:
    """Parse an Apple Health timestamp to an aware UTC datetime.

    Accepts the export's native ``2026-02-23 07:00:05 -0800`` form and ISO-8601.
    """
    if not value:
        return None
    try:
        dt = datetime.strptime(value, _HK_DATE_FORMAT)
    except ValueError:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Could not parse Apple Health date: %r", value)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_heart_rate_records(xml_bytes: bytes) -> list[HeartRateSample]:
    """Extract heart-rate samples from an Apple Health XML export.

    Args:
        xml_bytes: Contents of ``export.xml``.

    Returns:
        Samples sorted by timestamp.  Records with a missing date or a
        non-numeric / negative value are skipped.

    Raises:
        ValueError: If the XML cannot be parsed.
    """
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as exc:
        logger.error("Apple Health XML parse error: %s", exc)
        raise ValueError(f"Invalid Apple Health XML: {exc}") from exc

    samples: list[HeartRateSample] = []
    for record in root.iter("Record"):
        if record.get("type") != _HK_HEART_RATE:
            continue
        timestamp = _parse_hk_datetime(record.get("startDate", ""))
        if timestamp is None:
            continue
        try:
            bpm = float(record.get("value", ""))
        except ValueError:
            continue
        if bpm < 0:
            continue
        samples.append(HeartRateSample(timestamp=timestamp, bpm=bpm))

    samples.sort(key=lambda s: s.timestamp)
    return samples


def load_heart_rate_export(path: Path) -> list[HeartRateSample]:
    """Read and parse ``export.xml``.  Blocking; run it off the event loop."""
    return parse_heart_rate_records(path.read_bytes())


class AppleHealthReplayFeed(SensorFeed):
    """Replays an exported heart-rate log in time order."""

    SOURCE_ID = "apple_health_export"
    DISPLAY_NAME = "Apple Health Export"

    def __init__(
        self,
        export_path: str | Path | None,
        *,
        speedup: float = 60.0,
        max_gap_seconds: float = 5.0,
    ) -> None:
        """Initialize the feed.

        Args:
            export_path:     Path to ``export.xml``.
            speedup:         Replay speed multiplier (60 = one minute per second).
            max_gap_seconds: Upper bound on any single wait between samples.
        """
        super().__init__()
        self._path = Path(export_path) if export_path else None
        self._speedup = max(speedup, 1e-6)
        self._max_gap = max_gap_seconds
        self._samples: list[HeartRateSample] = []

    @property
    def samples(self) -> list[HeartRateSample]:
        return list(self._samples)

    async def request_authorization(self) -> None:
        if self._path is None or not self._path.exists():
            raise AuthorizationDeniedError(f"Apple Health export not found: {self._path}")
        try:
            samples = await asyncio.to_thread(load_heart_rate_export, self._path)
        except ValueError as exc:
            raise AuthorizationDeniedError(str(exc)) from exc
        if not samples:
            raise AuthorizationDeniedError(f"No heart-rate records in {self._path}")
        self._samples = samples
        logger.info("Loaded %d heart-rate samples from %s", len(samples), self._path)

    async def begin_session(self, config: SessionConfig) -> SessionHandle:
        handle = SessionHandle(config=config)
        self._publish_session_state(handle, SessionState.RUNNING)
        return handle

    async def end_session(self, handle: SessionHandle) -> None:
        self._publish_session_state(handle, SessionState.ENDED)

    async def run(self) -> None:
        previous: datetime | None = None
        for sample in self._samples:
            if previous is not None:
                gap = (sample.timestamp - previous).total_seconds() / self._speedup
                await asyncio.sleep(min(max(gap, 0.0), self._max_gap))
            self._publish_samples([sample])
            previous = sample.timestamp
        logger.info("Apple Health replay finished (%d samples)", len(self._samples))
