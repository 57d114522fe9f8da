"""Shared fixtures for sensor feed tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from runsync.sensors.base import HeartRateSample, SensorDelegate, SessionHandle, SessionState


class RecordingSensorDelegate(SensorDelegate):
    """Collects every batch and session transition a feed reports."""

    def __init__(self) -> None:
        self.batches: list[list[HeartRateSample]] = []
        self.transitions: list[tuple[SessionHandle, SessionState, Exception | None]] = []

    def on_heart_rate_samples(self, samples: list[HeartRateSample]) -> None:
        self.batches.append(samples)

    def on_session_state_change(
        self,
        handle: SessionHandle,
        state: SessionState,
        error: Exception | None = None,
    ) -> None:
        self.transitions.append((handle, state, error))

    @property
    def bpms(self) -> list[float]:
        return [s.bpm for batch in self.batches for s in batch]

    @property
    def states(self) -> list[SessionState]:
        return [t[1] for t in self.transitions]


@pytest.fixture
def recorder() -> RecordingSensorDelegate:
    return RecordingSensorDelegate()


# Three heart-rate readings (out of order), one step count, one bad value.
APPLE_HEALTH_EXPORT = b"""<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
         startDate="2026-02-23 07:00:20 -0800" endDate="2026-02-23 07:00:20 -0800" value="121"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
         startDate="2026-02-23 07:00:05 -0800" endDate="2026-02-23 07:00:05 -0800" value="72"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="Phone" unit="count"
         startDate="2026-02-23 07:00:06 -0800" endDate="2026-02-23 07:00:10 -0800" value="14"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
         startDate="2026-02-23 07:00:10 -0800" endDate="2026-02-23 07:00:10 -0800" value="104"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
         startDate="2026-02-23 07:00:12 -0800" endDate="2026-02-23 07:00:12 -0800" value="n/a"/>
</HealthData>
"""


@pytest.fixture
def export_file(tmp_path: Path) -> Path:
    path = tmp_path / "export.xml"
    path.write_bytes(APPLE_HEALTH_EXPORT)
    return path
