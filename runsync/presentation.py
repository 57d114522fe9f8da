"""Pure rendering of ActivityState for the phone and wrist displays.

Nothing here mutates state; every function maps an ActivityState (or a BPM
value) to display data.  Heart rate is only shown while running.
"""

from __future__ import annotations

from dataclasses import dataclass

from runsync.sync.state import ActivityState

RUNNING_SCENE = "Run.dae"
STANDING_SCENE = "Stand.dae"

# Upper bound (exclusive) of each colour bucket, in BPM
_COLOR_RAMP: list[tuple[float, str]] = [
    (100.0, "blue"),
    (130.0, "green"),
    (160.0, "orange"),
]
_MAX_COLOR = "red"


@dataclass(frozen=True)
class PhoneView:
    """What the phone renders: a full-screen 3D scene."""

    scene: str
    allows_camera_control: bool = True


@dataclass(frozen=True)
class WristView:
    """What the wrist renders.

    Attributes:
        status:          "RUNNING" or "STANDING".
        heart_rate_text: e.g. "132 BPM"; None while not running.
        pulse_seconds:   Period of the heart animation; None while not running.
        color:           Colour bucket for the heart-rate gauge.
    """

    status: str
    heart_rate_text: str | None
    pulse_seconds: float | None
    color: str


def render_phone(state: ActivityState) -> PhoneView:
    return PhoneView(scene=RUNNING_SCENE if state.is_running else STANDING_SCENE)


def heart_rate_color(bpm: float) -> str:
    for upper, color in _COLOR_RAMP:
        if bpm < upper:
            return color
    return _MAX_COLOR


def pulse_period_seconds(bpm: float) -> float | None:
    """One heartbeat in seconds, or None when there is no reading."""
    if bpm <= 0:
        return None
    return 60.0 / bpm


def render_wrist(state: ActivityState) -> WristView:
    if not state.is_running:
        return WristView(status="STANDING", heart_rate_text=None, pulse_seconds=None, color="gray")
    has_reading = state.heart_rate > 0
    return WristView(
        status="RUNNING",
        heart_rate_text=f"{state.heart_rate:.0f} BPM" if has_reading else "-- BPM",
        pulse_seconds=pulse_period_seconds(state.heart_rate),
        color=heart_rate_color(state.heart_rate) if has_reading else "gray",
    )
