"""Wire protocol between the wrist publisher and the phone receiver.

A message carries the whole ActivityState; there is no identifier, sequence
number, or timestamp.  The receiver applies messages strictly in delivery
order and the last one wins.

    build_message(state)          → SyncMessage for the current protocol
    build_legacy_message(running) → SyncMessage without heart rate
    parse_message(payload)        → SyncMessage (accepts both shapes)
    apply_message(state, message) → new ActivityState
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from runsync.models.sync import SyncMessage
from runsync.sync.state import ActivityState

logger = logging.getLogger("runsync.sync.protocol")

RUNNING = "running"
STANDING = "standing"

ACTION_KEY = "action"
HEART_RATE_KEY = "heartRate"


class MalformedMessageError(ValueError):
    """Raised when a payload has no usable ``action``."""


def action_for(is_running: bool) -> str:
    return RUNNING if is_running else STANDING


def build_message(state: ActivityState) -> SyncMessage:
    """Build the current-protocol message announcing ``state``."""
    return SyncMessage(action=action_for(state.is_running), heart_rate=state.heart_rate)


def build_legacy_message(is_running: bool) -> SyncMessage:
    """Build a heart-rate-less message (legacy manual buttons)."""
    return SyncMessage(action=action_for(is_running))


def is_usable_heart_rate(bpm: float) -> bool:
    """True for a finite, non-negative BPM value."""
    return math.isfinite(bpm) and bpm >= 0


def _coerce_heart_rate(value: Any) -> float | None:
    """Return a usable BPM value or None when absent / unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        bpm = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric heartRate: %r", value)
        return None
    if not is_usable_heart_rate(bpm):
        logger.warning("Ignoring out-of-range heartRate: %r", value)
        return None
    return bpm


def parse_message(payload: Mapping[str, Any]) -> SyncMessage:
    """Parse a wire payload in either historical shape.

    Args:
        payload: Decoded channel payload.

    Returns:
        SyncMessage.  ``heart_rate`` is None when the field is missing or
        unusable.

    Raises:
        MalformedMessageError: If the payload is not a mapping or its
            ``action`` is missing or not a string.
    """
    if not isinstance(payload, Mapping):
        raise MalformedMessageError(f"Payload must be a mapping, got {type(payload).__name__}")
    action = payload.get(ACTION_KEY)
    if not isinstance(action, str):
        raise MalformedMessageError(f"Payload has no string 'action': {dict(payload)!r}")
    return SyncMessage(action=action, heart_rate=_coerce_heart_rate(payload.get(HEART_RATE_KEY)))


def apply_message(state: ActivityState, message: SyncMessage) -> ActivityState:
    """Fold one message into ``state`` (last writer wins).

    ``is_running`` is always overwritten.  ``heart_rate`` is overwritten only
    when the message carries one, so a legacy message keeps the last known
    rate instead of resetting it to 0.
    """
    heart_rate = state.heart_rate if message.heart_rate is None else message.heart_rate
    return ActivityState(is_running=message.action == RUNNING, heart_rate=heart_rate)
