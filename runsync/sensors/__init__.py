"""Heart-rate sensor feeds for the wrist process.

Each feed implements the SensorFeed ABC and handles:
- Authorization for heart-rate reads
- Activity session start / end
- Ambient observation and live streaming of heart-rate samples

Available feeds:
    SimulatedSensorFeed    scripted samples with failure injection
    AppleHealthReplayFeed  replay of an Apple Health export.xml
"""

from runsync.sensors.apple_health import AppleHealthReplayFeed
from runsync.sensors.base import (
    AuthorizationDeniedError,
    HeartRateSample,
    SensorDelegate,
    SensorError,
    SensorFeed,
    SessionConfig,
    SessionCreateFailedError,
    SessionError,
    SessionHandle,
    SessionState,
    StreamHandle,
)
from runsync.sensors.simulated import SimulatedSensorFeed

__all__ = [
    "AppleHealthReplayFeed",
    "AuthorizationDeniedError",
    "HeartRateSample",
    "SensorDelegate",
    "SensorError",
    "SensorFeed",
    "SessionConfig",
    "SessionCreateFailedError",
    "SessionError",
    "SessionHandle",
    "SessionState",
    "SimulatedSensorFeed",
    "StreamHandle",
]

# Registry: source_id → feed class
FEED_REGISTRY: dict[str, type] = {
    "simulated": SimulatedSensorFeed,
    "apple_health_export": AppleHealthReplayFeed,
}


def get_sensor_feed(source_id: str) -> "type":
    """Return the feed class for a given source slug.

    Args:
        source_id: e.g. 'simulated', 'apple_health_export'

    Returns:
        The feed class (not an instance).

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in FEED_REGISTRY:
        raise KeyError(
            f"No sensor feed registered for source '{source_id}'. "
            f"Available: {list(FEED_REGISTRY)}"
        )
    return FEED_REGISTRY[source_id]
