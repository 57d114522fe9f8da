"""RunSync wrist process.

Run locally (phone process listening on :8000)::

    RUNSYNC_PEER_URL=http://localhost:8000 python -m runsync.wrist

Builds the process's single channel session, a sensor feed, and the
publisher, then drives the feed until it is exhausted.  The event loop is
the wrist's state-owning context.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from runsync.config import Settings, get_settings
from runsync.presentation import render_wrist
from runsync.sensors import get_sensor_feed
from runsync.sensors.apple_health import AppleHealthReplayFeed
from runsync.sensors.base import SensorFeed
from runsync.sensors.simulated import SimulatedSensorFeed
from runsync.sync.dispatch import LoopDispatcher
from runsync.sync.messenger import PeerMessenger
from runsync.sync.publisher import StateSync
from runsync.sync.state import ActivityState, ActivityStateHolder
from runsync.transport.base import Channel
from runsync.transport.http import HttpChannel

logger = logging.getLogger("runsync.wrist")


def build_feed(settings: Settings) -> SensorFeed:
    """Instantiate the sensor feed named by ``settings.sensor_source``."""
    feed_cls = get_sensor_feed(settings.sensor_source)
    if feed_cls is AppleHealthReplayFeed:
        return AppleHealthReplayFeed(
            settings.apple_health_export_path, speedup=settings.replay_speedup
        )
    if feed_cls is SimulatedSensorFeed:
        return SimulatedSensorFeed(
            script=settings.simulated_bpm_script,
            interval_seconds=settings.simulated_interval_seconds,
        )
    return feed_cls()


def _log_wrist_view(state: ActivityState) -> None:
    view = render_wrist(state)
    logger.info("STATUS: %s %s", view.status, view.heart_rate_text or "")


async def run_wrist(
    settings: Settings | None = None,
    *,
    feed: SensorFeed | None = None,
    channel: Channel | None = None,
) -> StateSync:
    """Run the wrist process until its sensor feed is exhausted.

    Args:
        settings: Process settings (defaults to ``get_settings()``).
        feed:     Override the configured sensor feed.
        channel:  Override the HTTP channel (e.g. a LoopbackChannel).

    Returns:
        The publisher, for inspection after the run.
    """
    settings = settings or get_settings()
    dispatcher = LoopDispatcher(asyncio.get_running_loop())
    holder = ActivityStateHolder(dispatcher)
    channel = channel or HttpChannel(
        settings.peer_url,
        timeout=settings.request_timeout_seconds,
        probe_interval=settings.reachability_probe_seconds,
    )
    messenger = PeerMessenger(channel)
    feed = feed or build_feed(settings)
    publisher = StateSync(
        feed,
        messenger,
        holder,
        dispatcher,
        running_threshold_bpm=settings.running_threshold_bpm,
        manual_override_enabled=settings.manual_override_enabled,
        resend_standing_when_idle=settings.resend_standing_when_idle,
    )
    holder.subscribe(_log_wrist_view)

    logger.info("Starting RunSync wrist v%s, peer=%s", settings.app_version, settings.peer_url)
    messenger.activate()
    try:
        if isinstance(channel, HttpChannel):
            await channel.probe()
        if await publisher.activate():
            await feed.run()
            # let samples posted by the final emit reach the publisher
            await asyncio.sleep(0)
    finally:
        await publisher.close()
        if isinstance(channel, HttpChannel):
            await channel.close()
        logger.info(
            "Wrist finished: %d sent, %d skipped, %d failed",
            messenger.stats.attempted,
            messenger.stats.skipped,
            messenger.stats.failed,
        )
    return publisher


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    asyncio.run(run_wrist(settings))


if __name__ == "__main__":
    main()
