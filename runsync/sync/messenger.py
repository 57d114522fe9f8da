"""Wrist-side sender: reachability-gated, fire-and-forget pushes to the phone.

The messenger samples ``channel.is_reachable`` at send time.  When the peer
is unreachable the message is dropped without touching the transport; when
the transport later reports a failure it is logged and swallowed.  Nothing
is queued or retried, so the phone simply keeps showing its last applied
state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from runsync.models.sync import SyncMessage
from runsync.transport.base import Channel, ChannelDelegate

logger = logging.getLogger("runsync.sync.messenger")


@dataclass
class SendStats:
    """Outbound counters for one process lifetime.

    Attributes:
        attempted:  Messages handed to the transport.
        skipped:    Messages dropped because the peer was unreachable.
        failed:     Attempted messages the transport reported as failed.
        last_error: Text of the most recent failure.
    """

    attempted: int = 0
    skipped: int = 0
    failed: int = 0
    last_error: str | None = None


class PeerMessenger(ChannelDelegate):
    """Owns the wrist's channel session and sends SyncMessages over it."""

    def __init__(self, channel: Channel) -> None:
        self._channel = channel
        self.stats = SendStats()
        channel.set_delegate(self)

    @property
    def channel(self) -> Channel:
        return self._channel

    def activate(self) -> None:
        self._channel.activate()

    def send(self, message: SyncMessage) -> bool:
        """Push a message if the peer is reachable right now.

        Returns:
            True if the message was handed to the transport.  This says
            nothing about delivery.
        """
        payload = message.to_payload()
        if not self._channel.is_reachable:
            self.stats.skipped += 1
            logger.debug("Peer not reachable; skipping %s", payload)
            return False
        self.stats.attempted += 1
        self._channel.send(payload, error_handler=self._on_send_error)
        return True

    def _on_send_error(self, error: Exception) -> None:
        self.stats.failed += 1
        self.stats.last_error = str(error)
        logger.warning("Send to peer failed: %s", error)

    def on_deactivate(self) -> None:
        logger.info("Channel session deactivated; re-activating")
        self._channel.activate()
