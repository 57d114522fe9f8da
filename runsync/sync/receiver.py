"""Phone-side subscriber: mirror the latest ActivityState announced by the wrist.

Messages are applied strictly in delivery order; the last one wins.  There
is no deduplication, sequence number, or conflict detection, so a message
delivered out of order overwrites newer state and stays until the next
message arrives.  The receiver never sends.
"""

from __future__ import annotations

import logging
from typing import Any

from runsync.models.sync import SyncMessage
from runsync.sync.dispatch import Dispatcher
from runsync.sync.protocol import MalformedMessageError, apply_message, parse_message
from runsync.sync.state import ActivityState, ActivityStateHolder
from runsync.transport.base import Channel, ChannelDelegate

logger = logging.getLogger("runsync.sync.receiver")


class StateReceiver(ChannelDelegate):
    """Applies inbound SyncMessages to the phone's ActivityStateHolder."""

    def __init__(
        self,
        channel: Channel,
        holder: ActivityStateHolder,
        dispatcher: Dispatcher,
    ) -> None:
        self._channel = channel
        self._holder = holder
        self._dispatcher = dispatcher
        self.messages_applied = 0
        self.messages_rejected = 0
        channel.set_delegate(self)

    @property
    def state(self) -> ActivityState:
        return self._holder.state

    @property
    def holder(self) -> ActivityStateHolder:
        return self._holder

    def start(self) -> None:
        """Activate the channel session."""
        self._channel.activate()

    # ------------------------------------------------------------------
    # ChannelDelegate callbacks, run on the transport's context
    # ------------------------------------------------------------------

    def on_message(self, payload: dict[str, Any]) -> None:
        try:
            message = parse_message(payload)
        except MalformedMessageError as exc:
            self.messages_rejected += 1
            logger.warning("Dropping malformed message: %s", exc)
            return
        self._dispatcher.post(self.apply, message)

    def on_deactivate(self) -> None:
        logger.info("Channel session deactivated; re-activating")
        self._channel.activate()

    # ------------------------------------------------------------------
    # Dispatcher context
    # ------------------------------------------------------------------

    def apply(self, message: SyncMessage) -> ActivityState:
        """Overwrite local state from one message.

        Returns:
            The committed state.
        """
        state = self._holder.set(apply_message(self._holder.state, message))
        self.messages_applied += 1
        logger.debug(
            "Applied %s (heartRate=%s) → running=%s, %.0f BPM",
            message.action,
            message.heart_rate,
            state.is_running,
            state.heart_rate,
        )
        return state
