"""In-process channel pair.

Connects two endpoints inside one Python process.  Used by the test suite
and by single-process demos.  Knobs mirror the failure modes of a real
transport:

    reachable         flip peer connectivity
    fail_next_send    make the next attempted send fail after "transmission"
    hold_deliveries   buffer inbound payloads until ``flush()``, which may
                      deliver them in any order (weak ordering)
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Sequence

from runsync.transport.base import (
    ActivationState,
    Channel,
    DeliveryFailedError,
    ErrorHandler,
    NotReachableError,
)

logger = logging.getLogger("runsync.transport.loopback")


class LoopbackChannel(Channel):
    """One endpoint of an in-process channel."""

    def __init__(self, name: str = "loopback") -> None:
        super().__init__()
        self.name = name
        self.reachable = True
        self.fail_next_send = False
        self.hold_deliveries = False
        self.sent: list[dict[str, Any]] = []
        self.activation_count = 0
        self._peer: LoopbackChannel | None = None
        self._held: list[dict[str, Any]] = []

    @classmethod
    def pair(
        cls, first: str = "wrist", second: str = "phone"
    ) -> tuple[LoopbackChannel, LoopbackChannel]:
        """Create two connected endpoints."""
        a, b = cls(first), cls(second)
        a._peer, b._peer = b, a
        return a, b

    def activate(self) -> None:
        self.activation_count += 1
        self._complete_activation(ActivationState.ACTIVATED)

    @property
    def is_reachable(self) -> bool:
        return self._peer is not None and self.reachable

    def send(self, payload: dict[str, Any], error_handler: ErrorHandler | None = None) -> None:
        peer = self._peer
        if peer is None or not self.reachable:
            self._fail_send(error_handler, NotReachableError(f"{self.name}: peer not reachable"))
            return
        if self.fail_next_send:
            self.fail_next_send = False
            self._fail_send(error_handler, DeliveryFailedError(f"{self.name}: transmission failed"))
            return
        snapshot = copy.deepcopy(payload)
        self.sent.append(snapshot)
        peer._receive(copy.deepcopy(snapshot))

    def _receive(self, payload: dict[str, Any]) -> None:
        if self.hold_deliveries:
            self._held.append(payload)
            return
        self._deliver(payload)

    @property
    def held(self) -> list[dict[str, Any]]:
        return list(self._held)

    def flush(self, order: Sequence[int] | None = None) -> int:
        """Deliver held payloads.

        Args:
            order: Indexes into the held list giving delivery order.  Defaults
                   to arrival order.  Unlisted payloads are dropped.

        Returns:
            Number of payloads delivered.
        """
        held, self._held = self._held, []
        indexes = range(len(held)) if order is None else order
        delivered = 0
        for i in indexes:
            self._deliver(held[i])
            delivered += 1
        return delivered

    def deactivate(self) -> None:
        """Simulate the platform tearing this session down."""
        logger.info("%s: session deactivated", self.name)
        self._teardown()
