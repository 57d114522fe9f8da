"""Channel abstraction shared by the wrist and phone processes.

A Channel is a best-effort, session-oriented pipe to exactly one peer.  It
never owns ActivityState; it carries immutable payload dicts.  Each process
constructs one Channel at startup and hands it to the components that need
it; the instance lives until process exit.

Every concrete channel implements:
    - activate()          idempotent; completion reported to the delegate
    - is_reachable        momentary sample, independent of activation
    - send()              fire-and-forget with an optional error callback

Event callbacks go to a ChannelDelegate (one method per event).  They may
fire on any thread or task; delegates must redispatch before touching state.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger("runsync.transport")

ErrorHandler = Callable[[Exception], None]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TransportError(Exception):
    """Base class for channel failures.  Always handled locally."""


class NotReachableError(TransportError):
    """Peer was not reachable; the message was not attempted."""


class DeliveryFailedError(TransportError):
    """Transport attempted delivery and failed."""


class ActivationFailedError(TransportError):
    """The channel session could not be activated."""


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class ActivationState(str, enum.Enum):
    NOT_ACTIVATED = "not_activated"
    INACTIVE = "inactive"
    ACTIVATED = "activated"


class ChannelDelegate:
    """Receives channel events.  Override the events you care about.

    The default activation handler logs the outcome; activation failure is
    never fatal and is never retried here.
    """

    def on_activation_complete(
        self, state: ActivationState, error: Exception | None
    ) -> None:
        if error is not None:
            logger.warning("Channel activation failed: %s", error)
            return
        logger.info("Channel activation complete: %s", state.value)

    def on_message(self, payload: dict[str, Any]) -> None:
        """A payload arrived from the peer."""

    def on_inactive(self) -> None:
        """Session is winding down; no new messages will be delivered."""

    def on_deactivate(self) -> None:
        """Session torn down (e.g. a different peer was paired).

        Implementations should call ``activate()`` again to stay eligible
        for future messages.
        """


class Channel(ABC):
    """Abstract best-effort channel to a single peer."""

    def __init__(self) -> None:
        self._delegate: ChannelDelegate | None = None
        self._activation_state = ActivationState.NOT_ACTIVATED

    def set_delegate(self, delegate: ChannelDelegate) -> None:
        self._delegate = delegate

    @property
    def delegate(self) -> ChannelDelegate | None:
        return self._delegate

    @property
    def activation_state(self) -> ActivationState:
        return self._activation_state

    @abstractmethod
    def activate(self) -> None:
        """Start (or confirm) the session.

        Returns immediately.  The outcome is reported through
        ``delegate.on_activation_complete``.
        """

    @property
    @abstractmethod
    def is_reachable(self) -> bool:
        """True only when the peer can take a message right now."""

    @abstractmethod
    def send(self, payload: dict[str, Any], error_handler: ErrorHandler | None = None) -> None:
        """Send a payload without waiting for delivery.

        Args:
            payload:       JSON-serializable message dict.
            error_handler: Called with NotReachableError (immediately) or
                           DeliveryFailedError (later) on failure.  Never
                           called on success; there is no acknowledgement.
        """

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _complete_activation(
        self, state: ActivationState, error: Exception | None = None
    ) -> None:
        self._activation_state = state
        if self._delegate is not None:
            self._delegate.on_activation_complete(state, error)

    def _fail_send(self, error_handler: ErrorHandler | None, error: Exception) -> None:
        if error_handler is not None:
            error_handler(error)
        else:
            logger.debug("Send failed with no error handler: %s", error)

    def _deliver(self, payload: dict[str, Any]) -> None:
        if self._delegate is None:
            logger.debug("Dropping inbound payload: no delegate registered")
            return
        self._delegate.on_message(payload)

    def _teardown(self) -> None:
        """Report session teardown to the delegate."""
        self._activation_state = ActivationState.INACTIVE
        if self._delegate is not None:
            self._delegate.on_inactive()
        self._activation_state = ActivationState.NOT_ACTIVATED
        if self._delegate is not None:
            self._delegate.on_deactivate()
