"""Channel transports for RunSync.

Available channels:
    LoopbackChannel  in-process pair (tests, single-process demo)
    HttpChannel      httpx client (wrist) / FastAPI route (phone)
"""

from runsync.transport.base import (
    ActivationFailedError,
    ActivationState,
    Channel,
    ChannelDelegate,
    DeliveryFailedError,
    NotReachableError,
    TransportError,
)
from runsync.transport.http import HttpChannel
from runsync.transport.loopback import LoopbackChannel

__all__ = [
    "ActivationFailedError",
    "ActivationState",
    "Channel",
    "ChannelDelegate",
    "DeliveryFailedError",
    "HttpChannel",
    "LoopbackChannel",
    "NotReachableError",
    "TransportError",
]
