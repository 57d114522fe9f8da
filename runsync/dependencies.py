"""Shared FastAPI dependencies injected into route handlers.

The phone's channel and receiver are built once in the app lifespan and kept
on ``app.state``; routes only ever receive them through these dependencies.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from runsync.sync.receiver import StateReceiver
from runsync.transport.http import HttpChannel


def get_channel(request: Request) -> HttpChannel:
    channel: HttpChannel | None = getattr(request.app.state, "channel", None)
    if channel is None:
        raise HTTPException(status_code=503, detail="Channel not initialized")
    return channel


def get_receiver(request: Request) -> StateReceiver:
    receiver: StateReceiver | None = getattr(request.app.state, "receiver", None)
    if receiver is None:
        raise HTTPException(status_code=503, detail="Receiver not initialized")
    return receiver


# Annotated shortcuts for route signatures
PhoneChannel = Annotated[HttpChannel, Depends(get_channel)]
Receiver = Annotated[StateReceiver, Depends(get_receiver)]
