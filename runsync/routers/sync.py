"""Sync endpoints: inbound channel delivery and read-only state observation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body

from runsync.dependencies import PhoneChannel, Receiver
from runsync.models.sync import ActivityStateRead, DeliveryAccepted
from runsync.presentation import render_phone

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/messages", response_model=DeliveryAccepted, status_code=202)
async def deliver_message(
    channel: PhoneChannel, payload: dict[str, Any] = Body(...)
) -> Any:
    """Hand one wire message to the phone's channel.

    202 only confirms the request reached this process; the message is
    applied later, or dropped if malformed.
    """
    channel.deliver(payload)
    return DeliveryAccepted()


@router.get("/state", response_model=ActivityStateRead, response_model_by_alias=True)
async def read_state(receiver: Receiver) -> Any:
    state = receiver.state
    return ActivityStateRead(
        is_running=state.is_running,
        heart_rate=state.heart_rate,
        scene=render_phone(state).scene,
        messages_applied=receiver.messages_applied,
    )
