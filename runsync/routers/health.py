"""Health check endpoint.

Doubles as the wrist's reachability probe target: a 200 here means the phone
process is up and can take a message right now.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from runsync.config import get_settings
from runsync.transport.base import ActivationState

router = APIRouter(tags=["system"])
logger = logging.getLogger("runsync.health")


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness probe.  Reports the channel session's activation state."""
    settings = get_settings()
    channel = getattr(request.app.state, "channel", None)
    activation = channel.activation_state if channel else ActivationState.NOT_ACTIVATED

    return {
        "status": "healthy" if activation is ActivationState.ACTIVATED else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "channel": activation.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
