"""RunSync phone process: FastAPI application entry point.

Run locally:
    uvicorn runsync.main:app --port 8000

The process owns exactly one channel session, created in the lifespan and
kept until shutdown.  Inbound messages are applied on the event loop, which
is this process's state-owning context.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from runsync.config import Settings, get_settings
from runsync.routers import health, sync
from runsync.sync.dispatch import LoopDispatcher
from runsync.sync.receiver import StateReceiver
from runsync.sync.state import ActivityStateHolder
from runsync.transport.http import HttpChannel

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("runsync")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the phone's channel session and receiver; tear them down on exit."""
    settings = get_settings()
    logging.getLogger("runsync").setLevel(settings.log_level.upper())
    logger.info(
        "Starting RunSync phone v%s [%s]",
        settings.app_version,
        settings.environment,
    )

    dispatcher = LoopDispatcher(asyncio.get_running_loop())
    holder = ActivityStateHolder(dispatcher)
    channel = HttpChannel(timeout=settings.request_timeout_seconds)
    receiver = StateReceiver(channel, holder, dispatcher)
    holder.subscribe(
        lambda state: logger.info(
            "Phone state: running=%s heartRate=%.0f", state.is_running, state.heart_rate
        )
    )
    receiver.start()

    app.state.channel = channel
    app.state.receiver = receiver
    yield
    await channel.close()
    app.state.channel = None
    app.state.receiver = None
    logger.info("RunSync phone shut down")


# ---------- App factory ----------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="RunSync Phone",
        description="Mirrors the wrist's running state and live heart rate.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    app.include_router(sync.router, prefix="/api/v1")

    return app


app = create_app()
