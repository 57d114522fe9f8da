"""HTTP channel between the wrist and phone processes.

Outbound (wrist): each message is POSTed to the phone's
``/api/v1/sync/messages`` route with an ``httpx.AsyncClient``.  The POST runs
as a background task and ``send()`` never waits for it.  A failure is only
reported to the local error handler.  The phone's 202 is a transport-level
receipt, not an acknowledgement that the state was applied.

Reachability is a periodically refreshed sample of ``GET /health`` on the
peer, never a negotiated deadline.

Inbound (phone): the FastAPI route hands each request body to
``HttpChannel.deliver()``, which forwards it to the delegate on the request
handler's context.

Usage::

    channel = HttpChannel("http://phone.local:8000", probe_interval=10)
    channel.set_delegate(messenger)
    channel.activate()          # inside a running event loop
    ...
    await channel.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx

from runsync.transport.base import (
    ActivationFailedError,
    ActivationState,
    Channel,
    DeliveryFailedError,
    ErrorHandler,
    NotReachableError,
)

logger = logging.getLogger("runsync.transport.http")

MESSAGES_PATH = "/api/v1/sync/messages"
HEALTH_PATH = "/health"


class HttpChannel(Channel):
    """Channel over plain HTTP to one peer base URL.

    A channel built without ``peer_url`` is inbound-only (the phone side):
    it activates without a network round trip and is never reachable.
    """

    def __init__(
        self,
        peer_url: str | None = None,
        *,
        http_client: httpx.AsyncClient | Any | None = None,
        timeout: float = 5.0,
        probe_interval: float = 10.0,
    ) -> None:
        """Initialize the channel.

        Args:
            peer_url:       Base URL of the peer process, or None for inbound-only.
            http_client:    Optional pre-built client (tests inject a mock).
            timeout:        Per-request timeout in seconds.
            probe_interval: Seconds between reachability probes.  ``0`` disables
                            the background probe; call ``probe()`` manually.
        """
        super().__init__()
        self._peer_url = peer_url.rstrip("/") if peer_url else None
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout
        self._probe_interval = probe_interval
        self._reachable = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._probe_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def peer_url(self) -> str | None:
        return self._peer_url

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def activate(self) -> None:
        if self._activation_state is ActivationState.ACTIVATED:
            self._complete_activation(ActivationState.ACTIVATED)
            return

        if self._peer_url is None:
            self._complete_activation(ActivationState.ACTIVATED)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._complete_activation(
                ActivationState.NOT_ACTIVATED,
                ActivationFailedError("HttpChannel.activate() requires a running event loop"),
            )
            return

        self._loop = loop
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        self._complete_activation(ActivationState.ACTIVATED)
        if self._probe_interval > 0:
            self._probe_task = loop.create_task(self._probe_forever())
        logger.info("HttpChannel activated for peer %s", self._peer_url)

    def repair(self, peer_url: str | None) -> None:
        """Switch to a different peer.

        Tears the current session down (``on_inactive`` then ``on_deactivate``);
        the delegate is expected to call ``activate()`` again.
        """
        logger.info("HttpChannel re-pairing: %s → %s", self._peer_url, peer_url)
        self._cancel_probe()
        self._peer_url = peer_url.rstrip("/") if peer_url else None
        self._set_reachable(False)
        self._teardown()

    async def close(self) -> None:
        """Stop probing, wait for in-flight sends, and release the client."""
        task = self._cancel_probe()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.drain()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self._reachable = False
        self._activation_state = ActivationState.NOT_ACTIVATED
        logger.info("HttpChannel closed")

    def _cancel_probe(self) -> asyncio.Task | None:
        task, self._probe_task = self._probe_task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------

    @property
    def is_reachable(self) -> bool:
        return self._peer_url is not None and self._reachable

    def _set_reachable(self, reachable: bool) -> None:
        if reachable != self._reachable:
            logger.info("Peer %s is now %s", self._peer_url, "reachable" if reachable else "unreachable")
        self._reachable = reachable

    async def probe(self) -> bool:
        """Sample peer reachability with ``GET {peer_url}/health``.

        Returns:
            The new reachability value.
        """
        if self._peer_url is None or self._client is None:
            self._set_reachable(False)
            return False
        try:
            response = await self._client.get(f"{self._peer_url}{HEALTH_PATH}")
            self._set_reachable(response.status_code == 200)
        except httpx.HTTPError as exc:
            logger.debug("Reachability probe to %s failed: %s", self._peer_url, exc)
            self._set_reachable(False)
        return self._reachable

    async def _probe_forever(self) -> None:
        while True:
            try:
                await self.probe()
            except Exception as exc:
                logger.error("Reachability probe to %s errored: %s", self._peer_url, exc)
                self._set_reachable(False)
            await asyncio.sleep(self._probe_interval)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, payload: dict[str, Any], error_handler: ErrorHandler | None = None) -> None:
        """Schedule a POST of ``payload`` to the peer.

        Must be called on the event loop the channel was activated on.
        """
        if (
            self._activation_state is not ActivationState.ACTIVATED
            or not self.is_reachable
            or self._loop is None
            or self._client is None
        ):
            self._fail_send(
                error_handler, NotReachableError(f"Peer {self._peer_url} is not reachable")
            )
            return

        task = self._loop.create_task(self._post(dict(payload), error_handler))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, payload: dict[str, Any], error_handler: ErrorHandler | None) -> None:
        url = f"{self._peer_url}{MESSAGES_PATH}"
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.TransportError as exc:
            self._set_reachable(False)
            self._fail_send(error_handler, DeliveryFailedError(f"POST {url} failed: {exc}"))
        except httpx.HTTPError as exc:
            self._fail_send(error_handler, DeliveryFailedError(f"POST {url} rejected: {exc}"))
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            # bad peer URL or a payload the JSON encoder refuses
            self._fail_send(error_handler, DeliveryFailedError(f"POST {url} not sent: {exc}"))

    async def drain(self) -> None:
        """Wait for every in-flight send to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def deliver(self, payload: dict[str, Any]) -> None:
        """Hand an inbound payload to the delegate."""
        self._deliver(payload)
