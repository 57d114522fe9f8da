"""Explicit hand-off onto the state-owning execution context.

Each process has exactly one context that may mutate ``ActivityState`` (the
"UI thread").  Transport and sensor callbacks fire wherever their producer
runs, so they never touch state directly: they ``post()`` a callback to the
process's Dispatcher, which runs it on the owning context.

Two implementations:

    LoopDispatcher    the running asyncio event loop owns state.
    ManualDispatcher  a FIFO drained explicitly with ``run_pending()``;
                      deterministic, used by tests and single-threaded demos.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable

logger = logging.getLogger("runsync.sync.dispatch")


class WrongThreadError(RuntimeError):
    """Raised when state is touched outside the dispatcher's owning context."""


class Dispatcher(ABC):
    """Serial execution context that owns a process's mutable state."""

    @abstractmethod
    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule ``callback(*args)`` on the owning context.

        Safe to call from any thread.  Never runs the callback inline.
        """

    @abstractmethod
    def is_current(self) -> bool:
        """Return True if the caller is running on the owning context."""

    def assert_current(self) -> None:
        if not self.is_current():
            raise WrongThreadError(
                f"{type(self).__name__}: state mutated off the owning context "
                f"(thread={threading.current_thread().name})"
            )


class LoopDispatcher(Dispatcher):
    """Dispatcher backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        if self._loop.is_closed():
            logger.warning("Dropping %r: event loop is closed", callback)
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def is_current(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False


class ManualDispatcher(Dispatcher):
    """FIFO dispatcher owned by the thread that created it.

    Usage::

        dispatcher = ManualDispatcher()
        feed.emit(120)              # sensor callback posts work
        dispatcher.run_pending()    # work runs here, in order
    """

    def __init__(self) -> None:
        self._owner = threading.get_ident()
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.append((callback, args))

    def is_current(self) -> bool:
        return threading.get_ident() == self._owner

    def run_pending(self) -> int:
        """Run queued callbacks, including ones they post, until the queue is empty.

        Returns:
            Number of callbacks executed.
        """
        self.assert_current()
        ran = 0
        while self._queue:
            callback, args = self._queue.popleft()
            callback(*args)
            ran += 1
        return ran

    def __len__(self) -> int:
        return len(self._queue)
