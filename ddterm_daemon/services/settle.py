"""
Settle detection over several asynchronous event sources.

A burst of geometry events (resize, move, maximize, pointer drag) is
considered settled once no event from any of the watched sources has fired
for the idle timeout. The waiter resolves exactly once; after that, or after
cancel(), it holds no handlers and no timer.

Usage:
    waiter = SettleWaiter(
        [(window, "size-changed"), (window, "position-changed")],
        timeout_ms=200,
        on_settled=persist,
    )
    waiter.start()

    # or, from a coroutine
    await wait_settled([(window, "size-changed")], timeout_ms=300)
"""

import asyncio
import functools
import logging
from typing import Callable, Optional, Sequence, Tuple

from ..constants import DEFAULT_IDLE_TIMEOUT_MS
from ..signals import ConnectionSet, SignalEmitter

logger = logging.getLogger(__name__)

EventSource = Tuple[SignalEmitter, str]


class SettleWaiter:
    """One debounce session.

    Args:
        sources: (emitter, signal) pairs that restart the idle timer
        timeout_ms: Idle period that counts as settled
        loop: Scheduler providing call_later() and create_future()
            (the running asyncio loop by default)
        on_settled: Called once, after all handlers are detached
    """

    def __init__(
        self,
        sources: Sequence[EventSource],
        timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
        loop=None,
        on_settled: Optional[Callable[[], None]] = None,
    ):
        self.sources = list(sources)
        self.timeout_ms = timeout_ms
        self.loop = loop or asyncio.get_running_loop()
        self.on_settled = on_settled
        self.future = self.loop.create_future()

        self._handlers = ConnectionSet()
        self._timer = None
        self._generation = 0
        self._started = False

    @property
    def active(self) -> bool:
        """Started and neither settled nor cancelled."""
        return self._started and not self.future.done()

    @property
    def settled(self) -> bool:
        return self.future.done() and not self.future.cancelled()

    def start(self) -> "SettleWaiter":
        """Subscribe to every source and start the idle timer."""
        if self._started:
            return self
        self._started = True

        for source, signal in self.sources:
            self._handlers.connect(source, signal, functools.partial(self._on_event, signal))

        self._restart_timer()
        return self

    def _on_event(self, signal: str, source, *args) -> None:
        if self.future.done():
            return
        logger.debug(f"Restarting settle wait because of {signal} signal")
        self._restart_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._timer = self.loop.call_later(self.timeout_ms / 1000, self._ready, self._generation)

    def _ready(self, generation: int) -> None:
        # A handle cancelled after it was already queued may still run
        if generation != self._generation or self.future.done():
            return

        self._timer = None
        self._handlers.disconnect()
        self.future.set_result(None)
        logger.debug(f"Idle timeout elapsed ({self.timeout_ms} ms)")

        if self.on_settled is not None:
            self.on_settled()

    def restart(self) -> None:
        """Restart the idle timer as if a watched event had fired."""
        if self.active:
            self._restart_timer()

    def cancel(self) -> None:
        """Give up waiting. Idempotent, never calls on_settled."""
        self._cancel_timer()
        self._handlers.disconnect()
        if not self.future.done():
            self.future.cancel()

    def __await__(self):
        self.start()
        return self.future.__await__()

    async def __aenter__(self) -> "SettleWaiter":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


async def wait_settled(
    sources: Sequence[EventSource],
    timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
) -> None:
    """Wait until none of the sources fired for timeout_ms.

    Cancelling the calling task detaches every handler and the timer.
    """
    waiter = SettleWaiter(sources, timeout_ms, loop=asyncio.get_running_loop())
    try:
        await waiter
    finally:
        waiter.cancel()
