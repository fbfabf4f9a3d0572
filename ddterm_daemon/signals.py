"""Signal emitters and scoped connection sets.

Every component of the daemon talks to its collaborators through named
signals (``window-created``, ``size-changed``, ``changed::window-size`` ...).
``SignalEmitter`` is the GObject-style source, ``ConnectionSet`` batches the
handlers one owner attached so they can be detached in a single call.
"""

import itertools
import logging
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class SignalEmitter:
    """Named-signal source.

    Handlers are called as ``callback(emitter, *args)``. Emission iterates a
    snapshot of the handler table: a handler connected during emission is not
    called for that emission, a handler disconnected during emission is
    skipped.
    """

    _handler_ids = itertools.count(1)

    def __init__(self) -> None:
        self._handlers: Dict[int, Tuple[str, Handler]] = {}

    def connect(self, signal: str, callback: Handler) -> int:
        """Attach a handler.

        Args:
            signal: Signal name
            callback: Called with the emitter followed by the signal arguments

        Returns:
            Handler id for disconnect()
        """
        handler_id = next(self._handler_ids)
        self._handlers[handler_id] = (signal, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        """Detach a handler. Unknown ids are ignored."""
        if self._handlers.pop(handler_id, None) is None:
            logger.debug(f"{self!r}: no handler with id {handler_id}")

    def handler_count(self, signal: str) -> int:
        """Number of handlers attached to signal."""
        return sum(1 for name, _ in self._handlers.values() if name == signal)

    def emit(self, signal: str, *args: Any) -> None:
        """Call every handler attached to signal.

        A failing handler is logged and does not prevent the remaining
        handlers from running.
        """
        snapshot = [
            (handler_id, callback)
            for handler_id, (name, callback) in self._handlers.items()
            if name == signal
        ]

        for handler_id, callback in snapshot:
            if handler_id not in self._handlers:
                continue

            try:
                callback(self, *args)
            except Exception as e:
                logger.error(f"Error in {signal} handler of {self!r}: {e}", exc_info=True)


class ConnectionSet:
    """Handlers attached by one owner, detached together.

    Usable as a context manager: leaving the block detaches everything,
    including when the block raises.
    """

    def __init__(self) -> None:
        self._connections: List[Tuple[SignalEmitter, int]] = []

    def connect(self, source: SignalEmitter, signal: str, callback: Handler) -> int:
        handler_id = source.connect(signal, callback)
        self._connections.append((source, handler_id))
        return handler_id

    def disconnect(self) -> None:
        """Detach every handler attached through this set."""
        connections, self._connections = self._connections, []
        for source, handler_id in connections:
            source.disconnect(handler_id)

    def __len__(self) -> int:
        return len(self._connections)

    def __enter__(self) -> "ConnectionSet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()
