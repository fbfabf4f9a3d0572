"""
Lifecycle tracking of the dropdown window.

Owns the single "current window" slot. Windows are adopted the moment their
identity resolves (possibly long after window-created), released when they
unmanage. The first resolving window wins: while one window is tracked,
another window that resolves is ignored and logged as a protocol anomaly.
"""

import logging
from typing import Dict, Optional

from ..signals import ConnectionSet, SignalEmitter
from .window_identity import IDENTITY_NOTIFY_SIGNALS, WindowIdentityResolver

logger = logging.getLogger(__name__)


class WindowTracker(SignalEmitter):
    """Untracked/Tracked state machine for the dropdown window.

    Signals:
        current-window-changed: emitted with the new window, or None on untrack

    Args:
        geometry: GeometrySynchronizer attached to the tracked window
        resolver: Identity predicate (default application id and path prefix)
    """

    def __init__(self, geometry, resolver: Optional[WindowIdentityResolver] = None):
        super().__init__()
        self.geometry = geometry
        self.resolver = resolver or WindowIdentityResolver()
        self.current_window = None

        self._identity_watches: Dict[object, ConnectionSet] = {}
        self._current_connections = ConnectionSet()

    @property
    def is_tracking(self) -> bool:
        return self.current_window is not None

    def handle_created(self, display, window) -> None:
        """window-created handler: watch the window's identity attributes."""
        if window in self._identity_watches:
            return

        watch = ConnectionSet()
        for signal in IDENTITY_NOTIFY_SIGNALS:
            watch.connect(window, signal, self._on_identity_changed)
        watch.connect(window, "unmanaged", self._forget_window)
        self._identity_watches[window] = watch

        self.track_window(window)

    def _on_identity_changed(self, window, *args) -> None:
        self.track_window(window)

    def _forget_window(self, window, *args) -> None:
        watch = self._identity_watches.pop(window, None)
        if watch is not None:
            watch.disconnect()

    def track_window(self, window) -> bool:
        """Adopt window if it resolves and nothing else is tracked.

        Returns:
            True if window became the current window
        """
        if not self.resolver.resolves(window):
            return False

        current = self.current_window
        if window is current:
            return False

        if current is not None:
            logger.warning(
                f"Protocol anomaly: {window!r} identifies as the dropdown window "
                f"while {current!r} is tracked, ignoring it"
            )
            return False

        self.current_window = window
        logger.info(f"Tracking dropdown window {window!r}")

        self._current_connections.connect(window, "unmanaging", self.untrack_window)
        self._current_connections.connect(window, "unmanaged", self.untrack_window)

        self.geometry.attach(window)
        self.geometry.apply_initial_geometry(window)

        window.activate()
        window.make_above()
        window.stick()

        self.emit("current-window-changed", window)
        return True

    def untrack_window(self, window, *args) -> None:
        """unmanaging/unmanaged handler: clear the slot if window is current."""
        if window is not self.current_window:
            logger.debug(f"Ignoring stale lifecycle event for {window!r}")
            return

        self.current_window = None
        self._current_connections.disconnect()
        self.geometry.detach()

        logger.info(f"Stopped tracking dropdown window {window!r}")
        self.emit("current-window-changed", None)

    def release(self) -> None:
        """Untrack the current window and drop every identity watch."""
        if self.current_window is not None:
            self.untrack_window(self.current_window)

        watches, self._identity_watches = self._identity_watches, {}
        for watch in watches.values():
            watch.disconnect()
