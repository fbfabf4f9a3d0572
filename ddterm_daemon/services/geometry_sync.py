"""
Geometry synchronization for the dropdown window.

Places the tracked window against the configured work-area edge using the
persisted size ratio, and writes the ratio back after the user resized the
window and the resulting burst of geometry events has settled.
"""

import logging
from typing import Optional

from ..constants import (
    DEFAULT_IDLE_TIMEOUT_MS,
    SETTING_WINDOW_MAXIMIZE,
    SETTING_WINDOW_POSITION,
    SETTING_WINDOW_SIZE,
)
from ..errors import SettingsError
from ..models.geometry import (
    Orientation,
    Rect,
    WindowPosition,
    extent,
    target_rect_for_workarea_size,
)
from ..signals import ConnectionSet, SignalEmitter
from .settle import SettleWaiter

logger = logging.getLogger(__name__)

MAXIMIZE_NOTIFY_SIGNALS = (
    "notify::maximized-horizontally",
    "notify::maximized-vertically",
)


class GeometrySynchronizer:
    """Keeps the tracked window geometry and the size setting in sync.

    Args:
        display: Compositor display (work areas, monitors, grab signals)
        settings: Settings store (window-size, window-position, window-maximize)
        notifier: Emitter that announces move-resize-requested (the controller)
        loop: Scheduler used for settle timers
        idle_timeout_ms: Quiet period before a live resize is persisted
    """

    def __init__(
        self,
        display,
        settings,
        notifier: SignalEmitter,
        loop,
        idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
    ):
        self.display = display
        self.settings = settings
        self.notifier = notifier
        self.loop = loop
        self.idle_timeout_ms = idle_timeout_ms

        self.window = None
        self.current_target_rect: Optional[Rect] = None

        self._window_connections = ConnectionSet()
        self._settings_connections = ConnectionSet()
        self._settle: Optional[SettleWaiter] = None
        self._persisting = False

    # Settings accessors

    @property
    def position(self) -> WindowPosition:
        return WindowPosition.from_str(self.settings.get_string(SETTING_WINDOW_POSITION))

    @property
    def size(self) -> float:
        return self.settings.get_double(SETTING_WINDOW_SIZE)

    @property
    def maximize(self) -> bool:
        return self.settings.get_boolean(SETTING_WINDOW_MAXIMIZE)

    # Attach / detach

    def attach(self, window) -> None:
        """Start following window (the newly tracked window)."""
        self.detach()
        self.window = window

        self._window_connections.connect(window, "size-changed", self.on_live_resize)
        for signal in MAXIMIZE_NOTIFY_SIGNALS:
            self._window_connections.connect(window, signal, self._on_maximized_changed)
        self._window_connections.connect(self.display, "grab-op-end", self._on_grab_op_end)

        self._settings_connections.connect(
            self.settings, f"changed::{SETTING_WINDOW_SIZE}", self._on_size_setting_changed
        )
        self._settings_connections.connect(
            self.settings, f"changed::{SETTING_WINDOW_POSITION}", self._on_size_setting_changed
        )
        self._settings_connections.connect(
            self.settings, f"changed::{SETTING_WINDOW_MAXIMIZE}", self._on_maximize_setting_changed
        )

    def detach(self) -> None:
        """Stop following the current window, dropping any pending settle wait."""
        self.cancel_settle()
        self._window_connections.disconnect()
        self._settings_connections.disconnect()
        self.window = None

    def cancel_settle(self) -> None:
        if self._settle is not None:
            self._settle.cancel()
            self._settle = None

    # Placement

    def target_rect(self, monitor: int) -> Optional[Rect]:
        """Target rectangle on monitor for the persisted ratio and edge."""
        workarea = self.display.get_work_area_for_monitor(monitor)
        if workarea is None:
            return None

        return target_rect_for_workarea_size(
            workarea,
            self.display.get_monitor_scale(monitor),
            self.size,
            self.position,
        )

    def _move_resize(self, window, rect: Rect) -> None:
        self.current_target_rect = rect
        self.notifier.emit("move-resize-requested", rect)
        window.move_resize_frame(True, rect.x, rect.y, rect.width, rect.height)

    def apply_initial_geometry(self, window) -> None:
        """Place a newly tracked window on the current monitor."""
        monitor = self.display.get_current_monitor()
        rect = self.target_rect(monitor)
        if rect is None:
            logger.warning(f"No work area for monitor {monitor}, skipping initial placement")
            return

        logger.info(
            f"Placing window at {self.position.value} edge: "
            f"x={rect.x} y={rect.y} width={rect.width} height={rect.height}"
        )
        self._move_resize(window, rect)

        if self.maximize:
            window.maximize(self.position.orientation)

    def update_window_geometry(self) -> None:
        """Re-apply the target rectangle to the tracked window on its monitor."""
        window = self.window
        if window is None:
            return

        monitor = window.get_monitor()
        if monitor < 0:
            monitor = self.display.get_current_monitor()

        rect = self.target_rect(monitor)
        if rect is None:
            logger.debug(f"No work area for monitor {monitor}, skipping geometry update")
            return

        orientation = self.position.orientation
        for axis in Orientation:
            if axis != orientation and window.is_maximized(axis):
                window.unmaximize(axis)

        if self.maximize:
            window.maximize(orientation)
            return

        if window.is_maximized(orientation):
            window.unmaximize(orientation)

        self._move_resize(window, rect)

    # Live resize

    def on_live_resize(self, window, *args) -> None:
        """Handle size-changed: persist the ratio once the window settled."""
        if window is not self.window:
            return

        if self._settle is not None and self._settle.active:
            # The session's own size-changed handler has restarted its timer
            return

        self._settle = SettleWaiter(
            [
                (window, "size-changed"),
                (window, "position-changed"),
                *((window, signal) for signal in MAXIMIZE_NOTIFY_SIGNALS),
                (self.display, "grab-op-begin"),
                (self.display, "grab-op-end"),
                (self.notifier, "move-resize-requested"),
            ],
            timeout_ms=self.idle_timeout_ms,
            loop=self.loop,
            on_settled=self._on_settled,
        ).start()

    def _on_grab_op_end(self, display, window, *args) -> None:
        if window is not self.window:
            return

        if self._settle is not None and self._settle.active:
            self._settle.restart()
        else:
            self.on_live_resize(window)

    def _on_settled(self) -> None:
        self._settle = None
        self.update_size_setting()

    def update_size_setting(self) -> None:
        """Persist the tracked window's current size as a ratio of its work area."""
        window = self.window
        if window is None:
            return

        monitor = window.get_monitor()
        if monitor < 0:
            logger.debug("Window is not on any monitor, skipping size update")
            return

        workarea = self.display.get_work_area_for_monitor(monitor)
        if workarea is None:
            logger.debug(f"No work area for monitor {monitor}, skipping size update")
            return

        orientation = self.position.orientation
        if window.is_maximized(orientation):
            logger.debug("Window is maximized, keeping persisted size")
            return

        total = extent(workarea, orientation)
        if total <= 0:
            return

        frame = window.get_frame_rect()
        if frame == self.current_target_rect:
            # Unchanged since the last placement
            return

        current = extent(frame, orientation)
        if current <= 0:
            return

        ratio = min(current / total, 1.0)
        logger.info(f"Window resized to {current}/{total}, persisting size {ratio:.4f}")

        self._persisting = True
        try:
            self.settings.set_double(SETTING_WINDOW_SIZE, ratio)
        except SettingsError as e:
            logger.warning(f"Could not persist window size: {e.message}")
            return
        finally:
            self._persisting = False

        self.current_target_rect = self.target_rect(monitor)

    # Settings reactions

    def _on_size_setting_changed(self, settings, key) -> None:
        if self._persisting:
            return
        self.update_window_geometry()

    def _on_maximize_setting_changed(self, settings, key) -> None:
        self.update_window_geometry()

    def _on_maximized_changed(self, window, *args) -> None:
        if window is not self.window:
            return

        orientation = self.position.orientation
        maximized = window.is_maximized(orientation)

        if maximized and not self.maximize and self.size < 1.0:
            # Maximized by the compositor, go back to the explicit size
            logger.info("Window maximized externally, restoring configured size")
            window.unmaximize(orientation)
            self.update_window_geometry()
        elif not maximized and self.maximize:
            logger.info("Window unmaximized by the user, clearing window-maximize")
            self.settings.set_boolean(SETTING_WINDOW_MAXIMIZE, False)
