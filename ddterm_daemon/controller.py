"""
Dropdown controller.

Owns the identity resolver, the lifecycle tracker, the geometry synchronizer
and the action broker, and wires them to the compositor display, the
settings store and the session bus.

Control flow:
    window-created -> tracker (identity) -> geometry (initial placement)
    size-changed -> geometry (settle) -> settings (window-size)
    hotkey -> broker -> remote toggle or companion spawn -> window-created
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from .backends.base import BusConnection, Display, ProcessSpawner
from .constants import (
    APP_DBUS_PATH,
    APP_ID,
    DEFAULT_IDLE_TIMEOUT_MS,
    SETTING_TOGGLE_HOTKEY,
    TOGGLE_KEYBINDING_NAME,
    WINDOW_PATH_PREFIX,
)
from .errors import SpawnError
from .models.geometry import Rect
from .services.action_broker import ActionBroker
from .services.geometry_sync import GeometrySynchronizer
from .services.window_identity import WindowIdentityResolver
from .services.window_tracker import WindowTracker
from .signals import ConnectionSet, SignalEmitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionMode:
    """Why the controller is being disabled.

    allow_extensions is False for transient modes (screen lock, compositor
    restart): the companion keeps running so its terminals survive.
    """

    allow_extensions: bool = True


class DropdownController(SignalEmitter):
    """Manages the single dropdown terminal window.

    Signals:
        current-window-changed: tracked window changed (window or None)
        move-resize-requested: a target rectangle is about to be applied

    Args:
        display: Compositor display
        settings: Settings store
        bus: Session bus
        spawner: Process spawner for the companion fallback
        companion_command: Companion command line (without --undecorated)
        loop: Scheduler for settle timers (running asyncio loop by default)
        idle_timeout_ms: Settle idle timeout
    """

    def __init__(
        self,
        display: Display,
        settings,
        bus: BusConnection,
        spawner: ProcessSpawner,
        companion_command: List[str],
        loop=None,
        idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
    ):
        super().__init__()
        self.display = display
        self.settings = settings
        self.loop = loop or asyncio.get_running_loop()

        self.resolver = WindowIdentityResolver(APP_ID, WINDOW_PATH_PREFIX)
        self.geometry = GeometrySynchronizer(
            display, settings, self, self.loop, idle_timeout_ms=idle_timeout_ms
        )
        self.tracker = WindowTracker(self.geometry, self.resolver)
        self.broker = ActionBroker(bus, spawner, companion_command, APP_ID, APP_DBUS_PATH)

        self._display_connections = ConnectionSet()
        self._internal_connections = ConnectionSet()
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def current_window(self):
        return self.tracker.current_window

    @property
    def current_target_rect(self) -> Optional[Rect]:
        return self.geometry.current_target_rect

    def enable(self) -> None:
        """Register the hotkey, watch the companion and follow new windows."""
        if self._enabled:
            logger.warning("Controller already enabled")
            return

        self._internal_connections.connect(
            self.tracker, "current-window-changed", self._on_current_window_changed
        )
        self._internal_connections.connect(
            self.settings, f"changed::{SETTING_TOGGLE_HOTKEY}", self._on_hotkey_changed
        )

        self._bind_hotkey()
        self.broker.start()
        self._display_connections.connect(self.display, "window-created", self.tracker.handle_created)

        self._enabled = True
        logger.info("Dropdown controller enabled")

    def disable(self, session_mode: Optional[SessionMode] = None) -> None:
        """Tear everything down.

        Order: remote quit (genuine shutdown only), stop the bus watch,
        dispose the action handle, stop following window-created, release
        the tracked window, remove the hotkey.
        """
        if not self._enabled:
            return

        session_mode = session_mode or SessionMode()
        self.broker.disable(allow_quit=session_mode.allow_extensions)

        self._display_connections.disconnect()
        self.tracker.release()
        self._unbind_hotkey()

        self._internal_connections.disconnect()
        self._enabled = False
        logger.info(
            f"Dropdown controller disabled (companion {'quit' if session_mode.allow_extensions else 'kept'})"
        )

    def _bind_hotkey(self) -> None:
        accelerator = self.settings.get_string(SETTING_TOGGLE_HOTKEY)
        self.display.add_keybinding(TOGGLE_KEYBINDING_NAME, accelerator, self._on_hotkey)
        logger.info(f"Toggle hotkey: {accelerator}")

    def _unbind_hotkey(self) -> None:
        self.display.remove_keybinding(TOGGLE_KEYBINDING_NAME)

    def _on_hotkey_changed(self, settings, key) -> None:
        self._unbind_hotkey()
        self._bind_hotkey()

    def _on_hotkey(self) -> None:
        try:
            self.toggle()
        except SpawnError as e:
            logger.error(f"{e.message}. {e.suggestion}")

    def _on_current_window_changed(self, tracker, window) -> None:
        self.emit("current-window-changed", window)

    def toggle(self) -> None:
        """Toggle the dropdown window.

        Raises:
            SpawnError: If the companion is absent and cannot be started
        """
        self.broker.toggle()

    def show(self) -> None:
        self.broker.show()

    def hide(self) -> None:
        self.broker.hide()
