"""Collaborator interfaces consumed by the controller.

The controller never talks to Sway or D-Bus directly; it works against these
abstract classes. Concrete implementations live in backends.sway and
backends.dbus, test doubles in tests/fixtures.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..models.geometry import Orientation, Rect
from ..signals import SignalEmitter


class CompositorWindow(SignalEmitter, ABC):
    """A window managed by the compositor.

    Signals:
        notify::gtk-application-id: application id changed
        notify::gtk-window-object-path: object path changed
        notify::maximized-horizontally / notify::maximized-vertically
        size-changed, position-changed: frame geometry changed
        unmanaging, unmanaged: window is going away / gone
    """

    gtk_application_id: Optional[str] = None
    gtk_window_object_path: Optional[str] = None
    maximized_horizontally: bool = False
    maximized_vertically: bool = False

    @abstractmethod
    def get_frame_rect(self) -> Rect:
        """Current frame rectangle."""

    @abstractmethod
    def get_monitor(self) -> int:
        """Index of the monitor the window is on, -1 if unknown."""

    @abstractmethod
    def move_resize_frame(self, user_op: bool, x: int, y: int, width: int, height: int) -> None:
        """Request a new frame rectangle."""

    @abstractmethod
    def activate(self) -> None:
        """Raise and focus the window."""

    @abstractmethod
    def make_above(self) -> None:
        """Keep the window above other windows."""

    @abstractmethod
    def stick(self) -> None:
        """Show the window on every workspace."""

    @abstractmethod
    def maximize(self, orientation: Orientation) -> None:
        """Maximize along one axis."""

    @abstractmethod
    def unmaximize(self, orientation: Orientation) -> None:
        """Undo maximize along one axis."""

    def is_maximized(self, orientation: Orientation) -> bool:
        if orientation == Orientation.VERTICAL:
            return self.maximized_vertically
        return self.maximized_horizontally


class Display(SignalEmitter, ABC):
    """The compositor display.

    Signals:
        window-created: emitted with the new CompositorWindow
        grab-op-begin, grab-op-end: emitted with the window being dragged
    """

    @abstractmethod
    def get_current_monitor(self) -> int:
        """Index of the monitor the user is working on."""

    @abstractmethod
    def get_work_area_for_monitor(self, monitor: int) -> Optional[Rect]:
        """Work area of a monitor, None if the monitor is unknown."""

    def get_monitor_scale(self, monitor: int) -> int:
        """Coordinate granularity of a monitor."""
        return 1

    @abstractmethod
    def add_keybinding(self, name: str, accelerator: str, handler: Callable[[], None]) -> None:
        """Register a global hotkey."""

    @abstractmethod
    def remove_keybinding(self, name: str) -> None:
        """Unregister a global hotkey added with add_keybinding()."""


class RemoteActionGroup(ABC):
    """Remote-invocable set of named actions (org.gtk.Actions)."""

    @abstractmethod
    def activate_action(self, name: str, parameter=None) -> None:
        """Invoke a remote action.

        Raises:
            RemoteActionError: If the call fails
        """

    @abstractmethod
    def dispose(self) -> None:
        """Release the handle."""


class NameWatch(ABC):
    """Handle returned by BusConnection.watch_name()."""

    @abstractmethod
    def unwatch(self) -> None:
        """Stop watching. Idempotent."""


class BusConnection(ABC):
    """Session message bus."""

    @abstractmethod
    def watch_name(
        self,
        name: str,
        name_appeared: Callable[[str], None],
        name_vanished: Callable[[], None],
    ) -> NameWatch:
        """Watch a well-known name.

        name_appeared is called with the name whenever it gains an owner,
        name_vanished whenever it loses one (also initially if it has none).
        """

    @abstractmethod
    def get_action_group(self, name: str, object_path: str) -> RemoteActionGroup:
        """Handle to the actions exported by name at object_path."""


class ProcessSpawner(ABC):
    """Starts detached processes."""

    @abstractmethod
    def spawn(self, argv: List[str]) -> int:
        """Start argv in the background.

        Returns:
            PID of the new process

        Raises:
            SpawnError: If the process cannot be started
        """
