"""Deterministic fakes for the compositor, the session bus and process spawning.

ManualScheduler replaces the asyncio loop's timer API so settle timeouts can
be driven by advancing a virtual clock instead of sleeping.
"""

import asyncio
import itertools
from typing import Callable, Dict, List, Optional, Tuple

from ddterm_daemon.backends.base import (
    BusConnection,
    CompositorWindow,
    Display,
    NameWatch,
    ProcessSpawner,
    RemoteActionGroup,
)
from ddterm_daemon.constants import APP_ID, WINDOW_PATH_PREFIX
from ddterm_daemon.errors import RemoteActionError, SpawnError
from ddterm_daemon.models.geometry import Orientation, Rect


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable, args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """call_later()/create_future() on a virtual clock."""

    def __init__(self) -> None:
        self.time = 0.0
        self._timers: List[FakeTimerHandle] = []
        self._futures_loop = asyncio.new_event_loop()

    def create_future(self) -> asyncio.Future:
        return self._futures_loop.create_future()

    def call_later(self, delay: float, callback: Callable, *args) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.time + delay, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending_timers(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, ms: float) -> None:
        """Move the clock forward, running every timer that becomes due."""
        target = self.time + ms / 1000
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.time = max(self.time, timer.when)
            timer.callback(*timer.args)
        self.time = target
        self._timers = [t for t in self._timers if not t.cancelled]

    def close(self) -> None:
        self._futures_loop.close()


class FakeWindow(CompositorWindow):
    """Window whose identity, geometry and lifecycle are driven by the test."""

    _ids = itertools.count(1)

    def __init__(
        self,
        application_id: Optional[str] = None,
        object_path: Optional[str] = None,
        rect: Optional[Rect] = None,
        monitor: int = 0,
    ):
        super().__init__()
        self.window_id = next(self._ids)
        self.gtk_application_id = application_id
        self.gtk_window_object_path = object_path
        self.rect = rect or Rect(x=0, y=0, width=800, height=600)
        self.monitor = monitor
        self.calls: List[Tuple] = []

    def __repr__(self) -> str:
        return f"<FakeWindow {self.window_id}>"

    @classmethod
    def dropdown(cls, **kwargs) -> "FakeWindow":
        """A window that already identifies as the dropdown window."""
        return cls(APP_ID, f"{WINDOW_PATH_PREFIX}1", **kwargs)

    # Test drivers

    def set_application_id(self, value: Optional[str]) -> None:
        self.gtk_application_id = value
        self.emit("notify::gtk-application-id")

    def set_object_path(self, value: Optional[str]) -> None:
        self.gtk_window_object_path = value
        self.emit("notify::gtk-window-object-path")

    def user_resize(self, width: int, height: int) -> None:
        self.rect = Rect(x=self.rect.x, y=self.rect.y, width=width, height=height)
        self.emit("size-changed")

    def user_move(self, x: int, y: int) -> None:
        self.rect = Rect(x=x, y=y, width=self.rect.width, height=self.rect.height)
        self.emit("position-changed")

    def unmanage(self) -> None:
        self.emit("unmanaging")
        self.emit("unmanaged")

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    # CompositorWindow

    def get_frame_rect(self) -> Rect:
        return self.rect

    def get_monitor(self) -> int:
        return self.monitor

    def move_resize_frame(self, user_op: bool, x: int, y: int, width: int, height: int) -> None:
        self.calls.append(("move_resize_frame", x, y, width, height))
        self.rect = Rect(x=x, y=y, width=width, height=height)

    def activate(self) -> None:
        self.calls.append(("activate",))

    def make_above(self) -> None:
        self.calls.append(("make_above",))

    def stick(self) -> None:
        self.calls.append(("stick",))

    def maximize(self, orientation: Orientation) -> None:
        self.calls.append(("maximize", orientation))
        self._set_maximized(orientation, True)

    def unmaximize(self, orientation: Orientation) -> None:
        self.calls.append(("unmaximize", orientation))
        self._set_maximized(orientation, False)

    def _set_maximized(self, orientation: Orientation, value: bool) -> None:
        if orientation == Orientation.VERTICAL:
            changed = self.maximized_vertically != value
            self.maximized_vertically = value
            signal = "notify::maximized-vertically"
        else:
            changed = self.maximized_horizontally != value
            self.maximized_horizontally = value
            signal = "notify::maximized-horizontally"
        if changed:
            self.emit(signal)


class FakeDisplay(Display):
    """Display with fixed work areas per monitor."""

    def __init__(self, workareas: Optional[Dict[int, Rect]] = None, current_monitor: int = 0):
        super().__init__()
        self.workareas = workareas if workareas is not None else {0: Rect(x=0, y=0, width=1920, height=1080)}
        self.current_monitor = current_monitor
        self.scales: Dict[int, int] = {}
        self.keybindings: Dict[str, Tuple[str, Callable]] = {}

    def create_window(self, **kwargs) -> FakeWindow:
        window = FakeWindow(**kwargs)
        self.emit("window-created", window)
        return window

    def press_hotkey(self, name: str) -> None:
        _, handler = self.keybindings[name]
        handler()

    def get_current_monitor(self) -> int:
        return self.current_monitor

    def get_work_area_for_monitor(self, monitor: int) -> Optional[Rect]:
        return self.workareas.get(monitor)

    def get_monitor_scale(self, monitor: int) -> int:
        return self.scales.get(monitor, 1)

    def add_keybinding(self, name: str, accelerator: str, handler: Callable[[], None]) -> None:
        self.keybindings[name] = (accelerator, handler)

    def remove_keybinding(self, name: str) -> None:
        self.keybindings.pop(name, None)


class FakeActionGroup(RemoteActionGroup):
    def __init__(self, name: str, object_path: str):
        self.name = name
        self.object_path = object_path
        self.activated: List[Tuple[str, object]] = []
        self.disposed = False
        self.fail = False

    def activate_action(self, name: str, parameter=None) -> None:
        if self.fail:
            raise RemoteActionError(name, "org.freedesktop.DBus.Error.NoReply")
        self.activated.append((name, parameter))

    def dispose(self) -> None:
        self.disposed = True


class FakeNameWatch(NameWatch):
    def __init__(self, name: str, appeared: Callable, vanished: Callable):
        self.name = name
        self.appeared = appeared
        self.vanished = vanished
        self.active = True

    def unwatch(self) -> None:
        self.active = False


class FakeBus(BusConnection):
    """Session bus where the companion's name is owned on demand."""

    def __init__(self) -> None:
        self.owned = False
        self.watches: List[FakeNameWatch] = []
        self.action_groups: List[FakeActionGroup] = []

    @property
    def active_watches(self) -> List[FakeNameWatch]:
        return [watch for watch in self.watches if watch.active]

    def watch_name(self, name: str, name_appeared: Callable, name_vanished: Callable) -> NameWatch:
        watch = FakeNameWatch(name, name_appeared, name_vanished)
        self.watches.append(watch)
        if self.owned:
            name_appeared(name)
        else:
            name_vanished()
        return watch

    def get_action_group(self, name: str, object_path: str) -> FakeActionGroup:
        group = FakeActionGroup(name, object_path)
        self.action_groups.append(group)
        return group

    def appear(self) -> None:
        self.owned = True
        for watch in self.active_watches:
            watch.appeared(watch.name)

    def vanish(self) -> None:
        self.owned = False
        for watch in self.active_watches:
            watch.vanished()

    @property
    def remote_calls(self) -> List[str]:
        return [name for group in self.action_groups for name, _ in group.activated]


class FakeSpawner(ProcessSpawner):
    def __init__(self) -> None:
        self.spawned: List[List[str]] = []
        self.fail = False
        self._pids = itertools.count(1000)

    def spawn(self, argv: List[str]) -> int:
        if self.fail:
            raise SpawnError(argv, "No such file or directory")
        self.spawned.append(list(argv))
        return next(self._pids)
