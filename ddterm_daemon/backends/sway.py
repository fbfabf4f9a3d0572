"""Sway/i3 compositor backend.

Implements the Display and CompositorWindow interfaces over i3ipc.aio.

Sway differs from a GNOME-style window manager in a few places:
- there are no resize/move events, the geometry of watched windows is polled;
- windows have no object path property, it is read from a con mark under
  /com/github/amezin/ddterm/window/ or, for XWayland windows, from the
  _GTK_WINDOW_OBJECT_PATH X property via xprop;
- there is no per-axis maximize, it is emulated by resizing to the work area
  (fullscreen is reported as maximized on both axes);
- hotkeys are `bindsym <combo> nop <name>` bindings reported by binding events.

Display methods are synchronous: they answer from a snapshot of outputs and
workspaces refreshed on every output/workspace event. Commands are queued as
tasks on the event loop; flush() waits for them.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from i3ipc import Event
from i3ipc import aio

from ..constants import DEFAULT_POLL_INTERVAL_MS, WINDOW_PATH_PREFIX
from ..errors import CompositorError, ErrorCode
from ..models.geometry import Orientation, Rect, extent
from .base import CompositorWindow, Display

logger = logging.getLogger(__name__)

XPROP_APPLICATION_ID = "_GTK_APPLICATION_ID"
XPROP_OBJECT_PATH = "_GTK_WINDOW_OBJECT_PATH"

_XPROP_LINE = re.compile(r'^(?P<name>\w+)\([^)]*\)\s*=\s*"(?P<value>[^"]*)"')

KEYBINDING_COMMAND_PREFIX = "nop "


def to_rect(rect) -> Rect:
    """Convert an i3ipc rect reply to a Rect."""
    return Rect(x=rect.x, y=rect.y, width=max(rect.width, 0), height=max(rect.height, 0))


def get_application_id(container) -> Optional[str]:
    """app_id for native Wayland windows, WM_CLASS for XWayland windows."""
    app_id = getattr(container, "app_id", None)
    if app_id:
        return app_id
    return getattr(container, "window_class", None) or None


def get_object_path_mark(container) -> Optional[str]:
    for mark in getattr(container, "marks", None) or []:
        if mark.startswith(WINDOW_PATH_PREFIX):
            return mark
    return None


def parse_xprop_output(output: str) -> Dict[str, str]:
    """Parse `xprop -id <xid> PROP...` output.

    Lines look like `_GTK_APPLICATION_ID(UTF8_STRING) = "com.example"`;
    properties that are not set (`PROP:  not found.`) are omitted.
    """
    values = {}
    for line in output.splitlines():
        match = _XPROP_LINE.match(line.strip())
        if match:
            values[match.group("name")] = match.group("value")
    return values


async def read_gtk_xprops(window_xid: int, timeout: float = 1.0) -> Dict[str, str]:
    """Read the GTK identity X properties of an XWayland window.

    Returns:
        Property name -> value (empty if xprop is unavailable or fails)
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "xprop", "-id", str(window_xid), XPROP_APPLICATION_ID, XPROP_OBJECT_PATH,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )

        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)

        if proc.returncode != 0:
            logger.debug(f"xprop failed for window {window_xid}: {stderr.decode().strip()}")
            return {}

        return parse_xprop_output(stdout.decode())

    except asyncio.TimeoutError:
        logger.warning(f"xprop timeout for window {window_xid}")
        return {}
    except FileNotFoundError:
        logger.error("xprop command not found. Install xorg-xprop to identify XWayland windows.")
        return {}


@dataclass
class OutputInfo:
    """Snapshot of one active output."""
    name: str
    rect: Rect
    workarea: Rect


class SwayWindow(CompositorWindow):
    """A Sway container holding an application window."""

    def __init__(self, display: "SwayDisplay", container):
        super().__init__()
        self.display = display
        self.con_id: int = container.id
        self.window_xid: Optional[int] = getattr(container, "window", None)
        self.unmanaged = False

        self._rect = to_rect(container.rect)
        self._x11_identity: Dict[str, str] = {}
        self._fullscreen = False
        # Emulated-maximized axes whose resize has been seen to fill the work area
        self._maximize_applied: Set[Orientation] = set()

        self.gtk_application_id = get_application_id(container)
        self.gtk_window_object_path = get_object_path_mark(container)
        self._set_fullscreen(bool(getattr(container, "fullscreen_mode", 0)), notify=False)

    def __repr__(self) -> str:
        return f"<SwayWindow con_id={self.con_id} app_id={self.gtk_application_id!r}>"

    # Identity

    def _set_identity(self, application_id: Optional[str], object_path: Optional[str]) -> None:
        # Each slot is announced separately, in no particular order
        if application_id != self.gtk_application_id:
            self.gtk_application_id = application_id
            self.emit("notify::gtk-application-id")

        if object_path != self.gtk_window_object_path:
            self.gtk_window_object_path = object_path
            self.emit("notify::gtk-window-object-path")

    def update_identity(self, container) -> None:
        """Refresh identity from a container reply (plus any X properties read)."""
        application_id = self._x11_identity.get(XPROP_APPLICATION_ID) or get_application_id(container)
        object_path = get_object_path_mark(container) or self._x11_identity.get(XPROP_OBJECT_PATH)
        self._set_identity(application_id, object_path)

    def set_x11_identity(self, properties: Dict[str, str]) -> None:
        self._x11_identity = dict(properties)
        self._set_identity(
            properties.get(XPROP_APPLICATION_ID) or self.gtk_application_id,
            self.gtk_window_object_path or properties.get(XPROP_OBJECT_PATH),
        )

    # Geometry

    def update_geometry(self, container) -> None:
        """Apply a polled container reply, emitting geometry signals."""
        rect = to_rect(container.rect)
        old, self._rect = self._rect, rect

        if (rect.width, rect.height) != (old.width, old.height):
            self.emit("size-changed")
        if (rect.x, rect.y) != (old.x, old.y):
            self.emit("position-changed")

        self._set_fullscreen(bool(getattr(container, "fullscreen_mode", 0)))
        if not self._fullscreen:
            self._check_emulated_maximize()

    def _check_emulated_maximize(self) -> None:
        """Clear emulated maximize on axes the user resized away from the work area."""
        workarea = self._maximize_workarea()
        if workarea is None:
            return

        for orientation in Orientation:
            if not self.is_maximized(orientation):
                continue
            if extent(self._rect, orientation) == extent(workarea, orientation):
                self._maximize_applied.add(orientation)
            elif orientation in self._maximize_applied:
                logger.debug(f"{self!r}: resized out of {orientation.value} maximize")
                self._maximize_applied.discard(orientation)
                self._set_maximized(orientation, False)

    def _set_fullscreen(self, fullscreen: bool, notify: bool = True) -> None:
        was_fullscreen, self._fullscreen = self._fullscreen, fullscreen
        if not fullscreen and not was_fullscreen:
            # Emulated maximize state is kept
            return
        self._set_maximized(Orientation.HORIZONTAL, fullscreen, notify)
        self._set_maximized(Orientation.VERTICAL, fullscreen, notify)

    def _set_maximized(self, orientation: Orientation, value: bool, notify: bool = True) -> None:
        if orientation == Orientation.VERTICAL:
            if self.maximized_vertically == value:
                return
            self.maximized_vertically = value
            signal = "notify::maximized-vertically"
        else:
            if self.maximized_horizontally == value:
                return
            self.maximized_horizontally = value
            signal = "notify::maximized-horizontally"

        if notify:
            self.emit(signal)

    def get_frame_rect(self) -> Rect:
        return self._rect

    def get_monitor(self) -> int:
        return self.display.get_monitor_at(self._rect)

    # Requests

    def _command(self, command: str) -> None:
        self.display.command(f"[con_id={self.con_id}] {command}")

    def move_resize_frame(self, user_op: bool, x: int, y: int, width: int, height: int) -> None:
        self._command(
            f"floating enable, resize set width {width} px height {height} px, "
            f"move absolute position {x} px {y} px"
        )

    def activate(self) -> None:
        self._command("focus")

    def make_above(self) -> None:
        # Floating containers stay above the tiling layer
        self._command("floating enable")

    def stick(self) -> None:
        self._command("sticky enable")

    def _maximize_workarea(self) -> Optional[Rect]:
        monitor = self.get_monitor()
        if monitor < 0:
            monitor = self.display.get_current_monitor()
        return self.display.get_work_area_for_monitor(monitor)

    def maximize(self, orientation: Orientation) -> None:
        workarea = self._maximize_workarea()
        if workarea is None:
            logger.debug(f"{self!r}: no work area to maximize into")
            return

        rect = self._rect
        if orientation == Orientation.VERTICAL:
            rect = Rect(x=rect.x, y=workarea.y, width=rect.width, height=workarea.height)
        else:
            rect = Rect(x=workarea.x, y=rect.y, width=workarea.width, height=rect.height)

        self.move_resize_frame(False, rect.x, rect.y, rect.width, rect.height)
        self._maximize_applied.discard(orientation)
        self._set_maximized(orientation, True)

    def unmaximize(self, orientation: Orientation) -> None:
        if self._fullscreen:
            self._command("fullscreen disable")
            self._fullscreen = False
        self._maximize_applied.discard(orientation)
        self._set_maximized(orientation, False)

    # Lifecycle

    def close_notify(self) -> None:
        """window::close: unmanaging, then unmanaged."""
        if self.unmanaged:
            return
        self.emit("unmanaging")
        self.unmanaged = True
        self.emit("unmanaged")


class SwayDisplay(Display):
    """Sway display over an i3ipc.aio connection.

    Signals:
        window-created: emitted with the new SwayWindow
        shutdown: emitted with the Sway shutdown change ("exit" or "restart")
    """

    def __init__(self, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        super().__init__()
        self.conn: Optional[aio.Connection] = None
        self.poll_interval = poll_interval_ms / 1000

        self.windows: Dict[int, SwayWindow] = {}
        self.outputs: List[OutputInfo] = []
        self.focused_output: Optional[str] = None

        self._keybindings: Dict[str, tuple] = {}
        self._pending: Set[asyncio.Task] = set()
        self._poll_task: Optional[asyncio.Task] = None

    # Connection

    async def connect_ipc(self, max_attempts: int = 10) -> None:
        """Connect to Sway with exponential backoff retry.

        Raises:
            CompositorError: If Sway cannot be reached
        """
        delay = 0.1
        for attempt in range(1, max_attempts + 1):
            try:
                logger.info(f"Attempting to connect to Sway (attempt {attempt}/{max_attempts})")
                self.conn = await aio.Connection(auto_reconnect=True).connect()
                version = await self.conn.get_version()
                logger.info(f"Connected to Sway version {version.human_readable}")
                return
            except Exception as e:
                logger.warning(f"Connection attempt {attempt} failed: {e}")
                if attempt < max_attempts:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 5.0)

        raise CompositorError(
            "connect",
            f"no response after {max_attempts} attempts",
            code=ErrorCode.SWAY_NOT_RUNNING,
        )

    async def start(self) -> None:
        """Subscribe to events, snapshot outputs and announce existing windows."""
        if self.conn is None:
            await self.connect_ipc()

        self.conn.on(Event.WINDOW_NEW, self._on_window_new)
        self.conn.on(Event.WINDOW_CLOSE, self._on_window_close)
        for event in (
            Event.WINDOW_TITLE,
            Event.WINDOW_MARK,
            Event.WINDOW_MOVE,
            Event.WINDOW_FLOATING,
            Event.WINDOW_FULLSCREEN_MODE,
        ):
            self.conn.on(event, self._on_window_changed)
        self.conn.on(Event.WORKSPACE, self._on_layout_changed)
        self.conn.on(Event.OUTPUT, self._on_layout_changed)
        self.conn.on(Event.BINDING, self._on_binding)
        self.conn.on(Event.SHUTDOWN, self._on_shutdown)

        await self.conn.subscribe([
            Event.WINDOW,
            Event.WORKSPACE,
            Event.OUTPUT,
            Event.BINDING,
            Event.SHUTDOWN,
        ])
        logger.info("Subscribed to Sway event stream (window, workspace, output, binding, shutdown)")

        await self.refresh_outputs()
        await self.scan_windows()

        self._poll_task = asyncio.ensure_future(self._poll_geometry())

    async def stop(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self.flush()

        if self.conn is not None:
            self.conn.main_quit()

    # Commands

    def command(self, command: str) -> None:
        """Queue a Sway command."""
        task = asyncio.ensure_future(self._run_command(command))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_command(self, command: str) -> None:
        try:
            replies = await self.conn.command(command)
        except Exception as e:
            logger.error(f"Sway command failed: {command}: {e}")
            return

        for reply in replies:
            if not reply.success:
                logger.warning(f"Sway rejected '{command}': {reply.error}")

    async def flush(self) -> None:
        """Wait for every queued command."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Outputs and work areas

    async def refresh_outputs(self) -> None:
        outputs = await self.conn.get_outputs()
        workspaces = await self.conn.get_workspaces()

        visible = {ws.output: ws for ws in workspaces if ws.visible}
        self.focused_output = next((ws.output for ws in workspaces if ws.focused), None)

        self.outputs = []
        for output in outputs:
            if not output.active:
                continue
            workspace = visible.get(output.name)
            rect = to_rect(output.rect)
            self.outputs.append(OutputInfo(
                name=output.name,
                rect=rect,
                workarea=to_rect(workspace.rect) if workspace is not None else rect,
            ))

        logger.debug(f"Outputs: {[(o.name, o.workarea) for o in self.outputs]}, focused {self.focused_output}")

    def get_current_monitor(self) -> int:
        for index, output in enumerate(self.outputs):
            if output.name == self.focused_output:
                return index
        return 0 if self.outputs else -1

    def get_work_area_for_monitor(self, monitor: int) -> Optional[Rect]:
        if 0 <= monitor < len(self.outputs):
            return self.outputs[monitor].workarea
        return None

    def get_monitor_at(self, rect: Rect) -> int:
        """Index of the output containing the center of rect, -1 if none."""
        cx = rect.x + rect.width // 2
        cy = rect.y + rect.height // 2
        for index, output in enumerate(self.outputs):
            o = output.rect
            if o.x <= cx < o.right and o.y <= cy < o.bottom:
                return index
        return -1

    # Windows

    def _register(self, container) -> SwayWindow:
        window = SwayWindow(self, container)
        self.windows[window.con_id] = window
        self.emit("window-created", window)

        if window.window_xid:
            task = asyncio.ensure_future(self._lookup_x11_identity(window))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return window

    async def _lookup_x11_identity(self, window: SwayWindow) -> None:
        properties = await read_gtk_xprops(window.window_xid)
        if properties and not window.unmanaged:
            logger.debug(f"{window!r}: X11 identity {properties}")
            window.set_x11_identity(properties)

    async def scan_windows(self) -> None:
        """Announce windows that existed before the daemon started."""
        tree = await self.conn.get_tree()
        count = 0
        for container in tree.descendants():
            if container.type not in ("con", "floating_con") or container.id in self.windows:
                continue
            if not (getattr(container, "app_id", None) or getattr(container, "window", None)):
                continue
            self._register(container)
            count += 1
        logger.info(f"Startup scan found {count} window(s)")

    def _on_window_new(self, conn, event) -> None:
        container = event.container
        if container.id in self.windows:
            return
        self._register(container)

    def _on_window_close(self, conn, event) -> None:
        window = self.windows.pop(event.container.id, None)
        if window is not None:
            window.close_notify()

    def _on_window_changed(self, conn, event) -> None:
        window = self.windows.get(event.container.id)
        if window is None:
            return
        window.update_identity(event.container)
        window.update_geometry(event.container)

    async def _on_layout_changed(self, conn, event) -> None:
        await self.refresh_outputs()

    def _is_watched(self, window: SwayWindow) -> bool:
        return window.handler_count("size-changed") > 0 or window.handler_count("position-changed") > 0

    async def _poll_geometry(self) -> None:
        """Emit size-changed/position-changed for windows someone listens to."""
        while True:
            await asyncio.sleep(self.poll_interval)

            watched = [w for w in self.windows.values() if self._is_watched(w)]
            if not watched:
                continue

            try:
                tree = await self.conn.get_tree()
            except Exception as e:
                logger.warning(f"Geometry poll failed: {e}")
                continue

            for window in watched:
                container = tree.find_by_id(window.con_id)
                if container is not None and not window.unmanaged:
                    window.update_geometry(container)

    # Keybindings

    def add_keybinding(self, name: str, accelerator: str, handler: Callable[[], None]) -> None:
        self.remove_keybinding(name)
        self._keybindings[name] = (accelerator, handler)
        self.command(f"bindsym --no-repeat {accelerator} {KEYBINDING_COMMAND_PREFIX}{name}")

    def remove_keybinding(self, name: str) -> None:
        binding = self._keybindings.pop(name, None)
        if binding is not None:
            accelerator, _ = binding
            self.command(f"unbindsym {accelerator}")

    def _on_binding(self, conn, event) -> None:
        command = (event.binding.command or "").strip()
        if not command.startswith(KEYBINDING_COMMAND_PREFIX):
            return

        binding = self._keybindings.get(command[len(KEYBINDING_COMMAND_PREFIX):].strip())
        if binding is None:
            return

        _, handler = binding
        try:
            handler()
        except Exception as e:
            logger.error(f"Error in keybinding handler for '{command}': {e}", exc_info=True)

    def _on_shutdown(self, conn, event) -> None:
        logger.info(f"Sway shutdown event: {event.change}")
        self.emit("shutdown", event.change)
