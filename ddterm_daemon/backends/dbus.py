"""Session bus backend (pydbus).

pydbus delivers name-owner notifications through the GLib main context, so a
GLib.MainLoop runs on a daemon thread and every callback is handed to the
asyncio loop with call_soon_threadsafe() before it reaches the controller.
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Optional

from gi.repository import GLib
from pydbus import SessionBus

from ..errors import RemoteActionError
from .base import BusConnection, NameWatch, RemoteActionGroup

logger = logging.getLogger(__name__)

ACTIONS_INTERFACE = "org.gtk.Actions"


class GLibLoopThread:
    """Runs a GLib.MainLoop on a background thread."""

    def __init__(self) -> None:
        self.loop = GLib.MainLoop()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(target=self.loop.run, name="glib-main-loop", daemon=True)
        self._thread.start()
        logger.debug("GLib main loop started")

    def stop(self) -> None:
        if not self.is_running:
            return
        self.loop.quit()
        self._thread.join(timeout=5.0)
        self._thread = None
        logger.debug("GLib main loop stopped")


class PydbusNameWatch(NameWatch):
    """Callbacks already queued on the asyncio loop are dropped after unwatch()."""

    def __init__(self) -> None:
        self.handle = None
        self.active = True

    def deliver(self, callback, *args) -> None:
        if self.active:
            callback(*args)

    def unwatch(self) -> None:
        self.active = False
        if self.handle is not None:
            self.handle.unwatch()
            self.handle = None


class PydbusActionGroup(RemoteActionGroup):
    """org.gtk.Actions of a remote application.

    Calls are blocking D-Bus round trips, so they run on the bus's call
    executor and activate_action() returns immediately. Failures are logged
    when the call completes; the handle stays until the next name change.
    The proxy is created on first use by the executor thread.
    """

    def __init__(self, bus, name: str, object_path: str, loop: asyncio.AbstractEventLoop, executor: Executor):
        self.bus = bus
        self.name = name
        self.object_path = object_path
        self.loop = loop
        self.executor = executor
        self._proxy = None
        self._disposed = False

    def _get_proxy(self):
        if self._proxy is None:
            self._proxy = self.bus.get(self.name, self.object_path)[ACTIONS_INTERFACE]
        return self._proxy

    def _call_activate(self, name: str, parameter) -> None:
        try:
            self._get_proxy().Activate(name, [parameter] if parameter is not None else [], {})
        except (GLib.Error, KeyError) as e:
            raise RemoteActionError(name, str(e)) from e

    def _on_activate_done(self, name: str, future: asyncio.Future) -> None:
        if future.cancelled():
            return

        error = future.exception()
        if isinstance(error, RemoteActionError):
            logger.warning(f"{error.message}, waiting for the companion to reappear")
        elif error is not None:
            logger.error(f"Remote action '{name}' failed: {error}", exc_info=error)
        else:
            logger.debug(f"Remote action '{name}' delivered to {self.name}")

    def activate_action(self, name: str, parameter=None) -> None:
        if self._disposed:
            raise RemoteActionError(name, "action group disposed")

        future = self.loop.run_in_executor(self.executor, self._call_activate, name, parameter)
        future.add_done_callback(functools.partial(self._on_activate_done, name))

    def dispose(self) -> None:
        # Calls already queued on the executor still complete
        self._disposed = True


class PydbusSessionBus(BusConnection):
    """Session bus connection with callbacks delivered on the asyncio loop.

    Remote calls go through a single-worker executor so they never block the
    loop and reach the companion in the order they were made.

    Args:
        loop: asyncio loop that receives name-owner callbacks
        bus: pydbus bus (a new SessionBus by default)
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, bus=None):
        self.loop = loop
        self.bus = bus or SessionBus()
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dbus-call")

    def watch_name(
        self,
        name: str,
        name_appeared: Callable[[str], None],
        name_vanished: Callable[[], None],
    ) -> NameWatch:
        watch = PydbusNameWatch()

        def appeared(owner):
            logger.debug(f"{name} owned by {owner}")
            self.loop.call_soon_threadsafe(watch.deliver, name_appeared, name)

        def vanished():
            logger.debug(f"{name} has no owner")
            self.loop.call_soon_threadsafe(watch.deliver, name_vanished)

        watch.handle = self.bus.watch_name(name, name_appeared=appeared, name_vanished=vanished)
        return watch

    def get_action_group(self, name: str, object_path: str) -> RemoteActionGroup:
        return PydbusActionGroup(self.bus, name, object_path, self.loop, self.executor)

    def close(self) -> None:
        """Stop accepting calls; queued calls (a final quit) still run."""
        self.executor.shutdown(wait=False)
