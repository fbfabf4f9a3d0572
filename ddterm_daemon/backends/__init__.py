"""Compositor, session bus and process backends.

base holds the interfaces the controller depends on. sway and dbus import
i3ipc and pydbus/PyGObject; import them directly where they are needed.
"""

from .base import BusConnection, CompositorWindow, Display, NameWatch, ProcessSpawner, RemoteActionGroup
from .process import SubprocessSpawner

__all__ = [
    "BusConnection",
    "CompositorWindow",
    "Display",
    "NameWatch",
    "ProcessSpawner",
    "RemoteActionGroup",
    "SubprocessSpawner",
]
