"""
Companion process broker.

Watches the companion's well-known bus name and forwards toggle/show/hide/quit
to the actions it exports. While the companion is not on the bus, toggle and
show start it instead; its own startup creates the window, which then flows
through the window tracker like any other window.
"""

import logging
from typing import List, Optional

from ..constants import (
    ACTION_HIDE,
    ACTION_QUIT,
    ACTION_SHOW,
    ACTION_TOGGLE,
    APP_DBUS_PATH,
    APP_ID,
    UNDECORATED_FLAG,
)
from ..errors import RemoteActionError
from ..backends.base import BusConnection, NameWatch, ProcessSpawner, RemoteActionGroup

logger = logging.getLogger(__name__)


class ActionBroker:
    """Absent/Present state machine for the companion process.

    Args:
        bus: Session bus
        spawner: Process spawner used when the companion is absent
        companion_command: Command line of the companion (without the flag)
        bus_name: Well-known name of the companion
        object_path: Object path exporting org.gtk.Actions
    """

    def __init__(
        self,
        bus: BusConnection,
        spawner: ProcessSpawner,
        companion_command: List[str],
        bus_name: str = APP_ID,
        object_path: str = APP_DBUS_PATH,
    ):
        self.bus = bus
        self.spawner = spawner
        self.companion_command = list(companion_command)
        self.bus_name = bus_name
        self.object_path = object_path

        self.action_group: Optional[RemoteActionGroup] = None
        self._watch: Optional[NameWatch] = None

    @property
    def is_present(self) -> bool:
        return self.action_group is not None

    @property
    def is_watching(self) -> bool:
        return self._watch is not None

    @property
    def spawn_argv(self) -> List[str]:
        return [*self.companion_command, UNDECORATED_FLAG]

    def start(self) -> None:
        """Start watching the companion's bus name."""
        self.stop_watch()
        self._watch = self.bus.watch_name(self.bus_name, self._name_appeared, self._name_vanished)
        logger.info(f"Watching bus name {self.bus_name}")

    def stop_watch(self) -> None:
        if self._watch is not None:
            self._watch.unwatch()
            self._watch = None

    def _name_appeared(self, name: str) -> None:
        self.dispose_action_group()
        self.action_group = self.bus.get_action_group(name, self.object_path)
        logger.info(f"Companion appeared on the bus as {name}")

    def _name_vanished(self, *args) -> None:
        if self.action_group is not None:
            logger.info(f"Companion {self.bus_name} left the bus")
        self.dispose_action_group()

    def dispose_action_group(self) -> None:
        if self.action_group is not None:
            self.action_group.dispose()
            self.action_group = None

    def _activate(self, action: str) -> bool:
        """Invoke a remote action if the companion is present.

        Returns:
            True if a handle was held (whether or not the call succeeded)
        """
        if self.action_group is None:
            return False

        try:
            self.action_group.activate_action(action, None)
            logger.debug(f"Activated remote action '{action}'")
        except RemoteActionError as e:
            # The next presence notification replaces the handle
            logger.warning(f"{e.message}, waiting for the companion to reappear")
        return True

    def spawn(self) -> int:
        """Start the companion process.

        Raises:
            SpawnError: If the process cannot be started
        """
        logger.info(f"Companion not on the bus, spawning {self.spawn_argv}")
        return self.spawner.spawn(self.spawn_argv)

    def toggle(self) -> None:
        """Toggle the dropdown window, spawning the companion if needed."""
        if not self._activate(ACTION_TOGGLE):
            self.spawn()

    def show(self) -> None:
        if not self._activate(ACTION_SHOW):
            self.spawn()

    def hide(self) -> None:
        if not self._activate(ACTION_HIDE):
            logger.debug("Companion not running, nothing to hide")

    def quit(self) -> None:
        self._activate(ACTION_QUIT)

    def disable(self, allow_quit: bool) -> None:
        """Teardown: quit the companion if allowed, then release everything.

        Args:
            allow_quit: False when teardown is caused by a transient session
                mode (lock screen, compositor restart) and the companion's
                terminals must survive
        """
        if allow_quit:
            self.quit()

        self.stop_watch()
        self.dispose_action_group()
