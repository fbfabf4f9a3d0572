"""Detached process spawning for the companion fallback."""

import logging
import os
import subprocess
from typing import List

from ..errors import SpawnError
from .base import ProcessSpawner

logger = logging.getLogger(__name__)


class SubprocessSpawner(ProcessSpawner):
    """Starts processes in their own session, detached from the daemon."""

    def __init__(self) -> None:
        self._children: List[subprocess.Popen] = []

    def reap(self) -> None:
        """Collect exit status of children that already exited."""
        self._children = [child for child in self._children if child.poll() is None]

    def spawn(self, argv: List[str]) -> int:
        self.reap()

        if not argv:
            raise SpawnError(argv, "empty command")

        try:
            process = subprocess.Popen(
                argv,
                env=dict(os.environ),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True  # Detach from parent
            )
        except (OSError, ValueError) as e:
            raise SpawnError(argv, str(e)) from e

        self._children.append(process)
        logger.info(f"Spawned {argv[0]} (PID: {process.pid}, argv: {argv})")
        return process.pid
