"""Main daemon entry point with systemd integration.

Wires the Sway display, the session bus, the settings store and the dropdown
controller together and runs them on one asyncio loop until SIGTERM/SIGINT
or until Sway exits or restarts.
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

try:
    from systemd import journal, daemon as sd_daemon
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False

from . import __version__
from .backends.dbus import GLibLoopThread, PydbusSessionBus
from .backends.process import SubprocessSpawner
from .backends.sway import SwayDisplay
from .config import DaemonConfig, load_config
from .constants import DEFAULT_CONFIG_PATH
from .controller import DropdownController, SessionMode
from .errors import DaemonError
from .services.window_trace import WindowTrace
from .settings import Settings, SettingsWatcher

logger = logging.getLogger(__name__)

# Sway shutdown event changes
SHUTDOWN_RESTART = "restart"
SHUTDOWN_EXIT = "exit"


class DaemonHealthMonitor:
    """systemd readiness notifications and watchdog pings."""

    def __init__(self) -> None:
        self.watchdog_interval: Optional[float] = None
        if SYSTEMD_AVAILABLE:
            watchdog_usec = os.environ.get("WATCHDOG_USEC")
            if watchdog_usec:
                # Ping at a third of the timeout
                self.watchdog_interval = int(watchdog_usec) / 3_000_000
                logger.info(f"Systemd watchdog enabled: {self.watchdog_interval:.1f}s interval")

    def _notify(self, state: str) -> None:
        if SYSTEMD_AVAILABLE:
            sd_daemon.notify(state)
            logger.debug(f"Sent {state} to systemd")

    def notify_ready(self) -> None:
        self._notify("READY=1")

    def notify_stopping(self) -> None:
        self._notify("STOPPING=1")

    async def watchdog_loop(self) -> None:
        """Background task that sends watchdog pings."""
        if not self.watchdog_interval:
            return

        while True:
            await asyncio.sleep(self.watchdog_interval)
            self._notify("WATCHDOG=1")


class DdtermDaemon:
    """Main daemon class."""

    def __init__(self, config: DaemonConfig) -> None:
        self.config = config
        self.session_mode = SessionMode(allow_extensions=True)
        self.shutdown_event = asyncio.Event()

        self.settings: Optional[Settings] = None
        self.settings_watcher: Optional[SettingsWatcher] = None
        self.display: Optional[SwayDisplay] = None
        self.glib_loop: Optional[GLibLoopThread] = None
        self.bus: Optional[PydbusSessionBus] = None
        self.controller: Optional[DropdownController] = None
        self.trace: Optional[WindowTrace] = None
        self.health_monitor = DaemonHealthMonitor()
        self._watchdog_task: Optional[asyncio.Task] = None

    async def initialize(self) -> None:
        """Initialize daemon components.

        Raises:
            DaemonError: If Sway or the settings store are unusable
        """
        loop = asyncio.get_running_loop()
        logger.info("Initializing ddterm daemon...")

        self.settings = Settings(self.config.settings_path)
        self.settings_watcher = SettingsWatcher(self.settings)
        self.settings_watcher.start(loop)

        self.display = SwayDisplay(poll_interval_ms=self.config.poll_interval_ms)
        await self.display.connect_ipc()
        self.display.connect("shutdown", self._on_compositor_shutdown)

        self.glib_loop = GLibLoopThread()
        self.glib_loop.start()
        self.bus = PydbusSessionBus(loop)

        self.controller = DropdownController(
            self.display,
            self.settings,
            self.bus,
            SubprocessSpawner(),
            self.config.companion_command,
            loop=loop,
            idle_timeout_ms=self.config.idle_timeout_ms,
        )

        if self.config.trace_windows:
            self.trace = WindowTrace(self.controller)
            self.trace.start()

        # Subscribed before the startup scan so pre-existing windows are seen
        self.controller.enable()
        await self.display.start()

        self.health_monitor.notify_ready()
        self._watchdog_task = asyncio.ensure_future(self.health_monitor.watchdog_loop())
        logger.info("Daemon initialized")

    def _on_compositor_shutdown(self, display, change: str) -> None:
        if change == SHUTDOWN_RESTART:
            # Transient: the companion's terminals outlive the restart
            self.session_mode = SessionMode(allow_extensions=False)
        elif change == SHUTDOWN_EXIT:
            self.session_mode = SessionMode(allow_extensions=True)
        else:
            logger.warning(f"Unknown Sway shutdown change '{change}', treating it as exit")
        self.shutdown_event.set()

    async def run(self) -> None:
        await self.shutdown_event.wait()

    async def shutdown(self) -> None:
        """Tear down in reverse order of initialization."""
        logger.info("Shutting down daemon...")
        self.health_monitor.notify_stopping()

        if self._watchdog_task is not None:
            self._watchdog_task.cancel()

        if self.controller is not None:
            self.controller.disable(self.session_mode)
        if self.trace is not None:
            self.trace.stop()
            events = self.trace.export()
            logger.debug(f"Window trace ({len(events)} events): {json.dumps(events)}")
        if self.bus is not None:
            self.bus.close()

        if self.display is not None:
            try:
                await asyncio.wait_for(self.display.stop(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Sway connection shutdown timed out after 5s (continuing)")

        if self.glib_loop is not None:
            self.glib_loop.stop()
        if self.settings_watcher is not None:
            self.settings_watcher.stop()

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """SIGTERM/SIGINT: genuine shutdown, the companion is asked to quit."""
        loop = asyncio.get_running_loop()

        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self.shutdown_event.set)

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)


def setup_logging() -> None:
    """Setup logging to systemd journal or stderr."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if SYSTEMD_AVAILABLE and os.environ.get("JOURNAL_STREAM"):
        handler = journal.JournalHandler(SYSLOG_IDENTIFIER="ddterm-daemon")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)

    logger.debug(f"Logging configured: level={log_level}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddterm-daemon",
        description="Dropdown terminal window controller for Sway",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Daemon configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--settings", type=Path, help="Window settings file (overrides config)")
    parser.add_argument(
        "--idle-timeout-ms",
        type=int,
        help="Quiet period before a resize is persisted (overrides config)",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log every geometry event of the dropdown window (needs LOG_LEVEL=DEBUG)",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> DaemonConfig:
    """Config file + environment, then command line flags on top.

    Raises:
        ConfigError: If the configuration is invalid
    """
    config = load_config(args.config)
    if args.settings is not None:
        config.settings_path = args.settings
    if args.idle_timeout_ms is not None:
        config.idle_timeout_ms = args.idle_timeout_ms
    if args.trace:
        config.trace_windows = True
    return config


async def main_async(config: DaemonConfig) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    daemon = DdtermDaemon(config)

    try:
        daemon.setup_signal_handlers()
        await daemon.initialize()
        await daemon.run()
        return 0

    except DaemonError as e:
        logger.error(f"{e.message}" + (f". {e.suggestion}" if e.suggestion else ""))
        return 1

    finally:
        await daemon.shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()

    logger.info(f"ddterm daemon {__version__} starting (PID: {os.getpid()})")

    try:
        config = resolve_config(args)
    except DaemonError as e:
        logger.error(e.message)
        sys.exit(2)

    try:
        sys.exit(asyncio.run(main_async(config)))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
