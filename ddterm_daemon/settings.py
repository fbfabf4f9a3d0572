"""Persisted settings store.

File: ~/.config/ddterm/settings.json

A small GSettings-like API (get_double/set_double, changed::<key> signals)
over a JSON file validated by the WindowSettings model. External edits are
picked up by a watchdog observer and announced as changed::<key> signals,
exactly like writes made through the store.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .constants import DEFAULT_SETTINGS_PATH
from .errors import ErrorCode, SettingsError
from .models.settings import WindowSettings
from .signals import SignalEmitter

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON through a temporary file and rename it into place.

    Args:
        path: Destination file
        data: JSON-serializable dictionary
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_window_settings(path: Path) -> WindowSettings:
    """Load settings from file, falling back to defaults.

    Args:
        path: settings.json location

    Returns:
        WindowSettings (defaults if the file is missing or invalid)
    """
    if not path.exists():
        logger.info(f"Settings file not found, using defaults: {path}")
        return WindowSettings()

    try:
        with open(path) as f:
            data = json.load(f)
        return WindowSettings.model_validate(data)

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in settings file {path}: {e}")
        return WindowSettings()
    except ValidationError as e:
        logger.error(f"Invalid settings in {path}: {e}")
        return WindowSettings()


class Settings(SignalEmitter):
    """Settings store with change notifications.

    Signals:
        changed::<key>: emitted with the key after its value changed
    """

    def __init__(self, path: Optional[Path] = None):
        super().__init__()
        self.path = path or DEFAULT_SETTINGS_PATH
        self._values = load_window_settings(self.path)
        self._key_to_field = WindowSettings.key_to_field()

    @property
    def values(self) -> WindowSettings:
        return self._values

    def _field(self, key: str) -> str:
        try:
            return self._key_to_field[key]
        except KeyError:
            raise SettingsError(ErrorCode.SETTINGS_UNKNOWN_KEY, key, "unknown key")

    def _canonical_key(self, field_name: str) -> str:
        return WindowSettings.model_fields[field_name].alias

    def get_value(self, key: str) -> Any:
        value = getattr(self._values, self._field(key))
        # Enums are reported by value, as GSettings strings
        return getattr(value, "value", value)

    def set_value(self, key: str, value: Any) -> None:
        """Validate, persist and announce a new value.

        Raises:
            SettingsError: Unknown key, invalid value or write failure
        """
        field_name = self._field(key)
        old = self.get_value(key)

        try:
            updated = self._values.model_copy()
            setattr(updated, field_name, value)
        except ValidationError as e:
            raise SettingsError(ErrorCode.SETTINGS_INVALID_VALUE, key, str(e))

        if getattr(updated, field_name) == getattr(self._values, field_name):
            return

        self._write(updated)
        self._values = updated

        logger.debug(f"Setting {self._canonical_key(field_name)}: {old} -> {self.get_value(key)}")
        self.emit(f"changed::{self._canonical_key(field_name)}", self._canonical_key(field_name))

    def get_double(self, key: str) -> float:
        return float(self.get_value(key))

    def set_double(self, key: str, value: float) -> None:
        self.set_value(key, float(value))

    def get_boolean(self, key: str) -> bool:
        return bool(self.get_value(key))

    def set_boolean(self, key: str, value: bool) -> None:
        self.set_value(key, bool(value))

    def get_string(self, key: str) -> str:
        return str(self.get_value(key))

    def set_string(self, key: str, value: str) -> None:
        self.set_value(key, str(value))

    def save(self) -> None:
        """Write all values to the settings file.

        Raises:
            SettingsError: If the file cannot be written
        """
        self._write(self._values)

    def _write(self, values: WindowSettings) -> None:
        try:
            atomic_write_json(self.path, values.to_dict())
        except OSError as e:
            raise SettingsError(ErrorCode.SETTINGS_WRITE_FAILED, str(self.path), str(e))

    def reload(self) -> None:
        """Re-read the file and announce every key whose value changed."""
        new_values = load_window_settings(self.path)
        old_values, self._values = self._values, new_values

        for field_name in WindowSettings.model_fields:
            if getattr(old_values, field_name) != getattr(new_values, field_name):
                key = self._canonical_key(field_name)
                logger.info(f"Setting {key} changed on disk: {getattr(new_values, field_name)}")
                self.emit(f"changed::{key}", key)


class DebouncedReloadHandler(FileSystemEventHandler):
    """File system event handler with debounced reload callback.

    Debounces rapid file modifications (e.g., editor save sequences)
    to prevent excessive reload operations. Events arrive on the watchdog
    thread and are handed to the asyncio loop before anything else happens.
    """

    def __init__(self, callback: Callable[[], None], debounce_ms: int = 200, target_filename: Optional[str] = None):
        """Initialize debounced reload handler.

        Args:
            callback: Function to call after debounce period
            debounce_ms: Debounce timeout in milliseconds (default: 200ms)
            target_filename: If set, only trigger on events for this filename
        """
        super().__init__()
        self.callback = callback
        self.debounce_seconds = debounce_ms / 1000
        self.target_filename = target_filename
        self._timer: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the asyncio event loop for scheduling callbacks."""
        self._loop = loop

    def _should_trigger(self, event) -> bool:
        """Check if event should trigger callback based on target filename filter."""
        if event.is_directory:
            return False
        if self.target_filename:
            event_path = getattr(event, "dest_path", None) or event.src_path
            return Path(event_path).name == self.target_filename
        return True

    def _restart_timer(self) -> None:
        # Runs on the asyncio loop thread
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self.callback()

    def _schedule_callback(self) -> None:
        if self._loop is None:
            logger.warning("No event loop set for debounced handler, ignoring file event")
            return
        self._loop.call_soon_threadsafe(self._restart_timer)

    def on_modified(self, event) -> None:
        if self._should_trigger(event):
            self._schedule_callback()

    def on_moved(self, event) -> None:
        """Atomic saves use temp file + rename."""
        if self._should_trigger(event):
            self._schedule_callback()

    def on_created(self, event) -> None:
        if self._should_trigger(event):
            self._schedule_callback()


class SettingsWatcher:
    """File system watcher for settings.json with auto-reload."""

    def __init__(self, settings: Settings, debounce_ms: int = 200):
        """Initialize settings file watcher.

        Args:
            settings: Store to reload on modification
            debounce_ms: Debounce timeout in milliseconds
        """
        self.settings = settings
        self.observer = Observer()
        self.handler = DebouncedReloadHandler(
            settings.reload, debounce_ms, target_filename=settings.path.name
        )
        self._started = False

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start watching settings.json.

        Watches the parent directory since some editors use atomic save
        (create temp file + rename) which doesn't trigger inotify on the file itself.
        """
        if self._started:
            logger.warning("Settings watcher already started")
            return

        watch_dir = self.settings.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.handler.set_event_loop(loop)
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info(f"Started watching {self.settings.path} for modifications")

    def stop(self) -> None:
        """Stop watching for file modifications."""
        if not self._started:
            return

        self.observer.stop()
        self.observer.join(timeout=5.0)
        self._started = False

        logger.info(f"Stopped watching {self.settings.path}")
