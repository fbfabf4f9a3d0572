"""Shared constants for the ddterm daemon."""

from pathlib import Path

# Companion application identity
APP_ID = "com.github.amezin.ddterm"
APP_DBUS_PATH = "/com/github/amezin/ddterm"
WINDOW_PATH_PREFIX = f"{APP_DBUS_PATH}/window/"

# Companion startup flag used by the spawn fallback
UNDECORATED_FLAG = "--undecorated"

# Remote actions exposed on APP_DBUS_PATH (org.gtk.Actions)
ACTION_TOGGLE = "toggle"
ACTION_SHOW = "show"
ACTION_HIDE = "hide"
ACTION_QUIT = "quit"

# Settings keys
SETTING_WINDOW_SIZE = "window-size"
SETTING_WINDOW_SIZE_LEGACY = "window-height"
SETTING_WINDOW_MAXIMIZE = "window-maximize"
SETTING_WINDOW_POSITION = "window-position"
SETTING_TOGGLE_HOTKEY = "ddterm-toggle-hotkey"

TOGGLE_KEYBINDING_NAME = "ddterm-toggle-hotkey"

# Settle detection
DEFAULT_IDLE_TIMEOUT_MS = 200

# Sway does not report resizes, geometry is polled while a window is tracked
DEFAULT_POLL_INTERVAL_MS = 100

CONFIG_DIR = Path.home() / ".config" / "ddterm"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "daemon.json"
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "settings.json"
