"""Unit tests for daemon configuration loading."""

import json
from pathlib import Path

import pytest

from ddterm_daemon.config import DaemonConfig, load_config
from ddterm_daemon.constants import DEFAULT_IDLE_TIMEOUT_MS, DEFAULT_SETTINGS_PATH
from ddterm_daemon.errors import ConfigError


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "daemon.json"


def test_defaults_without_file(config_path):
    config = load_config(config_path, environ={})

    assert config.settings_path == DEFAULT_SETTINGS_PATH
    assert config.idle_timeout_ms == DEFAULT_IDLE_TIMEOUT_MS
    assert config.companion_command == ["com.github.amezin.ddterm"]
    assert config.trace_windows is False


def test_file_values(config_path, tmp_path):
    config_path.write_text(json.dumps({
        "settings_path": str(tmp_path / "s.json"),
        "companion_command": ["gjs", "/usr/share/ddterm/bin/com.github.amezin.ddterm"],
        "idle_timeout_ms": 300,
    }))

    config = load_config(config_path, environ={})

    assert config.settings_path == tmp_path / "s.json"
    assert config.companion_command[0] == "gjs"
    assert config.idle_timeout_ms == 300


def test_environment_overrides_file(config_path):
    config_path.write_text(json.dumps({"idle_timeout_ms": 300}))

    config = load_config(config_path, environ={
        "DDTERM_IDLE_TIMEOUT_MS": "500",
        "DDTERM_COMPANION_COMMAND": "flatpak run com.github.amezin.ddterm",
        "DDTERM_TRACE_WINDOWS": "true",
    })

    assert config.idle_timeout_ms == 500
    assert config.companion_command == ["flatpak", "run", "com.github.amezin.ddterm"]
    assert config.trace_windows is True


def test_home_is_expanded():
    config = DaemonConfig(settings_path="~/ddterm.json")
    assert config.settings_path == Path.home() / "ddterm.json"


@pytest.mark.parametrize(
    "content",
    [
        "{broken",
        json.dumps([1, 2]),
        json.dumps({"idle_timeout_ms": 0}),
        json.dumps({"companion_command": []}),
        json.dumps({"unknown_option": True}),
    ],
)
def test_invalid_config(config_path, content):
    config_path.write_text(content)

    with pytest.raises(ConfigError) as exc_info:
        load_config(config_path, environ={})

    assert str(config_path) in exc_info.value.message
