"""Daemon configuration loader.

File: ~/.config/ddterm/daemon.json

Precedence (lowest to highest): model defaults, daemon.json, DDTERM_*
environment variables, command line flags (applied by the daemon).
"""

import json
import logging
import os
import shlex
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import DEFAULT_CONFIG_PATH, DEFAULT_IDLE_TIMEOUT_MS, DEFAULT_POLL_INTERVAL_MS, DEFAULT_SETTINGS_PATH
from .errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> DaemonConfig field
ENV_OVERRIDES: Dict[str, str] = {
    "DDTERM_SETTINGS_PATH": "settings_path",
    "DDTERM_COMPANION_COMMAND": "companion_command",
    "DDTERM_IDLE_TIMEOUT_MS": "idle_timeout_ms",
    "DDTERM_POLL_INTERVAL_MS": "poll_interval_ms",
    "DDTERM_TRACE_WINDOWS": "trace_windows",
}


class DaemonConfig(BaseModel):
    """Runtime configuration of the daemon."""

    settings_path: Path = Field(DEFAULT_SETTINGS_PATH, description="Persisted window settings file")
    companion_command: List[str] = Field(
        default_factory=lambda: ["com.github.amezin.ddterm"],
        description="Companion application command line, --undecorated is appended",
    )
    idle_timeout_ms: int = Field(DEFAULT_IDLE_TIMEOUT_MS, ge=1, le=10000)
    poll_interval_ms: int = Field(DEFAULT_POLL_INTERVAL_MS, ge=10, le=5000)
    trace_windows: bool = False

    model_config = {"extra": "forbid", "validate_assignment": True}

    @field_validator("settings_path", mode="before")
    @classmethod
    def expand_path(cls, v):
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator("companion_command", mode="before")
    @classmethod
    def split_command(cls, v):
        """Accept a shell-style string as well as an argv list."""
        if isinstance(v, str):
            v = shlex.split(v)
        if not v:
            raise ValueError("companion_command must not be empty")
        return v


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides = {}
    for variable, field_name in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            logger.debug(f"{variable} overrides {field_name}")
            overrides[field_name] = value
    return overrides


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> DaemonConfig:
    """Load daemon configuration.

    Args:
        path: daemon.json location (default ~/.config/ddterm/daemon.json)
        environ: Environment to read DDTERM_* overrides from (default os.environ)

    Returns:
        Validated DaemonConfig

    Raises:
        ConfigError: If the file or an override is invalid
    """
    path = path or DEFAULT_CONFIG_PATH
    environ = os.environ if environ is None else environ

    data = {}
    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(str(path), f"invalid JSON: {e}") from e
        except OSError as e:
            raise ConfigError(str(path), str(e)) from e

        if not isinstance(data, dict):
            raise ConfigError(str(path), "top-level value must be an object")
    else:
        logger.debug(f"Config file not found, using defaults: {path}")

    data.update(_env_overrides(environ))

    try:
        config = DaemonConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(path), str(e)) from e

    logger.info(
        f"Loaded config: settings={config.settings_path}, "
        f"idle_timeout={config.idle_timeout_ms}ms, poll_interval={config.poll_interval_ms}ms"
    )
    return config
