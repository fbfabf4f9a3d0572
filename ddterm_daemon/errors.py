"""
Error types for the ddterm daemon.

Every failure the controller can report carries a structured code so log
lines and diagnostics stay greppable.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """
    Error codes for the ddterm daemon.

    Ranges:
    - 1100-1199: Configuration errors
    - 1200-1299: Settings store errors
    - 1300-1399: Companion process errors
    - 1400-1499: Compositor (Sway IPC) errors
    """

    # Configuration errors (1100-1199)
    CONFIG_LOAD_FAILED = 1100
    CONFIG_INVALID = 1101

    # Settings store errors (1200-1299)
    SETTINGS_LOAD_FAILED = 1200
    SETTINGS_WRITE_FAILED = 1201
    SETTINGS_UNKNOWN_KEY = 1202
    SETTINGS_INVALID_VALUE = 1203

    # Companion process errors (1300-1399)
    SPAWN_FAILED = 1300
    REMOTE_ACTION_FAILED = 1301

    # Compositor errors (1400-1499)
    SWAY_NOT_RUNNING = 1400
    SWAY_IPC_FAILED = 1401


class DaemonError(Exception):
    """Base exception for ddterm daemon errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize daemon error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for structured logging.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class ConfigError(DaemonError):
    """Daemon configuration error."""

    def __init__(self, file_path: str, reason: str):
        """
        Initialize configuration error.

        Args:
            file_path: Path to configuration file
            reason: Reason for load failure
        """
        super().__init__(
            code=ErrorCode.CONFIG_LOAD_FAILED,
            message=f"Failed to load configuration from {file_path}: {reason}",
            suggestion="Check file syntax and permissions",
            context={"file_path": file_path, "reason": reason}
        )


class SettingsError(DaemonError):
    """Persisted settings error (unknown key or invalid value)."""

    def __init__(self, code: ErrorCode, key: str, reason: str):
        super().__init__(
            code=code,
            message=f"Setting '{key}': {reason}",
            context={"key": key, "reason": reason}
        )


class SpawnError(DaemonError):
    """Companion process could not be started."""

    def __init__(self, argv: List[str], reason: str):
        """
        Initialize spawn error.

        Args:
            argv: Command line that failed to start
            reason: Reason for failure
        """
        super().__init__(
            code=ErrorCode.SPAWN_FAILED,
            message=f"Failed to spawn {argv[0] if argv else '<empty command>'}: {reason}",
            suggestion="Check companion_command in daemon.json",
            context={"argv": list(argv), "reason": reason}
        )


class RemoteActionError(DaemonError):
    """Remote action invocation on the companion failed."""

    def __init__(self, action: str, reason: str):
        super().__init__(
            code=ErrorCode.REMOTE_ACTION_FAILED,
            message=f"Remote action '{action}' failed: {reason}",
            context={"action": action, "reason": reason}
        )


class CompositorError(DaemonError):
    """Sway IPC communication error."""

    def __init__(self, operation: str, reason: str, code: ErrorCode = ErrorCode.SWAY_IPC_FAILED):
        """
        Initialize Sway IPC error.

        Args:
            operation: IPC operation that failed
            reason: Reason for failure
            code: SWAY_IPC_FAILED or SWAY_NOT_RUNNING
        """
        super().__init__(
            code=code,
            message=f"Sway IPC {operation} failed: {reason}",
            suggestion="Ensure Sway is running and IPC socket is accessible",
            context={"operation": operation, "reason": reason}
        )
