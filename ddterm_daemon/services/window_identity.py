"""
Dropdown window identification.

A compositor window is the ddterm window when:
1. its application id equals com.github.amezin.ddterm, and
2. its object path is set and lies under /com/github/amezin/ddterm/window/

Both attributes are filled in by the compositor some time after the window
is created, in no particular order, and may be cleared and set again before
they settle. The predicate is therefore re-evaluated on every change
notification of either attribute.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..constants import APP_ID, WINDOW_PATH_PREFIX

logger = logging.getLogger(__name__)

IDENTITY_NOTIFY_SIGNALS = (
    "notify::gtk-application-id",
    "notify::gtk-window-object-path",
)


@dataclass
class WindowIdentity:
    """The two identity attributes of a window."""

    application_id: Optional[str] = None
    object_path: Optional[str] = None

    @classmethod
    def of(cls, window) -> "WindowIdentity":
        return cls(
            application_id=getattr(window, "gtk_application_id", None),
            object_path=getattr(window, "gtk_window_object_path", None),
        )

    def matches(self, application_id: str = APP_ID, path_prefix: str = WINDOW_PATH_PREFIX) -> bool:
        return (
            self.application_id == application_id
            and bool(self.object_path)
            and self.object_path.startswith(path_prefix)
        )


class WindowIdentityResolver:
    """Decides whether a window is the dropdown terminal window."""

    def __init__(self, application_id: str = APP_ID, path_prefix: str = WINDOW_PATH_PREFIX):
        self.application_id = application_id
        self.path_prefix = path_prefix

    def resolves(self, window) -> bool:
        """Pure predicate over the window's current identity attributes."""
        return WindowIdentity.of(window).matches(self.application_id, self.path_prefix)


def is_dropdown_terminal_window(window) -> bool:
    """resolves() with the default application id and path prefix."""
    return WindowIdentity.of(window).matches()
