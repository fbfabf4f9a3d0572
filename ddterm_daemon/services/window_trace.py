"""Window Trace - geometry event tracing of the current dropdown window.

Follows current-window-changed and records every geometry-related signal of
the tracked window (position, size, maximize state) at DEBUG level and in a
bounded in-memory ring, for diagnosing placement and settle problems.
"""

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from ..signals import ConnectionSet

logger = logging.getLogger(__name__)


class TraceEventType(str, Enum):
    """Types of events that can be traced."""
    WINDOW_CHANGED = "current-window-changed"
    POSITION_CHANGED = "position-changed"
    SIZE_CHANGED = "size-changed"
    MAXIMIZED_HORIZONTALLY = "notify::maximized-horizontally"
    MAXIMIZED_VERTICALLY = "notify::maximized-vertically"
    MOVE_RESIZE_REQUESTED = "move-resize-requested"


@dataclass
class TraceEvent:
    """One traced signal with the window geometry at that moment."""
    event_type: TraceEventType
    timestamp: float = field(default_factory=time.time)
    window: Optional[str] = None
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    maximized_horizontally: bool = False
    maximized_vertically: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data


WINDOW_SIGNALS = (
    TraceEventType.POSITION_CHANGED,
    TraceEventType.SIZE_CHANGED,
    TraceEventType.MAXIMIZED_HORIZONTALLY,
    TraceEventType.MAXIMIZED_VERTICALLY,
)


class WindowTrace:
    """Traces the controller's current window.

    Args:
        controller: Emits current-window-changed and move-resize-requested
        max_events: Size of the in-memory ring
    """

    def __init__(self, controller, max_events: int = 500):
        self.controller = controller
        self.events: Deque[TraceEvent] = deque(maxlen=max_events)
        self._controller_connections = ConnectionSet()
        self._window_connections = ConnectionSet()

    def start(self) -> None:
        self._controller_connections.connect(
            self.controller, "current-window-changed", self._on_window_changed
        )
        self._controller_connections.connect(
            self.controller, "move-resize-requested", self._on_move_resize_requested
        )
        self._on_window_changed(self.controller, self.controller.current_window)

    def stop(self) -> None:
        self._controller_connections.disconnect()
        self._window_connections.disconnect()

    def _record(self, event_type: TraceEventType, window, rect=None) -> TraceEvent:
        event = TraceEvent(event_type=event_type, window=repr(window) if window is not None else None)

        if rect is None and window is not None:
            rect = window.get_frame_rect()
        if rect is not None:
            event.x, event.y, event.width, event.height = rect.x, rect.y, rect.width, rect.height
        if window is not None:
            event.maximized_horizontally = window.maximized_horizontally
            event.maximized_vertically = window.maximized_vertically

        self.events.append(event)
        logger.debug(
            f"{event_type.value}: {{ .x = {event.x}, .y = {event.y}, "
            f".width = {event.width}, .height = {event.height} }}"
        )
        return event

    def _on_window_changed(self, controller, window) -> None:
        logger.debug(f"current window changed: {window!r}")
        self._window_connections.disconnect()

        self._record(TraceEventType.WINDOW_CHANGED, window)
        if window is None:
            return

        for event_type in WINDOW_SIGNALS:
            self._window_connections.connect(
                window,
                event_type.value,
                lambda win, *args, event_type=event_type: self._record(event_type, win),
            )

    def _on_move_resize_requested(self, controller, rect) -> None:
        self._record(TraceEventType.MOVE_RESIZE_REQUESTED, controller.current_window, rect)

    def export(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.events]
