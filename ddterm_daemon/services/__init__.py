"""Window identity, lifecycle, geometry and companion services."""

from .action_broker import ActionBroker
from .geometry_sync import GeometrySynchronizer
from .settle import SettleWaiter, wait_settled
from .window_identity import WindowIdentity, WindowIdentityResolver, is_dropdown_terminal_window
from .window_trace import TraceEvent, WindowTrace
from .window_tracker import WindowTracker

__all__ = [
    "ActionBroker",
    "GeometrySynchronizer",
    "SettleWaiter",
    "TraceEvent",
    "WindowIdentity",
    "WindowIdentityResolver",
    "WindowTrace",
    "WindowTracker",
    "is_dropdown_terminal_window",
    "wait_settled",
]
