"""ddterm Sway Daemon

Event-driven dropdown terminal controller for Sway/i3.

This package provides a long-running daemon that:
- Discovers the ddterm companion window as it is created
- Pins it to a screen edge with a persisted size ratio
- Keeps the ratio in sync with live user resizes
- Brokers toggle/show/hide requests to the companion over D-Bus

License: GPL-3.0-or-later
Version: 1.0.0
"""

__version__ = "1.0.0"
