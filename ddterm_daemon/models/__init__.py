"""Data models for the ddterm daemon."""

from .geometry import (
    Orientation,
    Rect,
    WindowPosition,
    extent,
    target_rect_for_workarea_size,
)
from .settings import WindowSettings

__all__ = [
    "Orientation",
    "Rect",
    "WindowPosition",
    "WindowSettings",
    "extent",
    "target_rect_for_workarea_size",
]
