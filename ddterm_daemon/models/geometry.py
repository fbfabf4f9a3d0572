"""Geometry models: rectangles, edge positions and target placement."""

from enum import Enum

from pydantic import BaseModel, Field


class Rect(BaseModel):
    """Axis-aligned rectangle in compositor (logical) coordinates."""

    x: int = 0
    y: int = 0
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)

    model_config = {"frozen": True}

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height


class Orientation(str, Enum):
    """Axis along which the window size ratio is measured."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


class WindowPosition(str, Enum):
    """Work-area edge the dropdown window is attached to."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def from_str(cls, value: str) -> "WindowPosition":
        """Parse position from string (case-insensitive).

        Raises:
            ValueError: If value is not a valid position
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Invalid window position '{value}': must be one of {valid}")

    @property
    def orientation(self) -> Orientation:
        if self in (WindowPosition.TOP, WindowPosition.BOTTOM):
            return Orientation.VERTICAL
        return Orientation.HORIZONTAL


def extent(rect: Rect, orientation: Orientation) -> int:
    """Size of rect along the given axis."""
    return rect.height if orientation == Orientation.VERTICAL else rect.width


def target_rect_for_workarea_size(
    workarea: Rect,
    monitor_scale: int,
    size: float,
    position: WindowPosition = WindowPosition.TOP,
) -> Rect:
    """Compute the dropdown window rectangle for a work area.

    The perpendicular extent covers the whole work area, the parallel extent
    is ``size`` of the work area, truncated and rounded down to a multiple of
    ``monitor_scale``. Bottom and right windows are shifted so their far edge
    touches the work-area edge.

    Args:
        workarea: Work area of the monitor
        monitor_scale: Coordinate granularity of the monitor (>= 1)
        size: Size ratio in (0, 1]
        position: Edge to attach to

    Returns:
        Target frame rectangle
    """
    scale = max(1, int(monitor_scale))
    x, y, width, height = workarea.x, workarea.y, workarea.width, workarea.height

    if position.orientation == Orientation.VERTICAL:
        height = int(workarea.height * size)
        height -= height % scale
        if position == WindowPosition.BOTTOM:
            y += workarea.height - height
    else:
        width = int(workarea.width * size)
        width -= width % scale
        if position == WindowPosition.RIGHT:
            x += workarea.width - width

    return Rect(x=x, y=y, width=width, height=height)
