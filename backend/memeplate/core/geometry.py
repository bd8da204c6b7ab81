"""
Zone Geometry - pixel <-> normalized coordinate transforms for zone drawing
"""

from dataclasses import dataclass
from typing import List, Optional

from memeplate.config.constants import MIN_ZONE_PIXELS
from memeplate.models.zone import Zone, ZoneKind


@dataclass(frozen=True)
class PixelRect:
    """Axis-aligned rectangle in canvas pixels (top-left origin)"""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CanvasSize:
    """Pixel dimensions of a canvas or image"""

    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Canvas dimensions must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class ZoneGeometry:
    """Zone rectangle as fractions of the image size, all in [0, 1]"""

    x: float
    y: float
    width: float
    height: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def rect_from_points(start_x: float, start_y: float, end_x: float, end_y: float) -> PixelRect:
    """
    Build a rectangle from two drag points

    The drag can go in any direction; the result always has its origin at
    the top-left corner and non-negative extents.
    """
    return PixelRect(
        x=min(start_x, end_x),
        y=min(start_y, end_y),
        width=abs(end_x - start_x),
        height=abs(end_y - start_y),
    )


def display_to_canvas(
    client_x: float,
    client_y: float,
    display_left: float,
    display_top: float,
    display_width: float,
    display_height: float,
    canvas: CanvasSize,
) -> tuple:
    """
    Map a pointer position in display pixels to canvas pixels

    The canvas is backed by the image's natural resolution but shown
    scaled; this undoes that scaling.

    Returns:
        (x, y) in canvas pixels
    """
    if display_width <= 0 or display_height <= 0:
        raise ValueError("Display box must have positive size")

    scale_x = canvas.width / display_width
    scale_y = canvas.height / display_height
    return (client_x - display_left) * scale_x, (client_y - display_top) * scale_y


def clip_to_canvas(rect: PixelRect, canvas: CanvasSize) -> PixelRect:
    """Intersect rect with the canvas; empty intersections have zero size"""
    left = _clamp(rect.x, 0.0, canvas.width)
    top = _clamp(rect.y, 0.0, canvas.height)
    right = _clamp(rect.x + rect.width, 0.0, canvas.width)
    bottom = _clamp(rect.y + rect.height, 0.0, canvas.height)
    return PixelRect(x=left, y=top, width=max(0.0, right - left), height=max(0.0, bottom - top))


def normalize(
    rect: PixelRect,
    canvas: CanvasSize,
    min_pixels: float = MIN_ZONE_PIXELS,
) -> Optional[ZoneGeometry]:
    """
    Convert a drawn pixel rectangle into resolution-independent geometry

    Args:
        rect: Rectangle in canvas pixels
        canvas: Canvas pixel dimensions the rectangle was drawn on
        min_pixels: Smallest accepted width/height after clipping

    Returns:
        ZoneGeometry with every component in [0, 1], or None when the
        rectangle is below the noise threshold (accidental click)
    """
    clipped = clip_to_canvas(rect, canvas)
    if clipped.width < min_pixels or clipped.height < min_pixels:
        return None

    return ZoneGeometry(
        x=_clamp(clipped.x / canvas.width, 0.0, 1.0),
        y=_clamp(clipped.y / canvas.height, 0.0, 1.0),
        width=_clamp(clipped.width / canvas.width, 0.0, 1.0),
        height=_clamp(clipped.height / canvas.height, 0.0, 1.0),
    )


def denormalize(zone, target: CanvasSize) -> PixelRect:
    """
    Project normalized zone geometry onto a canvas of any resolution

    Args:
        zone: ZoneGeometry or Zone (anything with x, y, width, height)
        target: Pixel dimensions to render at

    Returns:
        PixelRect in target canvas pixels
    """
    return PixelRect(
        x=zone.x * target.width,
        y=zone.y * target.height,
        width=zone.width * target.width,
        height=zone.height * target.height,
    )


def zone_from_drag(
    kind: ZoneKind,
    rect: PixelRect,
    canvas: CanvasSize,
    existing: List[Zone],
) -> Optional[Zone]:
    """
    Turn a finished drag into a Zone appended after `existing`

    The new zone's zIndex is the number of zones already present, so paint
    order follows drawing order. Sub-threshold drags produce no zone.
    """
    geometry = normalize(rect, canvas)
    if geometry is None:
        return None

    return Zone(
        kind=kind,
        x=geometry.x,
        y=geometry.y,
        width=geometry.width,
        height=geometry.height,
        z_index=len(existing),
    )
