"""
geometry.py

Pure coordinate conversions between the three spaces a hotspot lives in:

- screen space: pixels inside the viewer widget, after zoom and pan
- canvas space: pixels of the canonical base canvas (e.g. 3840x2160)
- percent space: 0-100 of the canonical canvas, what documents store

Because percentages are taken against the fixed canonical canvas and not the
widget size, a hotspot lands on the same part of the image on any display.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from models import MIN_HOTSPOT_PERCENT

# Default canonical canvas (4K)
DEFAULT_CANVAS_WIDTH = 3840.0
DEFAULT_CANVAS_HEIGHT = 2160.0

# Drags this small (in screen pixels) are treated as accidental clicks
MIN_DRAG_PIXELS = 1.0

# Zoom limits of the viewer
MIN_SCALE = 0.3
MAX_SCALE = 9.0


@dataclass(frozen=True)
class ScreenRect:
    """Rectangle in viewer pixels with non-negative width/height."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PercentRect:
    """Rectangle in percent of the canonical canvas."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CanvasSize:
    width: float = DEFAULT_CANVAS_WIDTH
    height: float = DEFAULT_CANVAS_HEIGHT


@dataclass(frozen=True)
class ViewTransform:
    """Zoom factor and pan offset of one map's view.

    ``pan_x``/``pan_y`` are where the canvas origin sits in screen pixels.
    """
    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"View scale must be positive, got {self.scale!r}")


IDENTITY = ViewTransform()


# ----------------------------
# Rectangle helpers
# ----------------------------

def normalize_drag(start: Tuple[float, float], end: Tuple[float, float]) -> ScreenRect:
    """Build a non-negative rectangle from two drag corner points."""
    sx, sy = start
    ex, ey = end
    return ScreenRect(
        x=min(sx, ex),
        y=min(sy, ey),
        width=abs(ex - sx),
        height=abs(ey - sy),
    )


def is_intentional_drag(rect: ScreenRect, min_pixels: float = MIN_DRAG_PIXELS) -> bool:
    return rect.width > min_pixels and rect.height > min_pixels


def clamp_percent_rect(rect: PercentRect, min_size: float = MIN_HOTSPOT_PERCENT) -> PercentRect:
    """Clamp a percent rect inside the canvas.

    Position is clamped to [0, 100]; size to at least ``min_size`` and at most
    what is left of the canvas after the position.
    """
    x = max(0.0, min(rect.x, 100.0))
    y = max(0.0, min(rect.y, 100.0))
    w = max(min_size, min(rect.width, 100.0 - x))
    h = max(min_size, min(rect.height, 100.0 - y))
    # min_size wins over the remaining room; pull the origin back instead
    if x + w > 100.0:
        x = 100.0 - w
    if y + h > 100.0:
        y = 100.0 - h
    return PercentRect(x, y, w, h)


# ----------------------------
# Screen <-> canvas <-> percent
# ----------------------------

def screen_to_canvas(rect: ScreenRect, transform: ViewTransform) -> Tuple[float, float, float, float]:
    """Undo zoom and pan: screen pixels -> canonical canvas pixels."""
    s = transform.scale
    return (
        (rect.x - transform.pan_x) / s,
        (rect.y - transform.pan_y) / s,
        rect.width / s,
        rect.height / s,
    )


def canvas_to_screen(x: float, y: float, w: float, h: float, transform: ViewTransform) -> ScreenRect:
    s = transform.scale
    return ScreenRect(
        x=x * s + transform.pan_x,
        y=y * s + transform.pan_y,
        width=w * s,
        height=h * s,
    )


def screen_to_percentage(
    rect: ScreenRect,
    transform: ViewTransform,
    canvas: CanvasSize = CanvasSize(),
    clamp: bool = True,
    min_percent: float = MIN_HOTSPOT_PERCENT,
) -> PercentRect:
    """Convert a drawn screen rectangle into a resolution independent hotspot rect.

    Args:
        rect: Normalized drag rectangle in viewer pixels.
        transform: Zoom/pan of the view the rectangle was drawn in.
        canvas: Canonical base canvas dimensions.
        clamp: Apply the canvas clamping rules (on for drawing).
        min_percent: Smallest width/height kept by clamping.

    Returns:
        PercentRect in percent of the canonical canvas.
    """
    cx, cy, cw, ch = screen_to_canvas(rect, transform)
    pct = PercentRect(
        x=(cx / canvas.width) * 100.0,
        y=(cy / canvas.height) * 100.0,
        width=(cw / canvas.width) * 100.0,
        height=(ch / canvas.height) * 100.0,
    )
    return clamp_percent_rect(pct, min_percent) if clamp else pct


def percentage_to_screen(
    rect: PercentRect,
    transform: ViewTransform,
    canvas: CanvasSize = CanvasSize(),
) -> ScreenRect:
    """Inverse of ``screen_to_percentage`` (without clamping)."""
    return canvas_to_screen(
        rect.x / 100.0 * canvas.width,
        rect.y / 100.0 * canvas.height,
        rect.width / 100.0 * canvas.width,
        rect.height / 100.0 * canvas.height,
        transform,
    )


def drawn_rect_to_hotspot_rect(
    rect: ScreenRect,
    transform: ViewTransform,
    canvas: CanvasSize = CanvasSize(),
    min_pixels: float = MIN_DRAG_PIXELS,
    min_percent: float = MIN_HOTSPOT_PERCENT,
) -> Optional[PercentRect]:
    """Full drawing pipeline: discard tiny drags, convert, clamp."""
    if not is_intentional_drag(rect, min_pixels):
        return None
    return screen_to_percentage(rect, transform, canvas, min_percent=min_percent)


# ----------------------------
# Fit and zoom
# ----------------------------

def fit_to_container(canvas: CanvasSize, container_width: float, container_height: float) -> ViewTransform:
    """Contain-fit the canvas in the container, centered."""
    if container_width <= 0 or container_height <= 0:
        raise ValueError("Container dimensions must be positive")
    scale = min(container_width / canvas.width, container_height / canvas.height)
    return ViewTransform(
        scale=scale,
        pan_x=(container_width - canvas.width * scale) / 2.0,
        pan_y=(container_height - canvas.height * scale) / 2.0,
    )


def zoom_about(
    transform: ViewTransform,
    factor: float,
    anchor: Tuple[float, float],
    min_scale: float = MIN_SCALE,
    max_scale: float = MAX_SCALE,
) -> ViewTransform:
    """Zoom by ``factor`` keeping the screen point ``anchor`` fixed."""
    new_scale = max(min_scale, min(transform.scale * factor, max_scale))
    ratio = new_scale / transform.scale
    ax, ay = anchor
    return ViewTransform(
        scale=new_scale,
        pan_x=ax - (ax - transform.pan_x) * ratio,
        pan_y=ay - (ay - transform.pan_y) * ratio,
    )


# ----------------------------
# Draw gesture
# ----------------------------

class GestureState:
    """States of a single drag-to-draw gesture."""
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class DrawGesture:
    """Tracks one press-drag-release on the drawing surface.

    ``release`` returns the normalized rectangle, or None when the drag was
    too small to be intentional.  Leaving the surface cancels the gesture.
    """

    def __init__(self, min_pixels: float = MIN_DRAG_PIXELS):
        self.min_pixels = min_pixels
        self.state = GestureState.IDLE
        self._start: Optional[Tuple[float, float]] = None
        self._current: Optional[ScreenRect] = None

    @property
    def current_rect(self) -> Optional[ScreenRect]:
        """Preview rectangle while dragging."""
        return self._current if self.state == GestureState.DRAGGING else None

    def press(self, x: float, y: float) -> None:
        self._start = (x, y)
        self._current = ScreenRect(x, y, 0.0, 0.0)
        self.state = GestureState.DRAGGING

    def move(self, x: float, y: float) -> Optional[ScreenRect]:
        if self.state != GestureState.DRAGGING or self._start is None:
            return None
        self._current = normalize_drag(self._start, (x, y))
        return self._current

    def release(self, x: float, y: float) -> Optional[ScreenRect]:
        if self.state != GestureState.DRAGGING or self._start is None:
            self.reset()
            return None
        rect = normalize_drag(self._start, (x, y))
        self._start = None
        self._current = None
        if not is_intentional_drag(rect, self.min_pixels):
            self.state = GestureState.CANCELLED
            return None
        self.state = GestureState.COMMITTED
        return rect

    def leave(self) -> None:
        """Pointer left the surface: abandon the gesture."""
        if self.state == GestureState.DRAGGING:
            self.state = GestureState.CANCELLED
        self._start = None
        self._current = None

    def reset(self) -> None:
        self.state = GestureState.IDLE
        self._start = None
        self._current = None
