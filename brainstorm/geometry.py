"""Geometry helpers for node placement and edge routing."""

import math
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple


class Point(NamedTuple):
    """A point in canvas or screen space."""
    x: float
    y: float


class Rect(NamedTuple):
    """A centre-based rectangle."""
    x: float
    y: float
    w: float
    h: float

    @property
    def left(self) -> float:
        return self.x - self.w / 2

    @property
    def right(self) -> float:
        return self.x + self.w / 2

    @property
    def top(self) -> float:
        return self.y - self.h / 2

    @property
    def bottom(self) -> float:
        return self.y + self.h / 2


class Bounds(NamedTuple):
    """An axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return Point((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Euclidean distance between two points."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a value between low and high."""
    return max(low, min(high, value))


def point_in_rect(point: Tuple[float, float], rect: Rect) -> bool:
    """Check if a point is inside a centre-based rectangle (edges included)."""
    px, py = point
    half_w = rect.w / 2
    half_h = rect.h / 2
    return (rect.x - half_w <= px <= rect.x + half_w and
            rect.y - half_h <= py <= rect.y + half_h)


def rects_intersect(a: Rect, b: Rect) -> bool:
    """Check if two centre-based rectangles overlap (touching does not count)."""
    return (abs(a.x - b.x) < (a.w + b.w) / 2 and
            abs(a.y - b.y) < (a.h + b.h) / 2)


def rects_overlap(ax: float, ay: float, aw: float, ah: float,
                  bx: float, by: float, bw: float, bh: float,
                  padding: float = 10.0) -> bool:
    """Check if two top-left rectangles come closer than padding."""
    return not (
        ax + aw + padding <= bx or
        bx + bw + padding <= ax or
        ay + ah + padding <= by or
        by + bh + padding <= ay
    )


def segment_distance(point: Tuple[float, float],
                     start: Tuple[float, float],
                     end: Tuple[float, float]) -> float:
    """Shortest distance from a point to the segment start-end."""
    px, py = point
    sx, sy = start
    dx = end[0] - sx
    dy = end[1] - sy
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - sx, py - sy)

    t = clamp(((px - sx) * dx + (py - sy) * dy) / length_sq, 0.0, 1.0)
    nearest_x = sx + t * dx
    nearest_y = sy + t * dy
    return math.hypot(px - nearest_x, py - nearest_y)


def rect_edge_point(center: Tuple[float, float],
                    target: Tuple[float, float],
                    w: float, h: float,
                    padding: float = 4.0) -> Point:
    """Point where the ray from center towards target leaves the padded rectangle.

    A target equal to the centre has no direction, so the centre itself is
    returned.
    """
    cx, cy = center
    dx = target[0] - cx
    dy = target[1] - cy
    if dx == 0 and dy == 0:
        return Point(cx, cy)

    half_w = w / 2 + padding
    half_h = h / 2 + padding

    # Scale the direction vector until it touches the nearer pair of sides.
    scale_x = half_w / abs(dx) if dx else math.inf
    scale_y = half_h / abs(dy) if dy else math.inf
    scale = min(scale_x, scale_y)

    x = clamp(dx * scale, -half_w, half_w)
    y = clamp(dy * scale, -half_h, half_h)
    return Point(cx + x, cy + y)


def quadratic_point(start: Tuple[float, float],
                    control: Tuple[float, float],
                    end: Tuple[float, float],
                    t: float) -> Point:
    """Evaluate a quadratic Bezier curve at parameter t."""
    u = 1 - t
    x = u * u * start[0] + 2 * u * t * control[0] + t * t * end[0]
    y = u * u * start[1] + 2 * u * t * control[1] + t * t * end[1]
    return Point(x, y)


def bounding_box(rects: Iterable[Rect], padding: float = 0.0) -> Optional[Bounds]:
    """Bounding box of centre-based rectangles, grown by padding on every side."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    found = False
    for rect in rects:
        found = True
        min_x = min(min_x, rect.left)
        min_y = min(min_y, rect.top)
        max_x = max(max_x, rect.right)
        max_y = max(max_y, rect.bottom)
    if not found:
        return None
    return Bounds(min_x - padding, min_y - padding, max_x + padding, max_y + padding)


def find_free_position(desired: Tuple[float, float],
                       w: float, h: float,
                       occupied: Sequence[Rect],
                       padding: float = 10.0,
                       step: float = 18.0) -> Point:
    """Find a centre near desired where a w x h box overlaps none of occupied."""

    def overlaps(x: float, y: float) -> bool:
        for other in occupied:
            if rects_overlap(x - w / 2, y - h / 2, w, h,
                             other.left, other.top, other.w, other.h,
                             padding=padding):
                return True
        return False

    dx, dy = desired
    if not overlaps(dx, dy):
        return Point(dx, dy)

    for radius_steps in range(1, 60):
        radius = radius_steps * step
        for angle_steps in range(24):
            angle = (2 * math.pi) * (angle_steps / 24.0)
            x = dx + radius * math.cos(angle)
            y = dy + radius * math.sin(angle)
            if not overlaps(x, y):
                return Point(x, y)

    return Point(dx, dy)


def sample_quadratic(start: Tuple[float, float],
                     control: Tuple[float, float],
                     end: Tuple[float, float],
                     segments: int = 12) -> List[Point]:
    """Polyline approximation of a quadratic Bezier curve."""
    return [quadratic_point(start, control, end, i / segments) for i in range(segments + 1)]
