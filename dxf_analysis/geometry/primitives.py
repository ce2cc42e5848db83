"""
2D value types shared by the metrics extractor, the scorer and the renderer.

Provides:
- Point2D       - point with squared-distance helper
- BoundingBox2D - axis-aligned box with overlap test and diagonal length
- Segment2D     - extracted line segment with layer and curvature hints

All types are frozen dataclasses: once extracted, geometry never changes.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class Point2D:
    """Point in drawing units."""
    x: float
    y: float

    def distance_squared(self, other: 'Point2D') -> float:
        """Squared euclidean distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy


@dataclass(frozen=True)
class BoundingBox2D:
    """Axis-aligned bounding box.

    Attributes:
        min_x, min_y: Lower-left corner
        max_x, max_y: Upper-right corner
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        """X extent."""
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        """Y extent."""
        return self.max_y - self.min_y

    @property
    def area(self) -> float:
        """Box area (width * height)."""
        return self.width * self.height

    def intersects(self, other: 'BoundingBox2D') -> bool:
        """Check whether two boxes overlap. Touching edges count as overlap."""
        return not (
            other.min_x > self.max_x or
            other.max_x < self.min_x or
            other.min_y > self.max_y or
            other.max_y < self.min_y
        )

    def diagonal_length(self) -> float:
        """Length of the box diagonal."""
        return math.hypot(self.width, self.height)

    @classmethod
    def from_points(cls, points: Iterable[Point2D]) -> 'BoundingBox2D':
        """Build the tightest box around a non-empty point collection.

        Raises:
            ValueError: if ``points`` is empty
        """
        iterator = iter(points)
        try:
            first = next(iterator)
        except StopIteration:
            raise ValueError("Cannot build a bounding box from an empty point set") from None

        min_x = max_x = first.x
        min_y = max_y = first.y
        for point in iterator:
            min_x = min(min_x, point.x)
            max_x = max(max_x, point.x)
            min_y = min(min_y, point.y)
            max_y = max(max_y, point.y)
        return cls(min_x, min_y, max_x, max_y)


@dataclass(frozen=True)
class Segment2D:
    """Line segment extracted from a DXF entity for broad-phase operations.

    Attributes:
        start, end: Segment endpoints
        layer: Owning layer name
        is_curve: True when the segment approximates an arc or curve
        radius_hint: Radius of the source curve, when known
    """
    start: Point2D
    end: Point2D
    layer: str
    is_curve: bool = False
    radius_hint: Optional[float] = None

    @property
    def bounds(self) -> BoundingBox2D:
        """Axis-aligned box of the two endpoints."""
        return BoundingBox2D(
            min(self.start.x, self.end.x),
            min(self.start.y, self.end.y),
            max(self.start.x, self.end.x),
            max(self.start.y, self.end.y),
        )

    @property
    def length(self) -> float:
        """Euclidean length of the segment."""
        return math.sqrt(self.start.distance_squared(self.end))
