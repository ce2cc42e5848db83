"""
Axis-aligned bounds used by the calibrated renderer.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned box in drawing units."""
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
    def max_extent(self) -> float:
        return max(self.width, self.height)

    @property
    def area(self) -> float:
        return self.width * self.height

    def expand(self, margin_fraction: float) -> 'Bounds':
        """Grow every side by ``margin_fraction`` of the box's own extent."""
        mx = self.width * margin_fraction
        my = self.height * margin_fraction
        return Bounds(self.min_x - mx, self.min_y - my, self.max_x + mx, self.max_y + my)

    def ensure_minimum_extent(self, min_extent: float) -> 'Bounds':
        """Widen (around the centre) every axis shorter than ``min_extent``."""
        min_x, max_x = self.min_x, self.max_x
        if self.width < min_extent:
            cx = (self.min_x + self.max_x) / 2.0
            min_x, max_x = cx - min_extent / 2.0, cx + min_extent / 2.0

        min_y, max_y = self.min_y, self.max_y
        if self.height < min_extent:
            cy = (self.min_y + self.max_y) / 2.0
            min_y, max_y = cy - min_extent / 2.0, cy + min_extent / 2.0

        return Bounds(min_x, min_y, max_x, max_y)

    def contains(self, inner: 'Bounds', tolerance: float = 0.0) -> bool:
        """True if ``inner`` lies inside this box inflated by ``tolerance``."""
        return (inner.min_x >= self.min_x - tolerance
                and inner.min_y >= self.min_y - tolerance
                and inner.max_x <= self.max_x + tolerance
                and inner.max_y <= self.max_y + tolerance)

    @classmethod
    def from_points(cls, points) -> 'Bounds':
        """Bounds of an (N, 2) array or a sequence of (x, y) pairs.

        Raises:
            ValueError: If there are no points
        """
        arr = np.asarray(points, dtype=float).reshape(-1, 2)
        if arr.shape[0] == 0:
            raise ValueError("A coleção de pontos está vazia.")
        lo = arr.min(axis=0)
        hi = arr.max(axis=0)
        return cls(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))

    @classmethod
    def union(cls, boxes: Sequence['Bounds']) -> 'Bounds':
        if not boxes:
            raise ValueError("union of no bounds")
        return cls(
            min(b.min_x for b in boxes),
            min(b.min_y for b in boxes),
            max(b.max_x for b in boxes),
            max(b.max_y for b in boxes),
        )


class BoundsAccumulator:
    """Running min/max over point batches."""

    def __init__(self):
        self._lo: Optional[np.ndarray] = None
        self._hi: Optional[np.ndarray] = None

    @property
    def has_value(self) -> bool:
        return self._lo is not None

    def add(self, x: float, y: float) -> None:
        self.add_points(np.array([[x, y]], dtype=float))

    def add_points(self, points) -> None:
        arr = np.asarray(points, dtype=float).reshape(-1, 2)
        if arr.shape[0] == 0:
            return
        lo = arr.min(axis=0)
        hi = arr.max(axis=0)
        if self._lo is None:
            self._lo, self._hi = lo, hi
        else:
            self._lo = np.minimum(self._lo, lo)
            self._hi = np.maximum(self._hi, hi)

    def to_bounds(self) -> Optional[Bounds]:
        if self._lo is None:
            return None
        return Bounds(float(self._lo[0]), float(self._lo[1]), float(self._hi[0]), float(self._hi[1]))


def accumulate(point_sets: Iterable) -> Optional[Bounds]:
    """Bounds of several point arrays, ``None`` when all are empty."""
    acc = BoundsAccumulator()
    for points in point_sets:
        acc.add_points(points)
    return acc.to_bounds()
