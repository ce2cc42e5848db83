"""Primitivas geométricas: pontos, caixas delimitadoras e segmentos."""

from dxf_analysis.geometry.primitives import (
    BoundingBox2D,
    Point2D,
    Segment2D,
)

__all__ = [
    "BoundingBox2D",
    "Point2D",
    "Segment2D",
]
