"""
Immutable geometry snapshot handed from extraction to scoring and rendering.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple

from dxf_analysis.geometry import Segment2D
from dxf_analysis.models import DXFMetrics

UNKNOWN_SEMANTIC_TYPE = "unknown"


@dataclass(frozen=True)
class GeometrySnapshot:
    """Metrics, flattened segments and layer semantics of one drawing.

    Attributes:
        metrics: Metrics extracted upstream
        segments: Flattened segments (copied into a tuple)
        layer_semantic_types: Layer name -> semantic type (read-only copy)
        unit_to_millimeter: Factor converting drawing units to millimetres
    """
    metrics: DXFMetrics
    segments: Tuple[Segment2D, ...] = ()
    layer_semantic_types: Mapping[str, str] = field(default_factory=dict)
    unit_to_millimeter: float = 1.0

    def __post_init__(self):
        scale = float(self.unit_to_millimeter)
        if not math.isfinite(scale) or scale <= 0:
            raise ValueError(f"unit_to_millimeter must be positive and finite, got {self.unit_to_millimeter!r}")

        object.__setattr__(self, 'unit_to_millimeter', scale)
        object.__setattr__(self, 'segments', tuple(self.segments))
        object.__setattr__(
            self,
            'layer_semantic_types',
            MappingProxyType({str(k): str(v) for k, v in self.layer_semantic_types.items()}),
        )

    @classmethod
    def create(
        cls,
        metrics: DXFMetrics,
        segments: Iterable[Segment2D],
        layer_semantic_types: Mapping[str, str],
        unit_to_millimeter: float = 1.0,
    ) -> 'GeometrySnapshot':
        return cls(metrics, tuple(segments), dict(layer_semantic_types), unit_to_millimeter)

    def segments_on_layer(self, layer: str) -> List[Segment2D]:
        """Segments whose layer matches ``layer`` (case-insensitive)."""
        wanted = layer.casefold()
        return [s for s in self.segments if s.layer.casefold() == wanted]

    def semantic_type_for(self, layer: str) -> str:
        for name, semantic in self.layer_semantic_types.items():
            if name.casefold() == layer.casefold():
                return semantic
        return UNKNOWN_SEMANTIC_TYPE

    def to_millimeters(self, value: float) -> float:
        return value * self.unit_to_millimeter
