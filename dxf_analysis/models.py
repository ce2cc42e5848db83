"""
Metrics data model consumed by the complexity scorer.

Mirrors the JSON contract published by the upstream extractor (camelCase
keys). ``from_dict`` is lenient: unknown keys are ignored and missing keys
take their defaults. The optional ``quality`` and ``serrilha`` sub-records
stay ``None`` when absent so the scorer can treat them as "no contribution".

Usage:
    from dxf_analysis.models import DXFMetrics

    metrics = DXFMetrics.load("NR120184.metrics.json")
    print(metrics.total_cut_length, metrics.quality.closed_loops)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


def _get(data: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Read ``key`` from a JSON object, treating explicit nulls as missing."""
    value = data.get(key)
    return default if value is None else value


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class DXFExtents:
    """Spatial extents of the analyzed entities."""
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFExtents':
        return cls(
            min_x=float(_get(data, 'minX', 0.0)),
            min_y=float(_get(data, 'minY', 0.0)),
            max_x=float(_get(data, 'maxX', 0.0)),
            max_y=float(_get(data, 'maxY', 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'minX': self.min_x, 'minY': self.min_y, 'maxX': self.max_x, 'maxY': self.max_y}


@dataclass
class DXFLayerStats:
    """Aggregate information about one DXF layer."""
    name: str = ""
    type: str = "unknown"
    entity_count: int = 0
    total_length: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFLayerStats':
        return cls(
            name=str(_get(data, 'name', "")),
            type=str(_get(data, 'type', "unknown")),
            entity_count=int(_get(data, 'entityCount', 0)),
            total_length=float(_get(data, 'totalLength', 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': self.type,
            'entityCount': self.entity_count,
            'totalLength': self.total_length,
        }


@dataclass
class DXFSerrilhaEntry:
    """Serrilha symbols grouped by semantic type and blade code."""
    semantic_type: str = ""
    blade_code: Optional[str] = None
    count: int = 0
    symbol_names: List[str] = field(default_factory=list)
    estimated_length: Optional[float] = None
    estimated_tooth_count: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFSerrilhaEntry':
        estimated_length = data.get('estimatedLength')
        tooth_count = data.get('estimatedToothCount')
        return cls(
            semantic_type=str(_get(data, 'semanticType', "")),
            blade_code=data.get('bladeCode'),
            count=int(_get(data, 'count', 0)),
            symbol_names=list(_get(data, 'symbolNames', [])),
            estimated_length=float(estimated_length) if estimated_length is not None else None,
            estimated_tooth_count=float(tooth_count) if tooth_count is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'semanticType': self.semantic_type,
            'bladeCode': self.blade_code,
            'symbolNames': list(self.symbol_names),
            'count': self.count,
            'estimatedLength': self.estimated_length,
            'estimatedToothCount': self.estimated_tooth_count,
        })


@dataclass
class DXFSerrilhaClassification:
    """Occurrence counters per perforation category."""
    simple: int = 0
    travada: int = 0
    zipper: int = 0
    mista: int = 0
    distinct_categories: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFSerrilhaClassification':
        return cls(
            simple=int(_get(data, 'simple', 0)),
            travada=int(_get(data, 'travada', 0)),
            zipper=int(_get(data, 'zipper', 0)),
            mista=int(_get(data, 'mista', 0)),
            distinct_categories=int(_get(data, 'distinctCategories', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'simple': self.simple,
            'travada': self.travada,
            'zipper': self.zipper,
            'mista': self.mista,
            'distinctCategories': self.distinct_categories,
        }


@dataclass
class DXFCorteSecoPair:
    """Pair of near-parallel serration segments identified as a dry cut."""
    layer_a: str = ""
    layer_b: str = ""
    type_a: str = ""
    type_b: str = ""
    overlap_mm: float = 0.0
    offset_mm: float = 0.0
    angle_deg: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFCorteSecoPair':
        return cls(
            layer_a=str(_get(data, 'layerA', "")),
            layer_b=str(_get(data, 'layerB', "")),
            type_a=str(_get(data, 'typeA', "")),
            type_b=str(_get(data, 'typeB', "")),
            overlap_mm=float(_get(data, 'overlapMm', 0.0)),
            offset_mm=float(_get(data, 'offsetMm', 0.0)),
            angle_deg=float(_get(data, 'angleDeg', 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'layerA': self.layer_a,
            'layerB': self.layer_b,
            'typeA': self.type_a,
            'typeB': self.type_b,
            'overlapMm': self.overlap_mm,
            'offsetMm': self.offset_mm,
            'angleDeg': self.angle_deg,
        }


@dataclass
class DXFSerrilhaSummary:
    """Summary of every serrilha symbol detected in the document."""
    total_count: int = 0
    unknown_count: int = 0
    entries: List[DXFSerrilhaEntry] = field(default_factory=list)
    unknown_symbols: Optional[List[str]] = None
    total_estimated_length: Optional[float] = None
    average_estimated_length: Optional[float] = None
    is_corte_seco: bool = False
    corte_seco_pairs: List[DXFCorteSecoPair] = field(default_factory=list)
    corte_seco_blade_codes: Optional[List[str]] = None
    classification: Optional[DXFSerrilhaClassification] = None
    distinct_semantic_types: int = 0
    distinct_blade_codes: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFSerrilhaSummary':
        classification = data.get('classification')
        total_length = data.get('totalEstimatedLength')
        average_length = data.get('averageEstimatedLength')
        unknown_symbols = data.get('unknownSymbols')
        blade_codes = data.get('corteSecoBladeCodes')
        return cls(
            total_count=int(_get(data, 'totalCount', 0)),
            unknown_count=int(_get(data, 'unknownCount', 0)),
            entries=[DXFSerrilhaEntry.from_dict(e) for e in _get(data, 'entries', []) if e is not None],
            unknown_symbols=list(unknown_symbols) if unknown_symbols is not None else None,
            total_estimated_length=float(total_length) if total_length is not None else None,
            average_estimated_length=float(average_length) if average_length is not None else None,
            is_corte_seco=bool(_get(data, 'isCorteSeco', False)),
            corte_seco_pairs=[
                DXFCorteSecoPair.from_dict(p) for p in _get(data, 'corteSecoPairs', []) if p is not None
            ],
            corte_seco_blade_codes=list(blade_codes) if blade_codes is not None else None,
            classification=(
                DXFSerrilhaClassification.from_dict(classification) if classification is not None else None
            ),
            distinct_semantic_types=int(_get(data, 'distinctSemanticTypes', 0)),
            distinct_blade_codes=int(_get(data, 'distinctBladeCodes', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'totalCount': self.total_count,
            'unknownCount': self.unknown_count,
            'entries': [e.to_dict() for e in self.entries],
            'unknownSymbols': self.unknown_symbols,
            'totalEstimatedLength': self.total_estimated_length,
            'averageEstimatedLength': self.average_estimated_length,
            'isCorteSeco': self.is_corte_seco,
            'corteSecoPairs': [p.to_dict() for p in self.corte_seco_pairs],
            'corteSecoBladeCodes': self.corte_seco_blade_codes,
            'classification': self.classification.to_dict() if self.classification else None,
            'distinctSemanticTypes': self.distinct_semantic_types,
            'distinctBladeCodes': self.distinct_blade_codes,
        })


@dataclass
class DXFQualityMetrics:
    """Quality findings from preprocessing (loops, dangling ends, materials)."""
    tiny_gaps: int = 0
    overlaps: int = 0
    dangling_ends: int = 0
    closed_loops: int = 0
    closed_loops_by_type: Optional[Dict[str, int]] = None
    closed_loop_density: float = 0.0
    special_materials: Optional[List[str]] = None
    delicate_arc_count: int = 0
    delicate_arc_length: float = 0.0
    delicate_arc_density: float = 0.0
    notes: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFQualityMetrics':
        by_type = data.get('closedLoopsByType')
        materials = data.get('specialMaterials')
        notes = data.get('notes')
        return cls(
            tiny_gaps=int(_get(data, 'tinyGaps', 0)),
            overlaps=int(_get(data, 'overlaps', 0)),
            dangling_ends=int(_get(data, 'danglingEnds', 0)),
            closed_loops=int(_get(data, 'closedLoops', 0)),
            closed_loops_by_type=(
                {str(k): int(v) for k, v in by_type.items()} if by_type is not None else None
            ),
            closed_loop_density=float(_get(data, 'closedLoopDensity', 0.0)),
            special_materials=list(materials) if materials is not None else None,
            delicate_arc_count=int(_get(data, 'delicateArcCount', 0)),
            delicate_arc_length=float(_get(data, 'delicateArcLength', 0.0)),
            delicate_arc_density=float(_get(data, 'delicateArcDensity', 0.0)),
            notes=list(notes) if notes is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'tinyGaps': self.tiny_gaps,
            'overlaps': self.overlaps,
            'danglingEnds': self.dangling_ends,
            'closedLoops': self.closed_loops,
            'closedLoopsByType': dict(self.closed_loops_by_type) if self.closed_loops_by_type else None,
            'closedLoopDensity': self.closed_loop_density,
            'specialMaterials': self.special_materials,
            'delicateArcCount': self.delicate_arc_count,
            'delicateArcLength': self.delicate_arc_length,
            'delicateArcDensity': self.delicate_arc_density,
            'notes': self.notes,
        })


@dataclass
class DXFMetrics:
    """Numeric and categorical metrics derived from a DXF file.

    All lengths are expressed in ``unit`` (millimetres by default).
    """
    unit: str = "mm"
    extents: DXFExtents = field(default_factory=DXFExtents)
    bbox_area: float = 0.0
    bbox_perimeter: float = 0.0
    total_cut_length: float = 0.0
    total_fold_length: float = 0.0
    total_perf_length: float = 0.0
    total_three_pt_length: float = 0.0
    three_pt_segment_count: int = 0
    three_pt_cut_ratio: float = 0.0
    requires_manual_three_pt_handling: bool = False
    num_curves: int = 0
    num_nodes: int = 0
    num_intersections: int = 0
    min_arc_radius: float = 0.0
    polyline_count: int = 0
    spline_count: int = 0
    line_count: int = 0
    arc_count: int = 0
    layer_stats: List[DXFLayerStats] = field(default_factory=list)
    serrilha: Optional[DXFSerrilhaSummary] = None
    quality: Optional[DXFQualityMetrics] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DXFMetrics':
        """Create metrics from the camelCase JSON contract.

        Args:
            data: Decoded JSON object

        Returns:
            DXFMetrics instance
        """
        serrilha = data.get('serrilha')
        quality = data.get('quality')
        return cls(
            unit=str(_get(data, 'unit', "mm")),
            extents=DXFExtents.from_dict(_get(data, 'extents', {})),
            bbox_area=float(_get(data, 'bboxArea', 0.0)),
            bbox_perimeter=float(_get(data, 'bboxPerimeter', 0.0)),
            total_cut_length=float(_get(data, 'totalCutLength', 0.0)),
            total_fold_length=float(_get(data, 'totalFoldLength', 0.0)),
            total_perf_length=float(_get(data, 'totalPerfLength', 0.0)),
            total_three_pt_length=float(_get(data, 'total3PtLength', 0.0)),
            three_pt_segment_count=int(_get(data, 'threePtSegmentCount', 0)),
            three_pt_cut_ratio=float(_get(data, 'threePtCutRatio', 0.0)),
            requires_manual_three_pt_handling=bool(_get(data, 'requiresManualThreePtHandling', False)),
            num_curves=int(_get(data, 'numCurves', 0)),
            num_nodes=int(_get(data, 'numNodes', 0)),
            num_intersections=int(_get(data, 'numIntersections', 0)),
            min_arc_radius=float(_get(data, 'minArcRadius', 0.0)),
            polyline_count=int(_get(data, 'polylineCount', 0)),
            spline_count=int(_get(data, 'splineCount', 0)),
            line_count=int(_get(data, 'lineCount', 0)),
            arc_count=int(_get(data, 'arcCount', 0)),
            layer_stats=[DXFLayerStats.from_dict(s) for s in _get(data, 'layerStats', []) if s is not None],
            serrilha=DXFSerrilhaSummary.from_dict(serrilha) if serrilha is not None else None,
            quality=DXFQualityMetrics.from_dict(quality) if quality is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics back to the camelCase JSON contract."""
        return _drop_none({
            'unit': self.unit,
            'extents': self.extents.to_dict(),
            'bboxArea': self.bbox_area,
            'bboxPerimeter': self.bbox_perimeter,
            'totalCutLength': self.total_cut_length,
            'totalFoldLength': self.total_fold_length,
            'totalPerfLength': self.total_perf_length,
            'total3PtLength': self.total_three_pt_length,
            'threePtSegmentCount': self.three_pt_segment_count,
            'threePtCutRatio': self.three_pt_cut_ratio,
            'requiresManualThreePtHandling': self.requires_manual_three_pt_handling,
            'numCurves': self.num_curves,
            'numNodes': self.num_nodes,
            'numIntersections': self.num_intersections,
            'minArcRadius': self.min_arc_radius,
            'polylineCount': self.polyline_count,
            'splineCount': self.spline_count,
            'lineCount': self.line_count,
            'arcCount': self.arc_count,
            'layerStats': [s.to_dict() for s in self.layer_stats],
            'serrilha': self.serrilha.to_dict() if self.serrilha else None,
            'quality': self.quality.to_dict() if self.quality else None,
        })

    @classmethod
    def from_json(cls, json_str: str) -> 'DXFMetrics':
        """Create metrics from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'DXFMetrics':
        """Load metrics from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(Path(path), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))
