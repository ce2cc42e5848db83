"""
Unit tests for dxf_analysis.models module.

Tests:
- camelCase JSON parsing with defaults
- Optional sub-records
- Serialization back to the JSON contract
"""

import json

from dxf_analysis.models import (
    DXFMetrics,
    DXFQualityMetrics,
    DXFSerrilhaEntry,
    DXFSerrilhaSummary,
)


SAMPLE = {
    "unit": "mm",
    "extents": {"minX": 0, "minY": 0, "maxX": 200, "maxY": 100},
    "bboxArea": 20000,
    "totalCutLength": 5000,
    "total3PtLength": 120.5,
    "threePtSegmentCount": 4,
    "requiresManualThreePtHandling": True,
    "numCurves": 80,
    "numIntersections": 12,
    "minArcRadius": 0.25,
    "layerStats": [{"name": "SERRILHA", "type": "serrilha", "entityCount": 7, "totalLength": 300}],
    "serrilha": {
        "totalCount": 3,
        "entries": [{"semanticType": "serrilha", "bladeCode": "2x1", "count": 3, "estimatedLength": 45}],
        "isCorteSeco": True,
        "corteSecoPairs": [{"layerA": "S1", "layerB": "S2", "overlapMm": 10}],
        "classification": {"simple": 1, "mista": 2, "distinctCategories": 2},
        "distinctSemanticTypes": 1,
        "distinctBladeCodes": 1,
    },
    "quality": {
        "closedLoops": 5,
        "closedLoopsByType": {"circle": 3, "slot": 2},
        "danglingEnds": 1,
        "specialMaterials": ["Adesivo"],
    },
}


class TestDXFMetricsFromDict:
    """Tests for DXFMetrics.from_dict."""

    def test_scalar_fields(self):
        """camelCase keys map onto snake_case fields."""
        metrics = DXFMetrics.from_dict(SAMPLE)

        assert metrics.total_cut_length == 5000.0
        assert metrics.total_three_pt_length == 120.5
        assert metrics.three_pt_segment_count == 4
        assert metrics.requires_manual_three_pt_handling is True
        assert metrics.num_curves == 80
        assert metrics.min_arc_radius == 0.25
        assert metrics.extents.max_x == 200.0

    def test_nested_records(self):
        """Layer stats, serrilha and quality records are parsed."""
        metrics = DXFMetrics.from_dict(SAMPLE)

        assert metrics.layer_stats[0].type == "serrilha"
        assert metrics.layer_stats[0].entity_count == 7
        assert metrics.serrilha.entries[0].blade_code == "2x1"
        assert metrics.serrilha.entries[0].estimated_length == 45.0
        assert metrics.serrilha.corte_seco_pairs[0].overlap_mm == 10.0
        assert metrics.serrilha.classification.mista == 2
        assert metrics.quality.closed_loops_by_type == {"circle": 3, "slot": 2}
        assert metrics.quality.special_materials == ["Adesivo"]

    def test_missing_and_null_values_default(self):
        """Absent keys and explicit nulls take the defaults."""
        metrics = DXFMetrics.from_dict({"totalCutLength": None, "serrilha": None})

        assert metrics.total_cut_length == 0.0
        assert metrics.unit == "mm"
        assert metrics.layer_stats == []
        assert metrics.serrilha is None
        assert metrics.quality is None

    def test_unknown_keys_ignored(self):
        """Keys outside the contract are ignored."""
        metrics = DXFMetrics.from_dict({"numCurves": 3, "somethingElse": 1})
        assert metrics.num_curves == 3


class TestDXFMetricsSerialization:
    """Tests for to_dict / from_json / load."""

    def test_to_dict_uses_contract_keys(self):
        """Serialized keys follow the camelCase contract."""
        data = DXFMetrics.from_dict(SAMPLE).to_dict()

        assert data["total3PtLength"] == 120.5
        assert data["requiresManualThreePtHandling"] is True
        assert data["serrilha"]["isCorteSeco"] is True
        assert data["quality"]["closedLoopsByType"] == {"circle": 3, "slot": 2}

    def test_optional_records_omitted(self):
        """Absent serrilha and quality are left out of the JSON."""
        data = DXFMetrics(total_cut_length=10).to_dict()
        assert "serrilha" not in data
        assert "quality" not in data

    def test_entry_drops_null_fields(self):
        """Optional entry fields are omitted when unknown."""
        data = DXFSerrilhaEntry(semantic_type="serrilha", count=2).to_dict()
        assert "bladeCode" not in data
        assert "estimatedLength" not in data

    def test_from_json(self):
        """JSON text is accepted."""
        metrics = DXFMetrics.from_json(json.dumps(SAMPLE))
        assert metrics.num_intersections == 12

    def test_load(self, tmp_path):
        """Metrics are read from a file."""
        path = tmp_path / "NR120184.metrics.json"
        path.write_text(json.dumps(SAMPLE), encoding="utf-8")

        metrics = DXFMetrics.load(path)

        assert metrics.quality.closed_loops == 5


class TestOptionalRecords:
    """Defaults of the optional sub-records."""

    def test_summary_defaults(self):
        """A fresh summary has no classification and no pairs."""
        summary = DXFSerrilhaSummary()
        assert summary.classification is None
        assert summary.corte_seco_pairs == []
        assert summary.total_estimated_length is None

    def test_quality_defaults(self):
        """A fresh quality record has no loop types or materials."""
        quality = DXFQualityMetrics()
        assert quality.closed_loops_by_type is None
        assert quality.special_materials is None
