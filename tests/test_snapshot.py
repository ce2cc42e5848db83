"""
Unit tests for dxf_analysis.snapshot module.
"""

import dataclasses
import math

import pytest

from dxf_analysis.geometry import Point2D, Segment2D
from dxf_analysis.models import DXFMetrics
from dxf_analysis.snapshot import UNKNOWN_SEMANTIC_TYPE, GeometrySnapshot


def _segment(layer):
    return Segment2D(Point2D(0, 0), Point2D(1, 0), layer)


class TestGeometrySnapshot:
    """Tests for GeometrySnapshot."""

    def test_create_copies_inputs(self):
        """Later changes to the caller's list and dict do not leak in."""
        segments = [_segment("CORTE")]
        layers = {"CORTE": "corte"}

        snapshot = GeometrySnapshot.create(DXFMetrics(), segments, layers, 1.0)
        segments.append(_segment("VINCO"))
        layers["VINCO"] = "vinco"

        assert len(snapshot.segments) == 1
        assert isinstance(snapshot.segments, tuple)
        assert "VINCO" not in snapshot.layer_semantic_types

    def test_layer_map_read_only(self):
        """The layer map cannot be modified."""
        snapshot = GeometrySnapshot(DXFMetrics(), layer_semantic_types={"CORTE": "corte"})
        with pytest.raises(TypeError):
            snapshot.layer_semantic_types["X"] = "y"

    def test_frozen(self):
        """Fields cannot be reassigned."""
        snapshot = GeometrySnapshot(DXFMetrics())
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.unit_to_millimeter = 2.0

    @pytest.mark.parametrize("scale", [0.0, -1.0, math.inf, math.nan])
    def test_invalid_scale_rejected(self, scale):
        """Scale must be positive and finite."""
        with pytest.raises(ValueError):
            GeometrySnapshot(DXFMetrics(), unit_to_millimeter=scale)

    def test_to_millimeters(self):
        """Inch drawings are converted with the 25.4 factor."""
        snapshot = GeometrySnapshot(DXFMetrics(unit="in"), unit_to_millimeter=25.4)
        assert snapshot.to_millimeters(2.0) == pytest.approx(50.8)

    def test_segments_on_layer_case_insensitive(self):
        """Layer lookups ignore case."""
        snapshot = GeometrySnapshot(DXFMetrics(), segments=[_segment("Corte"), _segment("VINCO")])
        assert len(snapshot.segments_on_layer("CORTE")) == 1
        assert snapshot.segments_on_layer("missing") == []

    def test_semantic_type_for(self):
        """Known layers map to their type; unknown ones to the default."""
        snapshot = GeometrySnapshot(DXFMetrics(), layer_semantic_types={"Serrilha 2x1": "serrilha"})
        assert snapshot.semantic_type_for("SERRILHA 2X1") == "serrilha"
        assert snapshot.semantic_type_for("0") == UNKNOWN_SEMANTIC_TYPE
