"""
Tests for the calibrated DXF renderer.

Tests:
- Calibration (long axis 2000 px, scale, effective DPI)
- Knife detection outcome reported by the renderer
- Degenerate drawings and render errors
- Cancellation
- Helper calculations (dimensions, stroke, clip rectangle, filtering)
"""

import logging
from io import BytesIO

import ezdxf
import numpy as np
import pytest
from matplotlib.image import imread

from dxf_analysis.errors import NoRenderableGeometry, NoVisibleGeometry, RenderCancelled
from dxf_analysis.rendering.bounds import Bounds
from dxf_analysis.rendering.calibrated import (
    CalibratedDxfRenderer,
    RenderInfo,
    calculate_clip_rect_int,
    calculate_image_dimensions,
    calculate_scale,
    filter_primitives,
    stroke_width_px,
)
from dxf_analysis.rendering.cancellation import CancellationToken
from dxf_analysis.rendering.primitives import PrimitiveKind, RenderPrimitive
from tests.conftest import png_size


class CountingToken(CancellationToken):
    """Cancels itself on the n-th check."""

    def __init__(self, cancel_on: int):
        super().__init__()
        self.cancel_on = cancel_on
        self.checks = 0

    def raise_if_cancelled(self) -> None:
        self.checks += 1
        if self.checks >= self.cancel_on:
            self.cancel("teste")
        super().raise_if_cancelled()


@pytest.fixture
def renderer():
    return CalibratedDxfRenderer()


class TestCalibration:
    """Tests for image size and scale."""

    def test_single_knife(self, renderer, knife_doc):
        """A 200 x 100 knife renders at 2000 x 1000 px, 10 px/mm."""
        result = renderer.render("faca.dxf", knife_doc)

        assert png_size(result.data) == (2000, 1000)
        assert (result.width_px, result.height_px) == (2000, 1000)
        assert result.scale == pytest.approx(10.0)
        assert result.effective_dpi == pytest.approx(254.0)
        assert result.knife_detected
        assert result.knife_candidate_count == 1
        assert not result.combined_knife
        assert not result.skipped_dominant_frame
        assert not result.filter_fallback_applied

    def test_frame_discarded(self, renderer, framed_doc):
        """The outer frame is dropped and both knives are framed together."""
        result = renderer.render("moldura.dxf", framed_doc)

        assert png_size(result.data) == (2000, 1000)
        assert result.scale == pytest.approx(5.0)
        assert result.knife_candidate_count == 3
        assert result.combined_knife
        assert result.skipped_dominant_frame
        assert not result.filter_fallback_applied

    def test_no_knife_uses_global_bounds(self, renderer, line_doc):
        """A lone line is framed by its own (widened) bounds."""
        result = renderer.render("linha.dxf", line_doc)

        width, height = png_size(result.data)
        assert width == 2000
        assert height >= 1
        assert not result.knife_detected
        assert result.knife_candidate_count == 0

    def test_zero_extent_drawing(self, renderer, point_line_doc):
        """A zero-length line still produces a square image."""
        result = renderer.render("ponto.dxf", point_line_doc)
        assert png_size(result.data) == (2000, 2000)

    def test_deterministic(self, renderer, knife_doc):
        """Rendering twice yields identical bytes."""
        first = renderer.render("faca.dxf", knife_doc).data
        second = renderer.render("faca.dxf", knife_doc).data
        assert first == second

    def test_transparent_background(self, renderer, knife_doc):
        """Only strokes are opaque."""
        rgba = imread(BytesIO(renderer.render("faca.dxf", knife_doc).data))

        assert rgba.shape == (1000, 2000, 4)
        assert rgba[:, :, 3].max() > 0
        # centre of the knife, away from the circle and the arc
        assert rgba[500, 1000, 3] == 0

    def test_overlay_receives_canvas_info(self, renderer, knife_doc):
        """The overlay callback gets the uncropped canvas size and scale."""
        received = []
        renderer.render("faca.dxf", knife_doc, overlay=lambda ax, info: received.append(info))

        assert received == [RenderInfo(2000, 1000, 10.0)]

    def test_render_is_timed(self, renderer, knife_doc, caplog):
        """Start and completion of a render are logged at DEBUG."""
        with caplog.at_level(logging.DEBUG, logger="dxf_analysis.rendering.calibrated"):
            renderer.render("faca.dxf", knife_doc)

        messages = [r.getMessage() for r in caplog.records]
        assert "Starting: Renderização calibrada" in messages
        assert any(m.startswith("Completed: Renderização calibrada (") for m in messages)


class TestRenderErrors:
    """Tests for the failure modes."""

    def test_empty_document(self, renderer, empty_doc):
        """Nothing visible."""
        with pytest.raises(NoVisibleGeometry):
            renderer.render("vazio.dxf", empty_doc)

    def test_frozen_only(self, renderer):
        """Entities on frozen layers do not count as visible."""
        doc = ezdxf.new("R2010")
        doc.layers.add("OCULTA").freeze()
        doc.modelspace().add_line((0, 0), (10, 10), dxfattribs={"layer": "OCULTA"})

        with pytest.raises(NoVisibleGeometry):
            renderer.render("congelado.dxf", doc)

    def test_text_only(self, renderer, text_only_doc):
        """Visible but undrawable entities."""
        with pytest.raises(NoRenderableGeometry):
            renderer.render("texto.dxf", text_only_doc)


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancelled_before_start(self, renderer, knife_doc):
        """A cancelled token stops the render immediately."""
        token = CancellationToken()
        token.cancel("parado")

        with pytest.raises(RenderCancelled, match="parado"):
            renderer.render("faca.dxf", knife_doc, cancellation=token)

    def test_cancelled_while_drawing(self, renderer, knife_doc):
        """Primitives are checked one by one."""
        token = CountingToken(cancel_on=5)

        with pytest.raises(RenderCancelled):
            renderer.render("faca.dxf", knife_doc, cancellation=token)

        assert token.checks == 5

    def test_cancel_after(self):
        """The timer cancels the token."""
        token = CancellationToken()
        timer = token.cancel_after(0.01)
        timer.join(2.0)

        assert token.is_cancelled
        assert "Tempo limite" in token.reason


class TestHelpers:
    """Tests for the calibration helpers."""

    def test_dimensions_landscape(self):
        """Wide drawings fix the width."""
        assert calculate_image_dimensions(Bounds(0, 0, 300, 100)) == (2000, 667)

    def test_dimensions_portrait(self):
        """Tall drawings fix the height."""
        assert calculate_image_dimensions(Bounds(0, 0, 100, 300)) == (667, 2000)

    def test_dimensions_degenerate(self):
        """Zero extent falls back to a square."""
        assert calculate_image_dimensions(Bounds(1, 1, 1, 1)) == (2000, 2000)

    def test_stroke_width_clamped(self):
        """Stroke grows with scale between 1 and 4.5 px."""
        assert stroke_width_px(10) == 1.0
        assert stroke_width_px(300) == pytest.approx(2.0)
        assert stroke_width_px(1000) == 4.5

    def test_scale_centres_content(self):
        """Padding centres the bounds inside the canvas."""
        settings = calculate_scale(Bounds(0, 0, 100, 100), 2000, 1000)

        assert settings.scale == pytest.approx(10.0)
        assert settings.padding_x == pytest.approx(500.0)
        assert settings.padding_y == pytest.approx(0.0)
        assert settings.project(np.array([[0, 100]])).tolist() == [[500.0, 0.0]]

    def test_clip_rect(self):
        """The clip rectangle hugs the bounds plus half a stroke."""
        settings = calculate_scale(Bounds(0, 0, 100, 100), 2000, 1000)
        assert calculate_clip_rect_int(settings, 1.0) == (499, 0, 1501, 1000)

    def test_clip_rect_full_canvas(self):
        """Bounds filling the canvas are not cropped."""
        settings = calculate_scale(Bounds(0, 0, 200, 100), 2000, 1000)
        assert calculate_clip_rect_int(settings, 1.0) == (0, 0, 2000, 1000)

    def test_filter_keeps_inside(self):
        """Primitives outside the framing bounds are dropped."""
        inside = RenderPrimitive(np.array([[1.0, 1.0], [5.0, 5.0]]), False, PrimitiveKind.LINE)
        outside = RenderPrimitive(np.array([[100.0, 100.0], [200.0, 100.0]]), False, PrimitiveKind.LINE)

        kept, fallback = filter_primitives([inside, outside], Bounds(0, 0, 10, 10), 100.0)

        assert kept == [inside]
        assert not fallback

    def test_filter_fallback(self):
        """When nothing survives, everything is drawn."""
        outside = RenderPrimitive(np.array([[100.0, 100.0], [200.0, 100.0]]), False, PrimitiveKind.LINE)

        kept, fallback = filter_primitives([outside], Bounds(0, 0, 10, 10), 1.0)

        assert kept == [outside]
        assert fallback
