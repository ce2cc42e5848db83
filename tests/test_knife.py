"""
Unit tests for dxf_analysis.rendering.knife module.

Tests:
- Candidate qualification (closed, area, aspect ratio)
- Dominant frame rejection by area ratio and by containment
- Union of the remaining candidates
"""

import ezdxf

from dxf_analysis.rendering.bounds import Bounds
from dxf_analysis.rendering.knife import (
    KnifeCandidate,
    detect_candidates,
    detect_knife_bounds,
    knife_candidate,
    should_skip_dominant_frame,
)
from tests.conftest import add_rectangle


def _msp():
    return ezdxf.new("R2010").modelspace()


def _candidate(x0, y0, x1, y1):
    bounds = Bounds(x0, y0, x1, y1)
    return KnifeCandidate(bounds.area, bounds.width / bounds.height, bounds)


class TestKnifeCandidate:
    """Tests for knife_candidate."""

    def test_closed_rectangle(self):
        """A large closed rectangle qualifies."""
        msp = _msp()
        candidate = knife_candidate(add_rectangle(msp, 0, 0, 200, 100))

        assert candidate.area == 20000
        assert candidate.ratio == 2.0
        assert candidate.bounds == Bounds(0, 0, 200, 100)

    def test_open_polyline_rejected(self):
        """Open polylines are not knives."""
        msp = _msp()
        polyline = msp.add_lwpolyline([(0, 0), (200, 0), (200, 100), (0, 100)])
        assert knife_candidate(polyline) is None

    def test_small_area_rejected(self):
        """Area must exceed 1000."""
        msp = _msp()
        assert knife_candidate(add_rectangle(msp, 0, 0, 20, 50)) is None

    def test_extreme_aspect_rejected(self):
        """Very thin outlines are not knives."""
        msp = _msp()
        assert knife_candidate(add_rectangle(msp, 0, 0, 1000, 100)) is None
        assert knife_candidate(add_rectangle(msp, 0, 0, 100, 1000)) is None

    def test_non_polyline_rejected(self):
        """Circles and lines never qualify."""
        msp = _msp()
        assert knife_candidate(msp.add_circle((0, 0), 100)) is None
        assert knife_candidate(msp.add_line((0, 0), (100, 100))) is None

    def test_closed_polyline2d(self):
        """Closed 2D POLYLINE entities qualify too."""
        msp = _msp()
        polyline = msp.add_polyline2d([(0, 0), (100, 0), (100, 80), (0, 80)], close=True)
        assert knife_candidate(polyline).bounds == Bounds(0, 0, 100, 80)

    def test_bulged_outline_bounds(self):
        """Bulges are tessellated before measuring."""
        msp = _msp()
        polyline = msp.add_lwpolyline([(0, 0, 0), (100, 0, 1), (100, 100, 0), (0, 100, 0)],
                                      format="xyb", close=True)
        candidate = knife_candidate(polyline)
        assert candidate.bounds.max_x == 150.0
        assert candidate.bounds.min_x == 0.0


class TestDominantFrame:
    """Tests for should_skip_dominant_frame."""

    def test_single_candidate_kept(self):
        """A lone candidate is never a frame."""
        assert not should_skip_dominant_frame([_candidate(0, 0, 100, 100)])

    def test_area_ratio(self):
        """A candidate more than three times the next one is a frame."""
        ordered = [_candidate(0, 0, 400, 400), _candidate(1000, 1000, 1100, 1100)]
        assert should_skip_dominant_frame(ordered)

    def test_containment(self):
        """A candidate enclosing all the others is a frame."""
        ordered = [_candidate(0, 0, 300, 300), _candidate(50, 50, 250, 250), _candidate(10, 10, 210, 210)]
        assert should_skip_dominant_frame(ordered)

    def test_side_by_side_kept(self):
        """Similar, disjoint candidates are all knives."""
        ordered = [_candidate(0, 0, 200, 200), _candidate(300, 0, 450, 200)]
        assert not should_skip_dominant_frame(ordered)


class TestDetectKnifeBounds:
    """Tests for detect_candidates / detect_knife_bounds."""

    def test_no_candidates(self):
        """Nothing qualifies, nothing detected."""
        msp = _msp()
        msp.add_line((0, 0), (100, 100))
        assert detect_knife_bounds(msp) is None
        assert detect_candidates([]) is None

    def test_frame_skipped_and_knives_combined(self, framed_doc):
        """The outer frame is discarded; the two knives are united."""
        result = detect_knife_bounds(framed_doc.modelspace())

        assert result.skipped_dominant_frame
        assert result.combined_multiple
        assert result.total_candidates == 3
        assert result.bounds == Bounds(100, 100, 500, 300)

    def test_single_knife(self):
        """One candidate gives its own bounds."""
        msp = _msp()
        add_rectangle(msp, 10, 20, 210, 120)
        result = detect_knife_bounds(msp)

        assert result.bounds == Bounds(10, 20, 210, 120)
        assert not result.combined_multiple
        assert not result.skipped_dominant_frame

    def test_containment_frame_skipped(self):
        """A frame that is not three times larger is still skipped when it encloses."""
        result = detect_candidates([
            _candidate(50, 50, 250, 250),
            _candidate(0, 0, 300, 300),
            _candidate(10, 10, 210, 210),
        ])

        assert result.skipped_dominant_frame
        assert result.bounds == Bounds(10, 10, 250, 250)
