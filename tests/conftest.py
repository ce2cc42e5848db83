"""
Pytest configuration and fixtures for dxf_analysis.

Provides:
- In-memory ezdxf documents (single knife, framed knives, degenerate drawings)
- DXF files written to a temporary directory
- Metrics builders for scorer tests
- PNG helpers
"""

import logging
import struct
from pathlib import Path
from typing import Tuple

import ezdxf
import pytest

from dxf_analysis.config import ScoringThresholds, ThresholdWeight
from dxf_analysis.models import DXFMetrics

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo setup_logging() calls so tests do not leak handlers."""
    logger = logging.getLogger("dxf_analysis")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    for handler in list(logger.handlers):
        if handler not in saved[1]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


# ============================================================================
# Document Fixtures
# ============================================================================

@pytest.fixture
def empty_doc():
    """Document with an empty modelspace."""
    return ezdxf.new("R2010")


@pytest.fixture
def knife_doc():
    """Single 200 x 100 closed knife outline with an inner circle and arc."""
    doc = ezdxf.new("R2010")
    msp = doc.modelspace()
    add_rectangle(msp, 0, 0, 200, 100)
    msp.add_circle((50, 50), radius=20)
    msp.add_arc((150, 50), radius=15, start_angle=0, end_angle=180)
    return doc


@pytest.fixture
def framed_doc():
    """Outer 1000 x 800 frame enclosing two 100 x 100 knives (union 400 x 200)."""
    doc = ezdxf.new("R2010")
    msp = doc.modelspace()
    add_rectangle(msp, 0, 0, 1000, 800)
    add_rectangle(msp, 100, 100, 200, 200)
    add_rectangle(msp, 400, 200, 500, 300)
    return doc


@pytest.fixture
def line_doc():
    """A single horizontal line (degenerate height)."""
    doc = ezdxf.new("R2010")
    doc.modelspace().add_line((0, 0), (100, 0))
    return doc


@pytest.fixture
def point_line_doc():
    """A single zero-length line (degenerate in both axes)."""
    doc = ezdxf.new("R2010")
    doc.modelspace().add_line((5, 5), (5, 5))
    return doc


@pytest.fixture
def text_only_doc():
    """Visible entities, none of which is drawable."""
    doc = ezdxf.new("R2010")
    doc.modelspace().add_text("NR 1201/84", dxfattribs={"height": 5})
    return doc


@pytest.fixture
def knife_dxf_path(tmp_path: Path, knife_doc) -> Path:
    """``knife_doc`` saved as a DXF file."""
    path = tmp_path / "NR 1201-84.dxf"
    knife_doc.saveas(path)
    return path


# ============================================================================
# Metrics Fixtures
# ============================================================================

@pytest.fixture
def zero_metrics() -> DXFMetrics:
    """Metrics with every counter at zero and no optional records."""
    return DXFMetrics()


@pytest.fixture
def thresholds() -> ScoringThresholds:
    """Default thresholds."""
    return ScoringThresholds()


# ============================================================================
# Helpers
# ============================================================================

def add_rectangle(msp, x0: float, y0: float, x1: float, y1: float, layer: str = "0"):
    """Add a closed LWPOLYLINE rectangle."""
    return msp.add_lwpolyline(
        [(x0, y0), (x1, y0), (x1, y1), (x0, y1)],
        close=True,
        dxfattribs={"layer": layer},
    )


def brackets(*pairs: Tuple[float, float]):
    """ThresholdWeight list from ``(threshold, weight)`` pairs."""
    return [ThresholdWeight(threshold=t, weight=w) for t, w in pairs]


def png_size(data: bytes) -> Tuple[int, int]:
    """(width, height) read from the IHDR chunk of a PNG."""
    assert data[:8] == PNG_SIGNATURE
    width, height = struct.unpack(">II", data[16:24])
    return width, height
