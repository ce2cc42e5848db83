"""
Renderização calibrada de DXF em PNG: detecção de faca, escala e recorte.
"""

from dxf_analysis.rendering.bounds import Bounds, BoundsAccumulator
from dxf_analysis.rendering.calibrated import (
    CalibratedDxfRenderer,
    CalibratedRenderResult,
    RenderInfo,
    RenderSettings,
)
from dxf_analysis.rendering.cancellation import CancellationToken
from dxf_analysis.rendering.image import DXFImageRenderer, DXFRenderedImage, sanitize_filename
from dxf_analysis.rendering.knife import KnifeDetectionResult, detect_knife_bounds
from dxf_analysis.rendering.primitives import PrimitiveKind, RenderPrimitive

__all__ = [
    "Bounds",
    "BoundsAccumulator",
    "CalibratedDxfRenderer",
    "CalibratedRenderResult",
    "CancellationToken",
    "DXFImageRenderer",
    "DXFRenderedImage",
    "KnifeDetectionResult",
    "PrimitiveKind",
    "RenderInfo",
    "RenderPrimitive",
    "RenderSettings",
    "detect_knife_bounds",
    "sanitize_filename",
]
