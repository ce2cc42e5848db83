"""
Watermarked PNG previews built on the calibrated renderer.
"""

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dxf_analysis.rendering.calibrated import CalibratedDxfRenderer, RenderInfo
from dxf_analysis.rendering.cancellation import CancellationToken
from dxf_analysis.scoring.formatting import format_decimal

logger = logging.getLogger(__name__)

CONTENT_TYPE = "image/png"
WATERMARK_COLOR = "#777777"
WATERMARK_MARGIN_PX = 16
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*')


def sanitize_filename(value: str) -> str:
    """Lower-case ``value`` and replace invalid or whitespace characters with ``_``.

    >>> sanitize_filename("NR 1201:84")
    'nr_1201_84'
    """
    return "".join(
        "_" if ch in _INVALID_FILENAME_CHARS or ch.isspace() or ord(ch) < 32 else ch.lower()
        for ch in value
    )


def watermark_text(name: str, score: Optional[float]) -> str:
    return f"{name} | score={format_decimal(score)}" if score is not None else name


@dataclass
class DXFRenderedImage:
    """In-memory PNG produced from a DXF document."""
    safe_name: str
    original_file_name: str
    width_px: int
    height_px: int
    dpi: float
    data: bytes
    sha256: str
    local_path: Optional[Path] = None

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE

    @property
    def length(self) -> int:
        return len(self.data)

    def save(self, folder: Union[str, Path]) -> Path:
        """Write ``<safe_name>.png`` into ``folder`` (created if missing)."""
        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{self.safe_name}.png"
        path.write_bytes(self.data)
        self.local_path = path
        logger.info("Imagem salva em %s (%d bytes)", path, self.length)
        return path


class DXFImageRenderer:
    """Renders a document and stamps its name and score in the corner.

    Args:
        calibrated_renderer: Renderer doing the actual drawing
        watermark: Draw the ``name | score=...`` label
    """

    def __init__(self, calibrated_renderer: Optional[CalibratedDxfRenderer] = None, watermark: bool = True):
        self.calibrated_renderer = calibrated_renderer or CalibratedDxfRenderer()
        self.watermark = watermark

    def render(
        self,
        file_name: Union[str, Path],
        document,
        score: Optional[float] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> DXFRenderedImage:
        file_name = str(file_name)
        safe_name = sanitize_filename(Path(file_name).stem)

        overlay = None
        if self.watermark:
            text = watermark_text(safe_name, score)

            def overlay(ax, info: RenderInfo):
                draw_watermark(ax, info, text)

        result = self.calibrated_renderer.render(file_name, document, cancellation, overlay)
        return DXFRenderedImage(
            safe_name=safe_name,
            original_file_name=os.path.basename(file_name),
            width_px=result.width_px,
            height_px=result.height_px,
            dpi=result.effective_dpi,
            data=result.data,
            sha256=hashlib.sha256(result.data).hexdigest(),
        )


def draw_watermark(ax, info: RenderInfo, text: str) -> None:
    """Grey label at the bottom-left corner of the uncropped canvas."""
    size_px = min(32.0, max(14.0, info.width_px * 0.02))
    ax.text(
        WATERMARK_MARGIN_PX,
        info.height_px - WATERMARK_MARGIN_PX,
        text,
        color=WATERMARK_COLOR,
        fontsize=info.px_to_points(size_px),
        ha='left',
        va='bottom',
    )
