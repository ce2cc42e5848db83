"""
Calibrated PNG snapshot of a DXF cutting die.

Pipeline (each step may raise the matching RenderError):

1. flatten entities (invisible / frozen skipped, inserts exploded)
2. convert to tessellated primitives
3. global bounds of every primitive point
4. knife detection -> framing bounds (global bounds when no knife)
5. calibration: 2000 px on the long axis, scale, centring padding
6. drop primitives outside the framing bounds (unfiltered fallback)
7. rasterise with matplotlib Agg, crop to the clip rectangle, encode PNG

Cancellation is checked between phases and for every drawn primitive.

Usage:
    from dxf_analysis.rendering import CalibratedDxfRenderer

    result = CalibratedDxfRenderer().render("NR120184.dxf", doc)
    Path("NR120184.png").write_bytes(result.data)
"""

import io
import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import PathCollection
from matplotlib.figure import Figure
from matplotlib.image import imsave
from matplotlib.patches import Rectangle
from matplotlib.path import Path as MplPath

from dxf_analysis.errors import (
    ImageEncodingFailed,
    IndeterminateBounds,
    NoRenderableGeometry,
    NoVisibleGeometry,
)
from dxf_analysis.logging_config import timed
from dxf_analysis.rendering.bounds import Bounds, accumulate
from dxf_analysis.rendering.cancellation import CancellationToken
from dxf_analysis.rendering.knife import detect_knife_bounds
from dxf_analysis.rendering.primitives import (
    RenderPrimitive,
    convert_entities,
    flatten_entities,
    frozen_layer_names,
)

logger = logging.getLogger(__name__)

TARGET_DIMENSION = 2000
FRAME_PADDING_FRACTION = 0.0
KNIFE_MARGIN_RATIO = 0.0
MIN_EXTENT = 1e-3
MIN_SCALE = 1e-4

MIN_STROKE_PX = 1.0
MAX_STROKE_PX = 4.5
STROKE_SCALE_DIVISOR = 150.0

SOURCE_DUPLICATE_EPS = 1e-8
PIXEL_DUPLICATE_EPS = 1e-3

MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0
# Power of two: figure inches = pixels / dpi is exact, so Agg buffers have
# exactly the requested pixel size
CANVAS_DPI = 64


@dataclass(frozen=True)
class RenderSettings:
    """Drawing-units to pixel transform of one render."""
    bounds: Bounds
    scale: float
    padding_x: float
    padding_y: float
    image_width: int
    image_height: int
    translation_x: float
    translation_y: float

    def project(self, points: np.ndarray) -> np.ndarray:
        """Map (N, 2) drawing points to pixel coordinates (y grows downward)."""
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        x = (pts[:, 0] + self.translation_x) * self.scale + self.padding_x
        y = (self.bounds.height - (pts[:, 1] + self.translation_y)) * self.scale + self.padding_y
        return np.column_stack((x, y))


@dataclass(frozen=True)
class RenderInfo:
    """Canvas facts handed to overlay callbacks."""
    width_px: int
    height_px: int
    scale: float

    @property
    def effective_dpi(self) -> float:
        return self.scale * MM_PER_INCH

    @staticmethod
    def px_to_points(pixels: float) -> float:
        """Convert a pixel size to matplotlib points on the render canvas."""
        return pixels * POINTS_PER_INCH / CANVAS_DPI


@dataclass(frozen=True)
class CalibratedRenderResult:
    """PNG bytes plus the calibration metadata of a render."""
    data: bytes
    width_px: int
    height_px: int
    scale: float
    knife_detected: bool
    knife_candidate_count: int
    combined_knife: bool
    skipped_dominant_frame: bool
    filter_fallback_applied: bool

    @property
    def effective_dpi(self) -> float:
        return self.scale * MM_PER_INCH


Overlay = Callable[[object, RenderInfo], None]


def calculate_image_dimensions(bounds: Bounds, target: int = TARGET_DIMENSION) -> Tuple[int, int]:
    """Fit the long axis to ``target`` pixels, keeping the aspect ratio."""
    width, height = bounds.width, bounds.height
    if width <= 0 or height <= 0:
        return target, target

    aspect = width / height
    if aspect >= 1.0:
        return target, max(1, int(math.ceil(target / aspect)))
    return max(1, int(math.ceil(target * aspect))), target


def calculate_scale(bounds: Bounds, image_width: int, image_height: int,
                    padding_fraction: float = FRAME_PADDING_FRACTION) -> RenderSettings:
    usable = max(0.0, 1.0 - padding_fraction)
    scale = min(image_width * usable / bounds.width, image_height * usable / bounds.height)
    scale = max(scale, MIN_SCALE)

    return RenderSettings(
        bounds=bounds,
        scale=scale,
        padding_x=(image_width - bounds.width * scale) / 2.0,
        padding_y=(image_height - bounds.height * scale) / 2.0,
        image_width=image_width,
        image_height=image_height,
        translation_x=-bounds.min_x,
        translation_y=-bounds.min_y,
    )


def stroke_width_px(scale: float) -> float:
    return min(max(scale / STROKE_SCALE_DIVISOR, MIN_STROKE_PX), MAX_STROKE_PX)


def filter_primitives(
    primitives: Sequence[RenderPrimitive],
    clip_bounds: Bounds,
    scale: float,
) -> Tuple[List[RenderPrimitive], bool]:
    """Keep primitives lying inside ``clip_bounds`` (with a small tolerance).

    Returns:
        ``(primitives_to_draw, fallback_applied)``; when nothing survives the
        unfiltered list is returned with ``fallback_applied=True``
    """
    tolerance = clip_bounds.max_extent * 0.001
    if scale > 0:
        tolerance = max(tolerance, 1.5 / scale)

    kept = [
        p for p in primitives
        if not p.is_empty and clip_bounds.contains(Bounds.from_points(p.points), tolerance)
    ]
    if not kept:
        return list(primitives), True
    return kept, False


def _drop_consecutive_duplicates(points: np.ndarray, eps: float = SOURCE_DUPLICATE_EPS) -> np.ndarray:
    if len(points) < 2:
        return points

    steps = np.abs(np.diff(points, axis=0))
    if not np.any((steps[:, 0] < eps) & (steps[:, 1] < eps)):
        return points

    kept = [points[0]]
    for point in points[1:]:
        last = kept[-1]
        if abs(point[0] - last[0]) < eps and abs(point[1] - last[1]) < eps:
            continue
        kept.append(point)
    return np.array(kept)


def build_point_array(points: np.ndarray, settings: RenderSettings, is_closed: bool) -> np.ndarray:
    """Pixel-space vertices of a primitive, cleaned for path drawing."""
    if len(points) == 0:
        return np.empty((0, 2))

    pixels = settings.project(_drop_consecutive_duplicates(np.asarray(points, dtype=float)))
    if is_closed and len(pixels) >= 3 and np.all(np.abs(pixels[0] - pixels[-1]) < PIXEL_DUPLICATE_EPS):
        pixels = pixels[:-1]
    return pixels


def calculate_clip_rect(settings: RenderSettings, stroke_px: float) -> Tuple[float, float, float, float]:
    """``(left, top, right, bottom)`` pixel rectangle around the framed bounds."""
    b = settings.bounds
    corners = settings.project(np.array([[b.min_x, b.max_y], [b.max_x, b.min_y]]))
    left, right = sorted((corners[0, 0], corners[1, 0]))
    top, bottom = sorted((corners[0, 1], corners[1, 1]))

    margin = max(stroke_px / 2.0, 0.5)
    return (
        max(0.0, left - margin),
        max(0.0, top - margin),
        min(float(settings.image_width), right + margin),
        min(float(settings.image_height), bottom + margin),
    )


def calculate_clip_rect_int(settings: RenderSettings, stroke_px: float) -> Tuple[int, int, int, int]:
    left, top, right, bottom = calculate_clip_rect(settings, stroke_px)
    left_i = max(0, int(math.floor(left)))
    top_i = max(0, int(math.floor(top)))
    right_i = min(settings.image_width, int(math.ceil(right)))
    bottom_i = min(settings.image_height, int(math.ceil(bottom)))

    if right_i <= left_i:
        right_i = min(settings.image_width, left_i + 1)
    if bottom_i <= top_i:
        bottom_i = min(settings.image_height, top_i + 1)
    return left_i, top_i, right_i, bottom_i


def _primitive_path(pixels: np.ndarray, is_closed: bool) -> MplPath:
    codes = [MplPath.MOVETO] + [MplPath.LINETO] * (len(pixels) - 1)
    if is_closed:
        pixels = np.vstack((pixels, pixels[:1]))
        codes.append(MplPath.CLOSEPOLY)
    return MplPath(pixels, codes)


def encode_png(rgba: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    imsave(buffer, rgba, format='png')
    return buffer.getvalue()


class CalibratedDxfRenderer:
    """Renders ezdxf documents into calibrated, cropped PNG snapshots.

    The renderer keeps no state between calls; each call allocates its own
    figure, so one instance may serve several threads.
    """

    @timed(operation="Renderização calibrada")
    def render(
        self,
        file_path: str,
        document,
        cancellation: Optional[CancellationToken] = None,
        overlay: Optional[Overlay] = None,
    ) -> CalibratedRenderResult:
        """Render ``document`` to PNG.

        Args:
            file_path: DXF path (only used in messages and logs)
            document: Loaded ezdxf document
            cancellation: Optional token checked between phases
            overlay: Optional ``callback(axes, RenderInfo)`` drawing extra
                content in pixel coordinates before the snapshot

        Returns:
            CalibratedRenderResult

        Raises:
            NoVisibleGeometry, NoRenderableGeometry, IndeterminateBounds,
            ImageEncodingFailed, CyclicGeometry, RenderCancelled
        """
        token = cancellation or CancellationToken()
        token.raise_if_cancelled()

        entities = flatten_entities(document.modelspace(), frozen_layer_names(document))
        if not entities:
            raise NoVisibleGeometry(f"Nenhuma entidade visível encontrada no DXF: {file_path}")

        primitives = convert_entities(entities)
        if not primitives:
            raise NoRenderableGeometry(f"Nenhuma geometria renderizável encontrada no DXF: {file_path}")
        token.raise_if_cancelled()

        global_bounds = accumulate(p.points for p in primitives)
        if global_bounds is None:
            raise IndeterminateBounds(f"Não foi possível determinar o bounding box global do DXF: {file_path}")
        token.raise_if_cancelled()

        detection = detect_knife_bounds(entities)
        primary = detection.bounds if detection is not None else global_bounds

        target = primary.expand(KNIFE_MARGIN_RATIO).ensure_minimum_extent(MIN_EXTENT)
        width, height = calculate_image_dimensions(target)
        settings = calculate_scale(target, width, height)

        self._log_bounds(file_path, primary, detection)
        self._log_scale(file_path, settings)

        token.raise_if_cancelled()

        stroke_px = stroke_width_px(settings.scale)
        to_draw, fallback = filter_primitives(primitives, target, settings.scale)
        self._log_filter(file_path, len(primitives), len(to_draw), fallback)

        rgba = self._rasterize(to_draw, settings, stroke_px, token, overlay)

        left, top, right, bottom = calculate_clip_rect_int(settings, stroke_px)
        if (left, top, right, bottom) != (0, 0, width, height):
            rgba = rgba[top:bottom, left:right]

        data = encode_png(np.ascontiguousarray(rgba))
        if not data:
            raise ImageEncodingFailed("Falha ao codificar imagem renderizada.")

        final_height, final_width = rgba.shape[:2]
        result = CalibratedRenderResult(
            data=data,
            width_px=final_width,
            height_px=final_height,
            scale=settings.scale,
            knife_detected=detection is not None,
            knife_candidate_count=detection.total_candidates if detection else 0,
            combined_knife=detection.combined_multiple if detection else False,
            skipped_dominant_frame=detection.skipped_dominant_frame if detection else False,
            filter_fallback_applied=fallback,
        )
        logger.info(
            "Renderização concluída para %s. Dimensões=%dx%d px | DPI efetivo≈%.2f | faixas combinadas=%s "
            "| moldura ignorada=%s | fallback filtro=%s",
            file_path, final_width, final_height, result.effective_dpi,
            result.combined_knife, result.skipped_dominant_frame, fallback,
        )
        return result

    def _rasterize(
        self,
        primitives: Sequence[RenderPrimitive],
        settings: RenderSettings,
        stroke_px: float,
        token: CancellationToken,
        overlay: Optional[Overlay],
    ) -> np.ndarray:
        width, height = settings.image_width, settings.image_height
        fig = Figure(figsize=(width / CANVAS_DPI, height / CANVAS_DPI), dpi=CANVAS_DPI)
        canvas = FigureCanvasAgg(fig)
        fig.patch.set_alpha(0.0)

        ax = fig.add_axes([0.0, 0.0, 1.0, 1.0])
        ax.set_xlim(0, width)
        ax.set_ylim(height, 0)
        ax.set_axis_off()

        paths = []
        for primitive in primitives:
            token.raise_if_cancelled()
            pixels = build_point_array(primitive.points, settings, primitive.is_closed)
            if len(pixels) < 2:
                continue
            paths.append(_primitive_path(pixels, primitive.is_closed))

        left, top, right, bottom = calculate_clip_rect(settings, stroke_px)
        clip = Rectangle((left, top), right - left, bottom - top, transform=ax.transData)

        collection = PathCollection(
            paths,
            facecolors='none',
            edgecolors='black',
            linewidths=RenderInfo.px_to_points(stroke_px),
            capstyle='round',
            joinstyle='round',
            antialiaseds=True,
        )
        ax.add_collection(collection, autolim=False)
        collection.set_clip_path(clip)

        if overlay is not None:
            overlay(ax, RenderInfo(width, height, settings.scale))

        canvas.draw()
        return np.asarray(canvas.buffer_rgba()).copy()

    @staticmethod
    def _log_bounds(file_path: str, bounds: Bounds, detection) -> None:
        if detection is None:
            label = "Bounding box global utilizado (faca não encontrada)"
        elif detection.combined_multiple:
            label = "Bounding box combinado das facas"
        else:
            label = "Bounding box da faca principal"

        message = (
            f"{label}: xMin={bounds.min_x:.3f}, xMax={bounds.max_x:.3f}, "
            f"yMin={bounds.min_y:.3f}, yMax={bounds.max_y:.3f}, "
            f"largura={bounds.width:.3f}, altura={bounds.height:.3f}"
        )
        if detection is not None:
            message += f", candidatos={detection.total_candidates}"
            if detection.combined_multiple:
                message += ", múltiplas facas combinadas"
            if detection.skipped_dominant_frame:
                message += ", moldura descartada"

        logger.info("Render DXF %s: %s", file_path, message)

    @staticmethod
    def _log_scale(file_path: str, settings: RenderSettings) -> None:
        logger.info(
            "Render DXF %s: escala=%.6f px/unid | offset=(%.3f, %.3f) | padding≈(%.1f%%, %.1f%%) "
            "| área renderizada=(%.3f x %.3f)",
            file_path,
            settings.scale,
            settings.translation_x,
            settings.translation_y,
            settings.padding_x / settings.image_width * 100,
            settings.padding_y / settings.image_height * 100,
            settings.bounds.width,
            settings.bounds.height,
        )

    @staticmethod
    def _log_filter(file_path: str, original: int, drawn: int, fallback: bool) -> None:
        if fallback:
            logger.info("Render DXF %s: %d primitivas renderizadas (filtro vazio - fallback aplicado).",
                        file_path, original)
        elif drawn == original:
            logger.info("Render DXF %s: %d primitivas renderizadas (sem filtro).", file_path, drawn)
        else:
            logger.info("Render DXF %s: %d de %d primitivas renderizadas (conteúdo fora da faca ignorado).",
                        file_path, drawn, original)
