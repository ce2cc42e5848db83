"""
Entity flattening and tessellation for the calibrated renderer.

Turns an ezdxf entity stream into ``RenderPrimitive`` point sequences:

- flatten_entities   - drop invisible / frozen-layer entities, explode block
                       inserts depth-first (cycles raise CyclicGeometry)
- convert_entity     - closed dispatch table keyed by DXF type; every curve
                       is tessellated with CURVE_PRECISION segments
- polyline_points    - bulge-aware vertices of LWPOLYLINE / POLYLINE, shared
                       with knife detection

Unsupported entity types (TEXT, HATCH, DIMENSION, ...) explicitly yield no
primitive.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
from ezdxf.math import Z_AXIS, Vec3

from dxf_analysis.errors import CyclicGeometry

logger = logging.getLogger(__name__)

CURVE_PRECISION = 256
MAX_INSERT_DEPTH = 32


class PrimitiveKind(Enum):
    LINE = "line"
    POLYLINE = "polyline"
    ARC = "arc"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"


@dataclass(frozen=True, eq=False)
class RenderPrimitive:
    """Tessellated drawable: (N, 2) points in drawing units."""
    points: np.ndarray
    is_closed: bool
    kind: PrimitiveKind

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0


def _xy(vertices: Iterable) -> np.ndarray:
    """(N, 2) float array from Vec3 / tuples, Z dropped."""
    coords = [(float(v[0]), float(v[1])) for v in vertices]
    return np.array(coords, dtype=float).reshape(-1, 2)


def frozen_layer_names(doc) -> Set[str]:
    """Case-folded names of the document's frozen layers."""
    if doc is None:
        return set()
    return {layer.dxf.name.casefold() for layer in doc.layers if layer.is_frozen()}


def is_visible(entity, frozen_layers: Set[str]) -> bool:
    if entity.dxf.get("invisible", 0):
        return False
    layer = entity.dxf.get("layer", "0")
    return layer.casefold() not in frozen_layers


def flatten_entities(
    entities: Iterable,
    frozen_layers: Optional[Set[str]] = None,
    max_depth: int = MAX_INSERT_DEPTH,
) -> List:
    """Visible, insert-free entity list in drawing order.

    Args:
        entities: Modelspace (or any entity iterable)
        frozen_layers: Case-folded frozen layer names
        max_depth: Maximum block nesting depth

    Raises:
        CyclicGeometry: If a block inserts itself or nesting exceeds max_depth
    """
    frozen = frozen_layers or set()
    result: List = []
    for entity in entities:
        _flatten(entity, frozen, (), max_depth, result)
    return result


def _flatten(entity, frozen: Set[str], path: Tuple[str, ...], max_depth: int, out: List) -> None:
    if entity is None or not is_visible(entity, frozen):
        return

    if entity.dxftype() != "INSERT":
        out.append(entity)
        return

    name = entity.dxf.name
    if name.casefold() in (p.casefold() for p in path):
        raise CyclicGeometry(name, path)
    if len(path) >= max_depth:
        raise CyclicGeometry(name, path)

    nested_path = path + (name,)
    # MINSERT grids: virtual_entities() only yields the first cell
    inserts = entity.multi_insert() if entity.mcount > 1 else (entity,)
    for insert in inserts:
        for child in insert.virtual_entities():
            _flatten(child, frozen, nested_path, max_depth, out)


def bulge_arc_points(start, end, bulge: float, segments: int = CURVE_PRECISION) -> np.ndarray:
    """Points of a bulged polyline segment, ``start`` included, ``end`` excluded.

    A positive bulge turns counter-clockwise; |bulge| = tan(sweep / 4).
    """
    p0 = np.asarray(start, dtype=float)
    p1 = np.asarray(end, dtype=float)
    chord = p1 - p0
    if abs(bulge) < 1e-12 or not np.any(chord):
        return p0.reshape(1, 2)

    sweep = 4.0 * math.atan(bulge)
    normal = np.array([-chord[1], chord[0]])
    center = (p0 + p1) / 2.0 + normal * ((1.0 - bulge * bulge) / (4.0 * bulge))
    radius = float(np.hypot(*(p0 - center)))
    start_angle = math.atan2(p0[1] - center[1], p0[0] - center[0])

    angles = start_angle + sweep * np.arange(segments) / segments
    return np.column_stack((center[0] + radius * np.cos(angles), center[1] + radius * np.sin(angles)))


def tessellate_bulged(vertices: List[Tuple[float, float, float]], closed: bool,
                      segments: int = CURVE_PRECISION) -> np.ndarray:
    """Vertices ``(x, y, bulge)`` of a polyline to a point array.

    The closing segment of a closed polyline is tessellated too, but the
    first vertex is not repeated at the end.
    """
    count = len(vertices)
    if count == 0:
        return np.empty((0, 2))

    chunks = []
    last = count if closed else count - 1
    for i in range(last):
        x0, y0, bulge = vertices[i]
        x1, y1, _ = vertices[(i + 1) % count]
        chunks.append(bulge_arc_points((x0, y0), (x1, y1), bulge, segments))
    if not closed:
        x, y, _ = vertices[-1]
        chunks.append(np.array([[x, y]], dtype=float))
    return np.vstack(chunks)


def _ocs_to_wcs(entity, points: np.ndarray) -> np.ndarray:
    """Map OCS points of a 2D polyline to WCS XY (mirrored or tilted outlines)."""
    extrusion = Vec3(entity.dxf.get("extrusion", Z_AXIS))
    if extrusion.isclose(Z_AXIS) or len(points) == 0:
        return points

    elevation = entity.dxf.get("elevation", 0.0)
    if not isinstance(elevation, (int, float)):
        elevation = Vec3(elevation).z
    ocs = entity.ocs()
    return _xy(ocs.points_to_wcs(Vec3(x, y, elevation) for x, y in points))


def polyline_points(entity, segments: int = CURVE_PRECISION) -> Optional[Tuple[np.ndarray, bool]]:
    """Tessellated points and closed flag of a 2D/3D polyline entity.

    Returns:
        ``(points, is_closed)`` or None for non-polyline entities and
        polyface / mesh POLYLINEs
    """
    kind = entity.dxftype()
    if kind == "LWPOLYLINE":
        vertices = [(float(x), float(y), float(b)) for x, y, b in entity.get_points("xyb")]
        points = tessellate_bulged(vertices, bool(entity.closed), segments)
        return _ocs_to_wcs(entity, points), bool(entity.closed)

    if kind == "POLYLINE":
        if entity.is_2d_polyline:
            vertices = [
                (v.dxf.location.x, v.dxf.location.y, float(v.dxf.get("bulge", 0.0)))
                for v in entity.vertices
            ]
            points = tessellate_bulged(vertices, entity.is_closed, segments)
            return _ocs_to_wcs(entity, points), entity.is_closed
        if entity.is_3d_polyline:
            return _xy(v.dxf.location for v in entity.vertices), entity.is_closed

    return None


def _line(entity) -> List[RenderPrimitive]:
    return [RenderPrimitive(_xy([entity.dxf.start, entity.dxf.end]), False, PrimitiveKind.LINE)]


def _polyline(entity) -> List[RenderPrimitive]:
    result = polyline_points(entity)
    if result is None:
        return []
    points, closed = result
    return [RenderPrimitive(points, closed, PrimitiveKind.POLYLINE)]


def _arc(entity) -> List[RenderPrimitive]:
    points = _xy(entity.vertices(entity.angles(CURVE_PRECISION + 1)))
    return [RenderPrimitive(points, False, PrimitiveKind.ARC)]


def _circle(entity) -> List[RenderPrimitive]:
    angles = np.linspace(0.0, 360.0, CURVE_PRECISION, endpoint=False)
    return [RenderPrimitive(_xy(entity.vertices(angles)), True, PrimitiveKind.CIRCLE)]


def _ellipse(entity) -> List[RenderPrimitive]:
    points = _xy(entity.vertices(entity.params(CURVE_PRECISION + 1)))
    return [RenderPrimitive(points, True, PrimitiveKind.ELLIPSE)]


def _spline(entity) -> List[RenderPrimitive]:
    points = _xy(entity.construction_tool().approximate(segments=CURVE_PRECISION))
    return [RenderPrimitive(points, bool(entity.closed), PrimitiveKind.POLYLINE)]


def _face(entity) -> List[RenderPrimitive]:
    return [RenderPrimitive(_xy(entity.wcs_vertices()), True, PrimitiveKind.POLYLINE)]


def _no_primitive(entity) -> List[RenderPrimitive]:
    return []


CONVERTERS: Dict[str, Callable[[object], List[RenderPrimitive]]] = {
    "LINE": _line,
    "LWPOLYLINE": _polyline,
    "POLYLINE": _polyline,
    "ARC": _arc,
    "CIRCLE": _circle,
    "ELLIPSE": _ellipse,
    "SPLINE": _spline,
    "SOLID": _face,
    "TRACE": _face,
    "3DFACE": _face,
}


def convert_entity(entity) -> List[RenderPrimitive]:
    """Primitives of one flattened entity; empty for unsupported types."""
    converter = CONVERTERS.get(entity.dxftype(), _no_primitive)
    return [p for p in converter(entity) if not p.is_empty]


def convert_entities(entities: Iterable) -> List[RenderPrimitive]:
    primitives: List[RenderPrimitive] = []
    skipped: Dict[str, int] = {}
    for entity in entities:
        converted = convert_entity(entity)
        if not converted:
            skipped[entity.dxftype()] = skipped.get(entity.dxftype(), 0) + 1
        primitives.extend(converted)
    if skipped:
        logger.debug("Entidades sem primitiva: %s", skipped)
    return primitives
