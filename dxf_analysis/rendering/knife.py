"""
Knife-bounds detection: which part of the drawing is the actual die.

Closed polylines of reasonable size and aspect are knife candidates. An
outer frame that dwarfs or encloses every other candidate is discarded and
the remaining candidates are united into the framing box.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from dxf_analysis.rendering.bounds import Bounds
from dxf_analysis.rendering.primitives import polyline_points

logger = logging.getLogger(__name__)

MIN_CANDIDATE_AREA = 1000.0
MIN_ASPECT_RATIO = 0.15
MAX_ASPECT_RATIO = 6.0
DOMINANT_AREA_FACTOR = 3.0
CONTAINMENT_TOLERANCE = 0.01


@dataclass(frozen=True)
class KnifeCandidate:
    area: float
    ratio: float
    bounds: Bounds


@dataclass(frozen=True)
class KnifeDetectionResult:
    """Outcome of knife detection.

    Attributes:
        bounds: Union of the retained candidates
        total_candidates: Number of candidates found (frame included)
        combined_multiple: More than one candidate was united
        skipped_dominant_frame: The largest candidate was discarded as a frame
    """
    bounds: Bounds
    total_candidates: int
    combined_multiple: bool
    skipped_dominant_frame: bool


def knife_candidate(entity) -> Optional[KnifeCandidate]:
    """Build a candidate from a closed 2D/3D polyline, or None."""
    result = polyline_points(entity)
    if result is None:
        return None
    points, closed = result
    if not closed or len(points) < 3:
        return None

    bounds = Bounds.from_points(points)
    width, height = bounds.width, bounds.height
    if width <= 0 or height <= 0:
        return None

    area = width * height
    if area <= MIN_CANDIDATE_AREA:
        return None

    ratio = width / height
    if not (MIN_ASPECT_RATIO < ratio < MAX_ASPECT_RATIO):
        return None

    return KnifeCandidate(area, ratio, bounds)


def should_skip_dominant_frame(ordered: Sequence[KnifeCandidate]) -> bool:
    """Whether the largest candidate (first, by area) is an outer frame."""
    if len(ordered) <= 1:
        return False

    largest, second = ordered[0], ordered[1]
    if largest.area > second.area * DOMINANT_AREA_FACTOR:
        return True

    tolerance = largest.bounds.max_extent * CONTAINMENT_TOLERANCE
    return all(largest.bounds.contains(c.bounds, tolerance) for c in ordered[1:])


def detect_candidates(candidates: List[KnifeCandidate]) -> Optional[KnifeDetectionResult]:
    if not candidates:
        return None

    # sorted() is stable: equal areas keep drawing order
    ordered = sorted(candidates, key=lambda c: c.area, reverse=True)
    skip = should_skip_dominant_frame(ordered)

    retained = ordered[1:] if skip else list(ordered)
    if not retained:
        retained = [ordered[1 if skip else 0]]

    return KnifeDetectionResult(
        bounds=Bounds.union([c.bounds for c in retained]),
        total_candidates=len(ordered),
        combined_multiple=len(retained) > 1,
        skipped_dominant_frame=skip,
    )


def detect_knife_bounds(entities: Iterable) -> Optional[KnifeDetectionResult]:
    """Detect the knife region among flattened entities.

    Returns:
        KnifeDetectionResult, or None when no entity qualifies
    """
    candidates = [c for c in (knife_candidate(e) for e in entities) if c is not None]
    result = detect_candidates(candidates)
    if result is not None:
        logger.debug("Facas candidatas=%d combinadas=%s moldura descartada=%s",
                     result.total_candidates, result.combined_multiple, result.skipped_dominant_frame)
    return result
