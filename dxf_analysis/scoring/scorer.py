"""
Deterministic 0-5 manufacturing complexity score for DXF cutting dies.

The score is the sum of independent rule-family contributions evaluated in
a fixed order:

    cut length -> curves -> min radius / corte seco -> serrilha ->
    closed loops -> curve density -> materials -> three-point crease ->
    dangling ends -> intersections

The running total may leave [0, 5] between families; only the final sum is
clamped and rounded to two decimals.

Threshold lists are cumulative brackets: they are sorted by threshold and
EVERY bracket the metric reaches adds its weight and its own explanation
line. A metric of 120 against {50: +0.5, 100: +0.5} contributes +1.0.

Usage:
    from dxf_analysis.scoring import ComplexityScorer

    result = ComplexityScorer(thresholds).compute(metrics)
    print(result.score, result.explanations)
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from dxf_analysis.config import (
    ClosedLoopScoringOptions,
    CurveDensityScoringOptions,
    MaterialScoringOptions,
    MinRadiusScoringOptions,
    ScoringThresholds,
    SerrilhaScoringOptions,
    ThreePtScoringOptions,
    ThresholdWeight,
)
from dxf_analysis.models import DXFLayerStats, DXFMetrics, DXFSerrilhaSummary
from dxf_analysis.scoring.formatting import (
    format_decimal as fmt,
    format_number,
    format_percent,
    format_scientific,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-6
# Closed-loop densities are loops per mm², far below EPSILON
DENSITY_EPSILON = 1e-9

MIN_SCORE = 0.0
MAX_SCORE = 5.0

COLA_HINT_DEFAULTS = ("COLA", "SER_COL", "SER-COL", "SER COL")
MANUAL_BLADE_MARKERS = ("MANUAL", "MANUA")
MAX_LISTED_SEMANTIC_TYPES = 6
MAX_LISTED_LOOP_TYPES = 4


@dataclass
class ComplexityScoreResult:
    """Score in [0, 5] plus the explanation of every contribution, in order."""
    score: float
    explanations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'score': self.score, 'explanations': list(self.explanations)}


def meets_threshold(value: float, threshold: float, tolerance: float = EPSILON) -> bool:
    return value >= threshold - tolerance


def ordered_brackets(brackets: Optional[Iterable[Optional[ThresholdWeight]]]) -> List[ThresholdWeight]:
    """Brackets sorted ascending, without ``None`` or near-zero weights."""
    if not brackets:
        return []
    kept = [b for b in brackets if b is not None and abs(b.weight) >= EPSILON]
    return sorted(kept, key=lambda b: b.threshold)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _contains_any(value: Optional[str], hints: Sequence[str]) -> bool:
    if _is_blank(value):
        return False
    folded = value.casefold()
    return any(not _is_blank(h) and h.casefold() in folded for h in hints)


def _distinct_casefold(values: Iterable[str]) -> List[str]:
    """First spelling of every case-insensitively distinct value."""
    seen = set()
    result = []
    for value in values:
        key = value.casefold()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


def _has_layer_type(layer_stats: Iterable[DXFLayerStats], expected: str) -> bool:
    expected = expected.casefold()
    return any((s.type or "").casefold() == expected for s in layer_stats)


class ComplexityScorer:
    """Applies weighted heuristics to turn DXF metrics into a 0-5 score.

    The scorer never mutates the metrics or the thresholds, holds no state
    between calls except the one-time configuration log, and is safe to
    share across threads.

    Args:
        thresholds: Default weights used when ``compute`` gets none
    """

    def __init__(self, thresholds: Optional[ScoringThresholds] = None):
        self.thresholds = thresholds or ScoringThresholds()
        self._config_logged = False
        self._config_lock = threading.Lock()

    def compute(
        self,
        metrics: DXFMetrics,
        thresholds: Optional[ScoringThresholds] = None,
    ) -> ComplexityScoreResult:
        """Compute the score and the ordered explanation lines.

        Args:
            metrics: Metrics extracted from the drawing
            thresholds: Weights overriding the instance defaults

        Returns:
            ComplexityScoreResult with the clamped, rounded score
        """
        thresholds = thresholds or self.thresholds
        self._log_config_once(thresholds)

        explanations: List[str] = []
        score = 0.0
        score += self._cut_length(metrics, thresholds, explanations)
        score += self._curve_count(metrics, thresholds, explanations)
        score += self._min_radius(metrics, thresholds, explanations)
        score += self._serrilha(metrics, thresholds.serrilha or SerrilhaScoringOptions(), explanations)
        score += self._closed_loops(metrics, thresholds.closed_loops or ClosedLoopScoringOptions(), explanations)
        score += self._curve_density(metrics, thresholds.curve_density or CurveDensityScoringOptions(), explanations)
        score += self._materials(metrics, thresholds.materials or MaterialScoringOptions(), explanations)
        score += self._three_pt(metrics, thresholds.three_pt or ThreePtScoringOptions(), explanations)
        score += self._dangling_ends(metrics, thresholds, explanations)
        score += self._intersections(metrics, thresholds, explanations)

        clamped = min(max(score, MIN_SCORE), MAX_SCORE)
        logger.debug("Score bruto=%.4f final=%.2f (%d explicações)", score, clamped, len(explanations))
        return ComplexityScoreResult(round(clamped, 2), explanations)

    @staticmethod
    def _cumulative(
        value: float,
        brackets,
        explanations: List[str],
        describe: Callable[[ThresholdWeight], str],
        tolerance: float = EPSILON,
        family: str = "",
    ) -> float:
        """Add every bracket ``value`` reaches, one explanation per bracket."""
        contribution = 0.0
        for bracket in ordered_brackets(brackets):
            if meets_threshold(value, bracket.threshold, tolerance):
                contribution += bracket.weight
                explanations.append(f"{describe(bracket)}: +{fmt(bracket.weight)}")
                logger.debug("[%s] faixa atingida: %s >= %s peso=%s",
                             family, value, bracket.threshold, bracket.weight)
        return contribution

    def _cut_length(self, metrics: DXFMetrics, t: ScoringThresholds, explanations: List[str]) -> float:
        if t.total_cut_length_weight <= 0:
            return 0.0
        if not meets_threshold(metrics.total_cut_length, t.total_cut_length):
            return 0.0

        explanations.append(
            f"Comprimento de corte alto ({fmt(metrics.total_cut_length)} mm >= "
            f"{fmt(t.total_cut_length)} mm): +{fmt(t.total_cut_length_weight)}"
        )
        return t.total_cut_length_weight

    def _curve_count(self, metrics: DXFMetrics, t: ScoringThresholds, explanations: List[str]) -> float:
        curves = metrics.num_curves
        contribution = 0.0

        if t.num_curves_weight > 0 and meets_threshold(curves, t.num_curves):
            contribution += t.num_curves_weight
            explanations.append(
                f"Densidade de curvas elevada ({curves} >= {t.num_curves}): +{fmt(t.num_curves_weight)}"
            )
        else:
            logger.debug("[CURVES] Sem peso base: curves=%s threshold=%s weight=%s",
                         curves, t.num_curves, t.num_curves_weight)

        contribution += self._cumulative(
            curves, t.num_curves_extra_thresholds, explanations,
            lambda b: f"Curvas abundantes ({curves} >= {format_number(b.threshold, prefer_integer=True)})",
            family="CURVES",
        )

        if (t.num_curves_step > 0 and t.num_curves_step_weight > 0
                and t.num_curves_step_max_contribution > 0 and curves > t.num_curves):
            extra = max(0.0, curves - t.num_curves)
            steps = extra / max(t.num_curves_step, 1)
            bonus = min(steps * t.num_curves_step_weight, t.num_curves_step_max_contribution)
            logger.debug("[CURVES] Step contribution: curves=%s extra=%s steps=%.2f weight=%.2f",
                         curves, fmt(extra), steps, bonus)
            if bonus > EPSILON:
                contribution += bonus
                explanations.append(f"Excesso de curvas ({curves} > {t.num_curves}) adiciona +{fmt(bonus)}")

        return contribution

    def _min_radius(self, metrics: DXFMetrics, t: ScoringThresholds, explanations: List[str]) -> float:
        options = t.min_radius or MinRadiusScoringOptions()
        serrilha = metrics.serrilha
        corte_seco = serrilha is not None and serrilha.is_corte_seco
        pairs = len(serrilha.corte_seco_pairs or []) if serrilha is not None else 0
        radius = metrics.min_arc_radius
        contribution = 0.0

        if 0 < radius <= options.danger_threshold + EPSILON:
            if corte_seco:
                explanations.append(
                    f"Raio mínimo delicado ({fmt(radius)} mm) com corte seco - ajuste tratado separadamente"
                )
            elif options.penalty_weight > 0:
                contribution += options.penalty_weight
                explanations.append(
                    f"Raio mínimo delicado ({fmt(radius)} mm <= {fmt(options.danger_threshold)} mm): "
                    f"+{fmt(options.penalty_weight)}"
                )

        if not corte_seco:
            return contribution

        adjustment = options.corte_seco_adjustment
        if abs(adjustment) > EPSILON:
            contribution += adjustment
            verb = "bônus" if adjustment > 0 else "redução"
            suffix = f" ({pairs} pares)" if pairs > 0 else ""
            explanations.append(f"Corte seco detectado{suffix}: {verb} de {fmt(abs(adjustment))} ponto(s)")

        contribution += self._cumulative(
            pairs, options.corte_seco_pair_thresholds, explanations,
            lambda b: f"Corte seco intenso ({pairs} pares >= {format_number(b.threshold, prefer_integer=True)})",
            family="CORTE-SECO",
        )
        return contribution

    def _serrilha(self, metrics: DXFMetrics, options: SerrilhaScoringOptions, explanations: List[str]) -> float:
        summary = metrics.serrilha
        if summary is None or summary.total_count <= 0:
            return self._serrilha_from_layers(metrics.layer_stats, options, explanations)

        total = summary.total_count
        contribution = 0.0

        if options.presence_weight > 0:
            contribution += options.presence_weight
            explanations.append(f"Serrilha detectada ({total} símbolo(s)): +{fmt(options.presence_weight)}")

        contribution += self._cumulative(
            total, options.total_count_thresholds, explanations,
            lambda b: f"Serrilha volumosa ({total} >= {format_number(b.threshold, prefer_integer=True)})",
            family="SERRILHA",
        )

        classification = summary.classification
        if classification is not None:
            contribution += self._serrilha_categories(classification, options, explanations)

        if summary.distinct_semantic_types >= options.multi_type_threshold and options.multi_type_weight > 0:
            types = _distinct_casefold(
                e.semantic_type for e in summary.entries if not _is_blank(e.semantic_type)
            )[:MAX_LISTED_SEMANTIC_TYPES]
            contribution += options.multi_type_weight
            explanations.append(
                f"Múltiplos tipos de serrilha ({', '.join(types)}): +{fmt(options.multi_type_weight)}"
            )

        if summary.distinct_blade_codes >= options.distinct_blade_threshold and options.distinct_blade_weight > 0:
            contribution += options.distinct_blade_weight
            explanations.append(
                f"Várias lâminas ({summary.distinct_blade_codes} códigos): +{fmt(options.distinct_blade_weight)}"
            )

        if options.manual_blade_weight > 0:
            manual = _distinct_casefold(self._manual_blades(summary, options))
            if manual:
                contribution += options.manual_blade_weight
                explanations.append(
                    f"Serrilha manual identificada (códigos: {', '.join(manual)}): "
                    f"+{fmt(options.manual_blade_weight)}"
                )

        contribution += self._cola(summary, options, explanations)

        if (summary.is_corte_seco and summary.distinct_semantic_types >= options.multi_type_threshold
                and options.corte_seco_multi_type_weight > 0):
            contribution += options.corte_seco_multi_type_weight
            pairs = len(summary.corte_seco_pairs or [])
            label = f"{pairs} pares" if pairs > 0 else "sobreposição"
            explanations.append(
                f"Corte seco entre serrilhas ({label}): +{fmt(options.corte_seco_multi_type_weight)}"
            )

        contribution += self._small_piece(summary, options, explanations)
        return contribution

    def _serrilha_categories(self, classification, options: SerrilhaScoringOptions,
                             explanations: List[str]) -> float:
        contribution = 0.0
        mista = classification.mista
        travada = classification.travada

        if mista > 0 and options.mista_weight > 0:
            contribution += options.mista_weight
            explanations.append(f"Serrilha mista ({mista} ocorrência(s)): +{fmt(options.mista_weight)}")

        contribution += self._cumulative(
            mista, options.mista_count_thresholds, explanations,
            lambda b: f"Serrilha mista intensa ({mista} >= {format_number(b.threshold, prefer_integer=True)})",
            family="SERRILHA",
        )

        if travada > 0 and options.travada_weight > 0:
            contribution += options.travada_weight
            explanations.append(f"Serrilha travada ({travada} ocorrência(s)): +{fmt(options.travada_weight)}")

        contribution += self._cumulative(
            travada, options.travada_count_thresholds, explanations,
            lambda b: f"Serrilha travada intensa ({travada} >= {format_number(b.threshold, prefer_integer=True)})",
            family="SERRILHA",
        )

        if classification.zipper > 0 and options.zipper_weight > 0:
            contribution += options.zipper_weight
            explanations.append(
                f"Serrilha zipper ({classification.zipper} ocorrência(s)): +{fmt(options.zipper_weight)}"
            )

        if classification.distinct_categories >= options.diversity_threshold and options.diversity_weight > 0:
            contribution += options.diversity_weight
            explanations.append(
                f"Diversidade de serrilhas ({classification.distinct_categories} categorias): "
                f"+{fmt(options.diversity_weight)}"
            )

        return contribution

    @staticmethod
    def _manual_blades(summary: DXFSerrilhaSummary, options: SerrilhaScoringOptions) -> Iterator[str]:
        configured = [c.casefold() for c in (options.manual_blade_codes or []) if c is not None]
        for entry in summary.entries:
            code = entry.blade_code
            if _is_blank(code):
                continue
            if configured:
                if code.casefold() in configured:
                    yield code
            elif _contains_any(code, MANUAL_BLADE_MARKERS):
                yield code

    def _cola(self, summary: DXFSerrilhaSummary, options: SerrilhaScoringOptions,
              explanations: List[str]) -> float:
        hints = [h for h in (options.cola_semantic_hints or COLA_HINT_DEFAULTS) if not _is_blank(h)]
        count = 0
        for entry in summary.entries:
            if _contains_any(entry.semantic_type, hints) or _contains_any(entry.blade_code, hints):
                count += entry.count if entry.count > 0 else 1

        contribution = 0.0
        if count > 0 and abs(options.cola_weight) > EPSILON:
            contribution += options.cola_weight
            explanations.append(f"Serrilha cola ({count} ocorrência(s)): +{fmt(options.cola_weight)}")

        contribution += self._cumulative(
            count, options.cola_count_thresholds, explanations,
            lambda b: f"Serrilha cola intensa ({count} >= {format_number(b.threshold, prefer_integer=True)})",
            family="COLA",
        )
        return contribution

    @staticmethod
    def _small_piece(summary: DXFSerrilhaSummary, options: SerrilhaScoringOptions,
                     explanations: List[str]) -> float:
        adjustment = options.small_piece_adjustment
        if adjustment == 0 or options.small_piece_max_count <= 0 or options.small_piece_max_total_length <= 0:
            return 0.0

        length = summary.total_estimated_length
        if length is None:
            length = sum(
                e.estimated_length for e in summary.entries
                if e.estimated_length is not None and e.estimated_length > 0
            )

        total = summary.total_count
        if not (0 < total <= options.small_piece_max_count):
            return 0.0
        if not (0 < length <= options.small_piece_max_total_length + EPSILON):
            return 0.0

        verb = "bônus" if adjustment > 0 else "redução"
        explanations.append(f"Serrilha curta ({total} peça(s), {fmt(length)} mm): {verb} de {fmt(abs(adjustment))}")
        return adjustment

    @staticmethod
    def _serrilha_from_layers(layer_stats: List[DXFLayerStats], options: SerrilhaScoringOptions,
                              explanations: List[str]) -> float:
        contribution = 0.0
        if _has_layer_type(layer_stats, "serrilha") and options.presence_weight > 0:
            contribution += options.presence_weight
            explanations.append(f"Serrilha identificada via layer: +{fmt(options.presence_weight)}")

        mista_layer = _has_layer_type(layer_stats, "serrilha_mista") or _has_layer_type(layer_stats, "serrilhamista")
        if mista_layer and options.mista_weight > 0:
            contribution += options.mista_weight
            explanations.append(f"Serrilha mista identificada via layer: +{fmt(options.mista_weight)}")
        return contribution

    def _closed_loops(self, metrics: DXFMetrics, options: ClosedLoopScoringOptions,
                      explanations: List[str]) -> float:
        quality = metrics.quality
        if quality is None or quality.closed_loops <= 0:
            return 0.0

        loops = quality.closed_loops
        contribution = self._cumulative(
            loops, options.count_thresholds, explanations,
            lambda b: f"Bocas abundantes ({loops} loops >= {format_number(b.threshold, prefer_integer=True)})",
            family="BOCAS",
        )

        density = loops / max(metrics.bbox_area, EPSILON)
        contribution += self._cumulative(
            density, options.density_thresholds, explanations,
            lambda b: f"Densidade de bocas {format_scientific(density)} >= {format_scientific(b.threshold)}",
            tolerance=DENSITY_EPSILON,
            family="BOCAS",
        )

        by_type = quality.closed_loops_by_type or {}
        if len(by_type) >= options.variety_threshold and options.variety_weight > 0:
            contribution += options.variety_weight
            # sorted() is stable: equal counts keep their insertion order
            top = sorted(by_type.items(), key=lambda kv: kv[1], reverse=True)[:MAX_LISTED_LOOP_TYPES]
            listed = ", ".join(f"{name}:{count}" for name, count in top)
            explanations.append(f"Variedade de bocas ({len(by_type)} tipos - {listed}): +{fmt(options.variety_weight)}")

        return contribution

    def _curve_density(self, metrics: DXFMetrics, options: CurveDensityScoringOptions,
                       explanations: List[str]) -> float:
        quality = metrics.quality
        if quality is None:
            return 0.0

        contribution = 0.0
        density = quality.delicate_arc_density
        if density > 0:
            contribution += self._cumulative(
                density, options.density_thresholds, explanations,
                lambda b: f"Densidade de curvas delicadas {format_percent(density)} >= {format_percent(b.threshold)}",
                family="CURVE-DENSITY",
            )

        count = quality.delicate_arc_count
        if count > 0:
            contribution += self._cumulative(
                count, options.delicate_arc_count_thresholds, explanations,
                lambda b: f"Muitas curvas delicadas ({count} >= {format_number(b.threshold, prefer_integer=True)})",
                family="CURVE-DENSITY",
            )
        return contribution

    @staticmethod
    def _material_weight(material: str, options: MaterialScoringOptions) -> float:
        folded = material.casefold()
        for name, weight in (options.overrides or {}).items():
            if name.casefold() == folded:
                return weight
        for keyword, weight in (options.keyword_overrides or {}).items():
            if not _is_blank(keyword) and keyword.casefold() in folded:
                return weight
        return options.default_weight

    def _materials(self, metrics: DXFMetrics, options: MaterialScoringOptions,
                   explanations: List[str]) -> float:
        materials = metrics.quality.special_materials if metrics.quality is not None else None
        if not materials:
            return 0.0

        contribution = 0.0
        for material in materials:
            if _is_blank(material):
                continue
            label = material.strip()
            weight = self._material_weight(label, options)
            if abs(weight) < EPSILON:
                continue
            contribution += weight
            explanations.append(f"Material especial ({label}) demanda cuidado: +{fmt(weight)}")
        return contribution

    def _three_pt(self, metrics: DXFMetrics, options: ThreePtScoringOptions,
                  explanations: List[str]) -> float:
        length = metrics.total_three_pt_length
        segments = metrics.three_pt_segment_count
        if length <= 0 and segments <= 0:
            return 0.0

        ratio = metrics.three_pt_cut_ratio
        contribution = self._cumulative(
            length, options.length_thresholds, explanations,
            lambda b: f"Vinco 3pt extenso ({fmt(length)} mm >= {fmt(b.threshold)} mm)",
            family="3PT",
        )
        contribution += self._cumulative(
            segments, options.segment_thresholds, explanations,
            lambda b: f"Muitos segmentos 3pt ({segments} >= {format_number(b.threshold, prefer_integer=True)})",
            family="3PT",
        )
        contribution += self._cumulative(
            ratio, options.ratio_thresholds, explanations,
            lambda b: f"Vinco 3pt dominante ({format_percent(ratio)} >= {format_percent(b.threshold)})",
            family="3PT",
        )

        if metrics.requires_manual_three_pt_handling and options.manual_handling_weight > 0:
            contribution += options.manual_handling_weight
            explanations.append(f"Vinco 3pt exige dobra manual: +{fmt(options.manual_handling_weight)}")
        return contribution

    def _dangling_ends(self, metrics: DXFMetrics, t: ScoringThresholds, explanations: List[str]) -> float:
        if metrics.quality is None:
            return 0.0

        dangling = metrics.quality.dangling_ends
        return self._cumulative(
            dangling, t.dangling_end_thresholds, explanations,
            lambda b: f"Muitos cortes isolados ({dangling} >= {format_number(b.threshold, prefer_integer=True)})",
            family="DANGLING",
        )

    def _intersections(self, metrics: DXFMetrics, t: ScoringThresholds, explanations: List[str]) -> float:
        count = metrics.num_intersections
        contribution = 0.0

        if t.bonus_intersections_weight > 0 and meets_threshold(count, t.bonus_intersections):
            contribution += t.bonus_intersections_weight
            explanations.append(
                f"Muitas interseções ({count} >= {t.bonus_intersections}): +{fmt(t.bonus_intersections_weight)}"
            )

        contribution += self._cumulative(
            count, t.intersection_thresholds, explanations,
            lambda b: f"Interseções complexas ({count} >= {format_number(b.threshold, prefer_integer=True)})",
            family="INTERSECTIONS",
        )
        return contribution

    def _log_config_once(self, t: ScoringThresholds) -> None:
        if self._config_logged or not logger.isEnabledFor(logging.INFO):
            return
        with self._config_lock:
            if self._config_logged:
                return
            self._config_logged = True

        min_radius = t.min_radius or MinRadiusScoringOptions()
        serrilha = t.serrilha or SerrilhaScoringOptions()
        logger.info(
            "[SCORER] Pesos carregados | NumCurvesWeight=%s ExtraThresholds=%d Step=(%s,%s,%s) "
            "DanglingThresholds=%d MinRadiusDanger=%s SerrilhaPresence=%s ColaWeight=%s",
            t.num_curves_weight,
            len(t.num_curves_extra_thresholds or []),
            t.num_curves_step,
            t.num_curves_step_weight,
            t.num_curves_step_max_contribution,
            len(t.dangling_end_thresholds or []),
            min_radius.danger_threshold,
            serrilha.presence_weight,
            serrilha.cola_weight,
        )


def compute_complexity(
    metrics: DXFMetrics,
    thresholds: Optional[ScoringThresholds] = None,
) -> ComplexityScoreResult:
    """Score ``metrics`` with a throwaway scorer (convenience wrapper)."""
    return ComplexityScorer(thresholds).compute(metrics)
