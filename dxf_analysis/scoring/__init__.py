"""
Pontuação de complexidade (0-5) a partir das métricas extraídas do DXF.
"""

from dxf_analysis.scoring.scorer import (
    ComplexityScorer,
    ComplexityScoreResult,
    compute_complexity,
    ordered_brackets,
)

__all__ = [
    "ComplexityScorer",
    "ComplexityScoreResult",
    "compute_complexity",
    "ordered_brackets",
]
