"""
JSON-based configuration for dxf_analysis.

Holds the scoring weights and thresholds used by the complexity scorer,
plus the few render/batch knobs the CLI needs.

Configuration hierarchy (later overrides earlier):
1. Built-in defaults (dataclass defaults below)
2. User config (~/.dxfanalysis.json)
3. Project config (./.dxfanalysis.json or next to the DXF file)
4. CLI arguments

Keys may be written in snake_case, camelCase or PascalCase, so both a bare
scoring section and an appsettings-style document are accepted:

{
    "DXFAnalysis": {
        "RenderTimeout": "00:00:15",
        "Scoring": {
            "TotalCutLength": 3000,
            "TotalCutLengthWeight": 0.5,
            "NumCurvesExtraThresholds": [{"Threshold": 120, "Weight": 0.5}],
            "Serrilha": {"ColaWeight": 0.3},
            "Materials": {"KeywordOverrides": {"adesivo": 0.8}}
        }
    }
}
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields, asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILENAME = ".dxfanalysis.json"

APPSETTINGS_SECTION = "dxf_analysis"

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def normalize_key(key: str) -> str:
    """Convert camelCase / PascalCase / snake_case keys to snake_case."""
    return _CAMEL_BOUNDARY.sub('_', key.strip()).replace('-', '_').lower()


def _thresholds():
    """Field holding a list of ThresholdWeight brackets."""
    return field(default_factory=list, metadata={'thresholds': True})


@dataclass
class ThresholdWeight:
    """Weight contributed when a metric meets ``threshold``."""
    threshold: float = 0.0
    weight: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThresholdWeight':
        values = {normalize_key(k): v for k, v in data.items()}
        return cls(
            threshold=float(values.get('threshold') or 0.0),
            weight=float(values.get('weight') or 0.0),
        )


@dataclass
class MinRadiusScoringOptions:
    """Penalties applied to minimum radius findings."""
    danger_threshold: float = 0.3
    neutral_threshold: float = 1.0
    penalty_weight: float = 1.0
    corte_seco_adjustment: float = -0.5
    corte_seco_pair_thresholds: List[Optional[ThresholdWeight]] = _thresholds()


@dataclass
class SerrilhaScoringOptions:
    """Weights tied to serrilha symbol detection."""
    presence_weight: float = 1.0
    mista_weight: float = 1.0
    multi_type_weight: float = 0.5
    multi_type_threshold: int = 2
    manual_blade_weight: float = 0.5
    manual_blade_codes: List[str] = field(default_factory=list)
    travada_weight: float = 0.6
    zipper_weight: float = 0.6
    total_count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    mista_count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    travada_count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    cola_semantic_hints: List[str] = field(default_factory=list)
    cola_weight: float = 0.0
    cola_count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    diversity_weight: float = 0.4
    diversity_threshold: int = 2
    distinct_blade_weight: float = 0.25
    distinct_blade_threshold: int = 2
    corte_seco_multi_type_weight: float = 0.5
    small_piece_max_total_length: float = 0.0
    small_piece_max_count: int = 0
    small_piece_adjustment: float = 0.0


@dataclass
class ClosedLoopScoringOptions:
    """Weights for closed loops (bocas)."""
    count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    variety_threshold: int = 2
    variety_weight: float = 0.4
    density_thresholds: List[Optional[ThresholdWeight]] = _thresholds()


@dataclass
class ThreePtScoringOptions:
    """Weights for three-point creases (vinco 3pt)."""
    length_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    segment_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    ratio_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    manual_handling_weight: float = 0.4


@dataclass
class CurveDensityScoringOptions:
    """Weights for delicate curve density."""
    density_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    delicate_arc_count_thresholds: List[Optional[ThresholdWeight]] = _thresholds()


@dataclass
class MaterialScoringOptions:
    """Weights for special materials (adhesive, film, ...).

    ``overrides`` match the whole label, ``keyword_overrides`` match a
    substring; both case-insensitively. Keyword order is significant.
    """
    default_weight: float = 0.5
    overrides: Dict[str, float] = field(default_factory=dict)
    keyword_overrides: Dict[str, float] = field(default_factory=dict)


@dataclass
class ScoringThresholds:
    """Complete set of scoring weights and thresholds."""
    total_cut_length: float = 2000.0
    total_cut_length_weight: float = 1.0
    num_curves: int = 60
    num_curves_weight: float = 1.0
    num_curves_extra_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    num_curves_step: int = 0
    num_curves_step_weight: float = 0.0
    num_curves_step_max_contribution: float = 0.0
    min_arc_radius_max: float = 1.0
    bonus_intersections: int = 30
    bonus_intersections_weight: float = 1.0
    intersection_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    dangling_end_thresholds: List[Optional[ThresholdWeight]] = _thresholds()
    min_radius: MinRadiusScoringOptions = field(default_factory=MinRadiusScoringOptions)
    serrilha: SerrilhaScoringOptions = field(default_factory=SerrilhaScoringOptions)
    closed_loops: ClosedLoopScoringOptions = field(default_factory=ClosedLoopScoringOptions)
    three_pt: ThreePtScoringOptions = field(default_factory=ThreePtScoringOptions)
    curve_density: CurveDensityScoringOptions = field(default_factory=CurveDensityScoringOptions)
    materials: MaterialScoringOptions = field(default_factory=MaterialScoringOptions)

    def to_dict(self) -> Dict[str, Any]:
        """Convert thresholds to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringThresholds':
        """Create thresholds from a scoring section.

        Args:
            data: Scoring dictionary (any key casing)

        Returns:
            ScoringThresholds instance
        """
        thresholds = cls()
        _apply_section(thresholds, data)
        return thresholds


def _apply_section(target: Any, data: Dict[str, Any]) -> None:
    """Copy known keys of ``data`` onto the dataclass ``target`` in place."""
    known = {f.name: f for f in fields(target)}
    for raw_key, value in data.items():
        name = normalize_key(str(raw_key))
        spec = known.get(name)
        if spec is None:
            continue

        current = getattr(target, name)
        if spec.metadata.get('thresholds'):
            setattr(target, name, [
                ThresholdWeight.from_dict(item) if item is not None else None
                for item in (value or [])
            ])
        elif is_dataclass(current):
            if isinstance(value, dict):
                _apply_section(current, value)
        elif isinstance(current, dict):
            setattr(target, name, {str(k): float(v) for k, v in (value or {}).items()})
        elif isinstance(current, list):
            setattr(target, name, [str(v) for v in (value or [])])
        elif value is None:
            continue
        elif isinstance(current, bool):
            setattr(target, name, bool(value))
        elif isinstance(current, int):
            setattr(target, name, int(value))
        elif isinstance(current, float):
            setattr(target, name, float(value))
        else:
            setattr(target, name, value)


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse seconds given as a number or as an ``[d.]hh:mm:ss[.fff]`` string."""
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if ':' not in text:
        return float(text)

    days = 0
    head, _, rest = text.partition(':')
    if '.' in head:
        day_part, head = head.split('.', 1)
        days = int(day_part)
    minutes, _, seconds = rest.partition(':')
    return days * 86400 + int(head) * 3600 + int(minutes) * 60 + float(seconds or 0)


@dataclass
class AnalysisConfig:
    """Complete analysis configuration."""
    scoring: ScoringThresholds = field(default_factory=ScoringThresholds)
    render_timeout_seconds: float = 15.0
    output_image_folder: str = ""
    parallelism: int = field(default_factory=lambda: max(1, (os.cpu_count() or 2) // 2))
    version: str = "complexity-engine/1.1.0"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to JSON file.

        Args:
            path: Output file path
        """
        path = Path(path)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Create configuration from dictionary.

        Accepts the bare scoring section, this class's own layout, or an
        appsettings document with a ``DXFAnalysis`` section.

        Args:
            data: Configuration dictionary

        Returns:
            AnalysisConfig instance
        """
        for key, value in data.items():
            if normalize_key(str(key)) == APPSETTINGS_SECTION and isinstance(value, dict):
                data = value
                break

        config = cls()
        scoring_section = None
        for key, value in data.items():
            name = normalize_key(str(key))
            if name == 'scoring':
                scoring_section = value or {}
            elif name in ('render_timeout', 'render_timeout_seconds') and value is not None:
                config.render_timeout_seconds = parse_duration(value)
            elif name == 'output_image_folder' and value is not None:
                config.output_image_folder = str(value)
            elif name == 'parallelism' and value is not None:
                config.parallelism = max(1, int(value))
            elif name == 'version' and value is not None:
                config.version = str(value)

        # No explicit section: the document itself is the scoring section
        config.scoring = ScoringThresholds.from_dict(data if scoring_section is None else scoring_section)
        return config

    @classmethod
    def from_json(cls, json_str: str) -> 'AnalysisConfig':
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'AnalysisConfig':
        """Load configuration from JSON file.

        Args:
            path: Input file path

        Returns:
            AnalysisConfig instance

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def find_config_file(
    dxf_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Find configuration file using search hierarchy.

    Search order:
    1. Explicit config path (if provided)
    2. .dxfanalysis.json in the DXF file's directory
    3. .dxfanalysis.json in current working directory
    4. ~/.dxfanalysis.json in user's home directory

    Args:
        dxf_path: Path to DXF file being processed
        explicit_config: Explicitly specified config path

    Returns:
        Path to config file if found, None otherwise
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = []
    if dxf_path:
        candidates.append(Path(dxf_path).parent / CONFIG_FILENAME)
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


def load_config(
    dxf_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> AnalysisConfig:
    """Load configuration with fallback to defaults.

    Args:
        dxf_path: Path to DXF file being processed
        explicit_config: Explicitly specified config path

    Returns:
        AnalysisConfig instance (defaults if no config file found)
    """
    config_path = find_config_file(dxf_path, explicit_config)

    if config_path:
        try:
            return AnalysisConfig.load(config_path)
        except (json.JSONDecodeError, OSError, ValueError, TypeError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)

    return AnalysisConfig()
