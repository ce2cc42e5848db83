"""
Unit tests for dxf_analysis.config module.

Tests:
- Key normalisation
- Scoring sections in any casing, appsettings documents
- Duration parsing
- Config file discovery and fallback to defaults
"""

import json

import pytest

from dxf_analysis.config import (
    CONFIG_FILENAME,
    AnalysisConfig,
    ScoringThresholds,
    ThresholdWeight,
    find_config_file,
    load_config,
    normalize_key,
    parse_duration,
)


class TestNormalizeKey:
    """Tests for normalize_key."""

    @pytest.mark.parametrize("key,expected", [
        ("TotalCutLength", "total_cut_length"),
        ("totalCutLengthWeight", "total_cut_length_weight"),
        ("total_cut_length", "total_cut_length"),
        ("DXFAnalysis", "dxf_analysis"),
        ("NumCurvesExtraThresholds", "num_curves_extra_thresholds"),
        ("render-timeout", "render_timeout"),
    ])
    def test_normalize(self, key, expected):
        """camelCase, PascalCase, acronyms and dashes become snake_case."""
        assert normalize_key(key) == expected


class TestParseDuration:
    """Tests for parse_duration."""

    def test_numbers(self):
        """Numbers are seconds."""
        assert parse_duration(15) == 15.0
        assert parse_duration("2.5") == 2.5

    def test_timespan(self):
        """hh:mm:ss strings."""
        assert parse_duration("00:00:15") == 15.0
        assert parse_duration("01:02:03.5") == 3723.5

    def test_timespan_with_days(self):
        """d.hh:mm:ss strings."""
        assert parse_duration("1.02:00:00") == 93600.0


class TestScoringThresholds:
    """Tests for ScoringThresholds."""

    def test_defaults(self):
        """Built-in defaults."""
        t = ScoringThresholds()
        assert t.total_cut_length == 2000.0
        assert t.num_curves == 60
        assert t.min_radius.danger_threshold == 0.3
        assert t.serrilha.presence_weight == 1.0
        assert t.materials.default_weight == 0.5

    def test_pascal_case_section(self):
        """PascalCase keys, nested sections and bracket lists are applied."""
        t = ScoringThresholds.from_dict({
            "TotalCutLength": 3000,
            "TotalCutLengthWeight": 0.5,
            "NumCurvesExtraThresholds": [{"Threshold": 120, "Weight": 0.5}, None],
            "Serrilha": {"ColaWeight": 0.3, "ManualBladeCodes": ["MAN-1"]},
            "Materials": {"KeywordOverrides": {"adesivo": 0.8}},
        })

        assert t.total_cut_length == 3000.0
        assert t.total_cut_length_weight == 0.5
        assert t.num_curves_extra_thresholds == [ThresholdWeight(120.0, 0.5), None]
        assert t.serrilha.cola_weight == 0.3
        assert t.serrilha.manual_blade_codes == ["MAN-1"]
        assert t.serrilha.presence_weight == 1.0
        assert t.materials.keyword_overrides == {"adesivo": 0.8}

    def test_null_values_keep_defaults(self):
        """Null scalars leave the default in place."""
        t = ScoringThresholds.from_dict({"numCurves": None, "unknownKey": 5})
        assert t.num_curves == 60

    def test_int_fields_coerced(self):
        """Integer fields stay integers."""
        t = ScoringThresholds.from_dict({"numCurves": 80.0})
        assert t.num_curves == 80
        assert isinstance(t.num_curves, int)


class TestAnalysisConfig:
    """Tests for AnalysisConfig."""

    def test_appsettings_document(self):
        """A DXFAnalysis section with render knobs and a Scoring section."""
        config = AnalysisConfig.from_dict({
            "Logging": {"LogLevel": {"Default": "Information"}},
            "DXFAnalysis": {
                "RenderTimeout": "00:00:30",
                "OutputImageFolder": "previews",
                "Parallelism": 3,
                "Scoring": {"TotalCutLength": 4000},
            },
        })

        assert config.render_timeout_seconds == 30.0
        assert config.output_image_folder == "previews"
        assert config.parallelism == 3
        assert config.scoring.total_cut_length == 4000.0

    def test_bare_scoring_section(self):
        """A document without a Scoring key is the scoring section itself."""
        config = AnalysisConfig.from_dict({"bonusIntersections": 50})
        assert config.scoring.bonus_intersections == 50
        assert config.render_timeout_seconds == 15.0

    def test_parallelism_at_least_one(self):
        """Parallelism never drops below one."""
        assert AnalysisConfig.from_dict({"parallelism": 0}).parallelism == 1

    def test_save_and_load(self, tmp_path):
        """A saved configuration loads back equal."""
        config = AnalysisConfig(render_timeout_seconds=20.0)
        config.scoring.num_curves_extra_thresholds = [ThresholdWeight(100, 0.5)]
        path = tmp_path / "config.json"

        config.save(path)
        loaded = AnalysisConfig.load(path)

        assert loaded.render_timeout_seconds == 20.0
        assert loaded.scoring.num_curves_extra_thresholds == [ThresholdWeight(100.0, 0.5)]
        assert loaded.to_dict() == config.to_dict()


class TestConfigDiscovery:
    """Tests for find_config_file / load_config."""

    @pytest.fixture(autouse=True)
    def _isolate(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.chdir(tmp_path)

    def test_explicit_config(self, tmp_path):
        """An existing explicit path wins."""
        path = tmp_path / "custom.json"
        path.write_text("{}", encoding="utf-8")
        assert find_config_file(explicit_config=path) == path

    def test_config_next_to_dxf(self, tmp_path):
        """The DXF's directory is searched."""
        folder = tmp_path / "facas"
        folder.mkdir()
        config_path = folder / CONFIG_FILENAME
        config_path.write_text("{}", encoding="utf-8")

        assert find_config_file(dxf_path=folder / "NR120184.dxf") == config_path

    def test_missing_explicit_falls_back(self, tmp_path):
        """A missing explicit path falls back to the search hierarchy."""
        (tmp_path / CONFIG_FILENAME).write_text("{}", encoding="utf-8")
        found = find_config_file(explicit_config=tmp_path / "nope.json")
        assert found is not None
        assert found.name == CONFIG_FILENAME

    def test_nothing_found(self):
        """No config anywhere."""
        assert find_config_file() is None

    def test_load_config_defaults(self):
        """Defaults are returned when no file exists."""
        assert load_config().to_dict() == AnalysisConfig().to_dict()

    def test_load_config_invalid_json(self, tmp_path):
        """A broken file is logged and defaults are used."""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_config(explicit_config=path).scoring.total_cut_length == 2000.0

    def test_load_config_reads_file(self, tmp_path):
        """A valid file is applied."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"Scoring": {"NumCurves": 90}}), encoding="utf-8")
        assert load_config(explicit_config=path).scoring.num_curves == 90
