"""Tests for loading, validating and writing the scoring config."""

import json

import pytest
import yaml

import priority_scorer.config as config_module
from priority_scorer.config import (
    CONFIG_ENV_VAR,
    ScoringConfig,
    build_config,
    config_to_dict,
    find_config_file,
    load_config,
    parse_config_text,
    save_default_config,
    validate_config,
    write_suggestions,
)
from priority_scorer.errors import ConfigError
from priority_scorer.schema import AISuggestions, Priority, ScoringMode, SuggestionItem


LAYERED_CONFIG = {
    "scoringMode": "layered",
    "layers": {
        "business": {
            "name": "Business Logic",
            "patterns": ["services/**"],
            "weights": {"businessCriticality": 0.5, "complexity": 0.2, "dependencyCount": 0.3},
            "thresholds": {"P0": 8.0, "P1": 6.5, "P2": 4.5},
        }
    },
}


@pytest.fixture
def isolated_discovery(tmp_path, monkeypatch):
    """Run config discovery in an empty directory with no env or user config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(config_module, "USER_CONFIG_PATH", tmp_path / "missing" / "config.yaml")
    return tmp_path


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_legacy_defaults(self):
        config = ScoringConfig()
        assert config.scoring_mode == ScoringMode.LEGACY
        assert (config.weights.bc, config.weights.cc, config.weights.er, config.weights.roi) == (0.4, 0.3, 0.2, 0.1)
        assert (config.thresholds.p0, config.thresholds.p1, config.thresholds.p2) == (8.5, 6.5, 4.5)
        assert config.rounding.digits == 2
        assert config.bc_cap_for_non_main_chain == 8

    def test_thresholds_classify_inclusive(self):
        thresholds = ScoringConfig().thresholds
        assert thresholds.classify(8.5) == Priority.P0
        assert thresholds.classify(8.49) == Priority.P1
        assert thresholds.classify(6.5) == Priority.P1
        assert thresholds.classify(4.5) == Priority.P2
        assert thresholds.classify(4.49) == Priority.P3

    def test_defaults_are_valid(self):
        assert validate_config(ScoringConfig()) == []


class TestParsing:
    """Tests for reading JSONC and YAML documents."""

    def test_jsonc_with_comments(self):
        text = '// scoring\n{\n  "scoringMode": "legacy", // mode\n  "weights": {"BC": 0.5}\n}\n'
        data = parse_config_text(text, ".jsonc")
        assert data == {"scoringMode": "legacy", "weights": {"BC": 0.5}}

    def test_yaml(self):
        data = parse_config_text("thresholds:\n  P0: 9\n", ".yaml")
        assert data == {"thresholds": {"P0": 9}}

    def test_empty_document(self):
        assert parse_config_text("", ".json") == {}
        assert parse_config_text("", ".yaml") == {}

    def test_malformed_json(self):
        with pytest.raises(ConfigError, match="Failed to parse config"):
            parse_config_text("{not json", ".json")

    def test_non_mapping_root(self):
        with pytest.raises(ConfigError, match="mapping"):
            parse_config_text("[1, 2]", ".json")

    def test_camel_case_keys(self):
        config = build_config({
            "bcCapForNonMainChain": 9,
            "mainChainPaths": ["checkout"],
            "round": {"digits": 1},
            "depGraph": {"enable": True, "degreeBoost": 4},
        })
        assert config.bc_cap_for_non_main_chain == 9
        assert config.main_chain_paths == ["checkout"]
        assert config.rounding.digits == 1
        assert config.dep_graph.enable is True
        assert config.dep_graph.degree_boost == 4

    def test_layer_weight_aliases(self):
        config = build_config({
            "scoringMode": "layered",
            "layers": {"ui": {"weights": {"BC": 0.2, "CC": 0.3, "coverageScore": 0.5}}},
        })
        weights = config.layers["ui"].weights
        assert weights.present() == {"business_criticality": 0.2, "complexity": 0.3, "coverage": 0.5}

    def test_layer_thresholds_default_p0(self):
        config = build_config({"scoringMode": "layered", "layers": {"ui": {}}})
        assert config.layers["ui"].thresholds.p0 == 8.0

    def test_jsonc_glob_and_comment_marker_in_strings(self):
        text = (
            '{\n'
            '  // layers\n'
            '  "scoringMode": "layered",\n'
            '  "layers": {"util": {"patterns": ["src/**/utils/**"], "weights": {"CC": 1}}},\n'
            '  "mainChainPaths": ["a // b"] /* kept */\n'
            '}\n'
        )
        config = build_config(parse_config_text(text, ".jsonc"))
        assert config.layers["util"].patterns == ["src/**/utils/**"]
        assert config.main_chain_paths == ["a // b"]


class TestValidation:
    """Configuration errors abort before any target is scored."""

    def test_layered_without_layers(self):
        with pytest.raises(ConfigError) as exc_info:
            build_config({"scoringMode": "layered"})
        assert any("layers" in issue for issue in exc_info.value.issues)

    def test_negative_weight(self):
        with pytest.raises(ConfigError, match="weights.bc must not be negative"):
            build_config({"weights": {"BC": -0.1}})

    def test_threshold_order(self):
        with pytest.raises(ConfigError, match="P0 >= P1 >= P2"):
            build_config({"thresholds": {"P0": 5, "P1": 6.5, "P2": 4.5}})

    def test_layer_threshold_order(self):
        data = {
            "scoringMode": "layered",
            "layers": {"ui": {"thresholds": {"P0": 8, "P1": 9, "P2": 4}}},
        }
        with pytest.raises(ConfigError, match="layers.ui.thresholds"):
            build_config(data)

    def test_override_outside_range(self):
        with pytest.raises(ConfigError, match="outside"):
            build_config({"overrides": {"CC": {"src/a.ts#f": 1}}})

    def test_override_inside_range(self):
        config = build_config({"overrides": {"BC": {"src/a.ts#f": 10}}})
        assert config.overrides.bc == {"src/a.ts#f": 10}

    def test_wrong_type_reports_issues(self):
        with pytest.raises(ConfigError) as exc_info:
            build_config({"weights": {"BC": "heavy"}})
        assert exc_info.value.issues
        assert "weights" in exc_info.value.issues[0]

    def test_unknown_scoring_mode(self):
        with pytest.raises(ConfigError):
            build_config({"scoringMode": "fancy"})

    def test_suggestion_values_outside_allowed_sets(self):
        data = {
            "aiEnhancement": {
                "enabled": True,
                "analyzed": True,
                "suggestions": {
                    "businessCriticalPaths": [{"pattern": "services/**", "suggestedBC": 50}],
                    "highRiskModules": [{"pattern": "services/**", "suggestedER": 99}],
                    "testabilityAdjustments": [{"pattern": "services/**", "adjustment": "+5"}],
                },
            }
        }
        with pytest.raises(ConfigError) as exc_info:
            build_config(data)
        issues = exc_info.value.issues
        assert "aiEnhancement.suggestions.businessCriticalPaths[0].suggestedBC=50 not in (8, 9, 10)" in issues
        assert any("highRiskModules[0].suggestedER=99" in issue for issue in issues)
        assert any("testabilityAdjustments[0].adjustment=+5" in issue for issue in issues)

    def test_suggestion_values_inside_allowed_sets(self):
        config = build_config({
            "aiEnhancement": {
                "suggestions": {"businessCriticalPaths": [{"pattern": "services/**", "suggestedBC": 10}]},
            }
        })
        assert config.ai_enhancement.suggestions.business_critical_paths[0].suggested_bc == 10


class TestLoading:
    """Tests for load_config and config discovery."""

    def test_load_explicit_file(self, tmp_path):
        path = tmp_path / "scoring.json"
        path.write_text(json.dumps(LAYERED_CONFIG))
        config = load_config(path)
        assert config.scoring_mode == ScoringMode.LAYERED
        assert config.layers["business"].name == "Business Logic"

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_defaults_when_nothing_found(self, isolated_discovery):
        assert find_config_file() is None
        assert load_config() == ScoringConfig()

    def test_discovers_jsonc_in_cwd(self, isolated_discovery):
        (isolated_discovery / "ai-test.config.jsonc").write_text('{"round": {"digits": 3}} // local\n')
        assert load_config().rounding.digits == 3

    def test_env_var_wins(self, isolated_discovery, monkeypatch):
        (isolated_discovery / "ai-test.config.jsonc").write_text('{"round": {"digits": 3}}')
        env_file = isolated_discovery / "env.yaml"
        env_file.write_text("round:\n  digits: 1\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_file))
        assert find_config_file() == env_file
        assert load_config().rounding.digits == 1

    def test_overrides_from_external_file(self, tmp_path):
        (tmp_path / "overrides.json").write_text(json.dumps({"BC": {"src/a.ts#f": 9}}))
        path = tmp_path / "scoring.json"
        path.write_text(json.dumps({"overrides": "overrides.json"}))
        assert load_config(path).overrides.bc == {"src/a.ts#f": 9}

    def test_missing_external_overrides_ignored(self, tmp_path):
        path = tmp_path / "scoring.json"
        path.write_text(json.dumps({"overrides": "missing.json"}))
        assert load_config(path).overrides.bc == {}

    def test_impact_local_from_external_file(self, tmp_path):
        (tmp_path / "impact.json").write_text(json.dumps({"checkout total": 5}))
        path = tmp_path / "scoring.json"
        path.write_text(json.dumps({"hintMaps": {"impactLocal": "impact.json"}}))
        assert load_config(path).hint_maps.impact_local == {"checkout total": 5}


class TestWriting:
    """Tests for writing configs and suggestions."""

    def test_default_jsonc_round_trips(self, tmp_path):
        path = tmp_path / "ai-test.config.jsonc"
        save_default_config(path)
        text = path.read_text()
        assert text.startswith("// Test Priority Scorer Configuration")
        assert load_config(path) == ScoringConfig()

    def test_default_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        save_default_config(path)
        assert path.read_text().startswith("# Test Priority Scorer Configuration")
        data = yaml.safe_load(path.read_text())
        assert data["scoringMode"] == "legacy"
        assert data["weights"]["BC"] == 0.4

    def test_config_to_dict_uses_json_names(self):
        data = config_to_dict(ScoringConfig())
        assert "bcCapForNonMainChain" in data
        assert data["round"] == {"digits": 2}
        assert data["aiEnhancement"]["enabled"] is False

    def test_write_suggestions_keeps_other_sections(self, tmp_path):
        path = tmp_path / "ai-test.config.json"
        path.write_text(json.dumps({"weights": {"BC": 0.5, "CC": 0.3, "ER": 0.1, "ROI": 0.1}}))
        suggestions = AISuggestions(business_critical_paths=[
            SuggestionItem(pattern="services/**", confidence=0.9, reason="money",
                           evidence=["a", "b"], suggested_bc=9),
        ])

        merged = write_suggestions(path, suggestions)

        data = json.loads(path.read_text())
        assert data["weights"] == {"BC": 0.5, "CC": 0.3, "ER": 0.1, "ROI": 0.1}
        assert data["aiEnhancement"]["enabled"] is True
        assert data["aiEnhancement"]["analyzed"] is True
        assert data["aiEnhancement"]["suggestions"]["businessCriticalPaths"][0]["suggestedBC"] == 9
        assert merged.ai_enhancement.suggestions.total() == 1
        assert load_config(path).ai_enhancement.analyzed is True

    def test_write_suggestions_respects_disabled_flag(self, tmp_path):
        path = tmp_path / "ai-test.config.json"
        path.write_text(json.dumps({"aiEnhancement": {"enabled": False}}))
        write_suggestions(path, AISuggestions())
        data = json.loads(path.read_text())
        assert data["aiEnhancement"]["enabled"] is False
        assert data["aiEnhancement"]["analyzed"] is True

    def test_write_suggestions_to_jsonc_reloads(self, tmp_path):
        path = tmp_path / "ai-test.config.jsonc"
        path.write_text('// project scoring\n{"round": {"digits": 1}}\n')
        suggestions = AISuggestions(business_critical_paths=[
            SuggestionItem(pattern="services/**", confidence=0.9, reason="fees",
                           evidence=["total += fee // rounding", "src/**/fees.ts"], suggested_bc=9),
        ])

        write_suggestions(path, suggestions)

        reloaded = load_config(path)
        assert reloaded.rounding.digits == 1
        item = reloaded.ai_enhancement.suggestions.business_critical_paths[0]
        assert item.evidence == ["total += fee // rounding", "src/**/fees.ts"]
        assert "project scoring" not in path.read_text()
