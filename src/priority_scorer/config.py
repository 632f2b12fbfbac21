"""Configuration management for the priority scorer.

The scoring config is a comment-tolerant JSON document (JSONC) or a YAML
file. Every section is optional; absent fields fall back to the defaults
declared on the models below. The config is always passed explicitly to the
scoring functions, there is no process-wide instance.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import AliasChoices, Field, ValidationError

from .errors import ConfigError
from .logging_config import get_logger
from .rules import Adjustment, LikelihoodRule, RangeRule
from .schema import (
    SUGGESTED_BC_VALUES,
    SUGGESTED_ER_VALUES,
    TESTABILITY_ADJUSTMENTS,
    AISuggestions,
    CamelModel,
    Priority,
    ScoringMode,
)
from .utils import strip_json_comments

logger = get_logger("config")

CONFIG_ENV_VAR = "PRIORITY_SCORER_CONFIG"
DEFAULT_CONFIG_NAMES = ["ai-test.config.jsonc", "ai-test.config.json", "ut_scoring_config.json"]
USER_CONFIG_PATH = Path.home() / ".config" / "priority-scorer" / "config.yaml"


# =============================================================================
# Combiner
# =============================================================================


class WeightsConfig(CamelModel):
    """Flat weight vector used in legacy mode."""
    bc: float = Field(0.4, alias="BC", description="Weight for business criticality")
    cc: float = Field(0.3, alias="CC", description="Weight for complexity")
    er: float = Field(0.2, alias="ER", description="Weight for error risk")
    roi: float = Field(0.1, alias="ROI", description="Weight for testability/ROI")
    coverage: float = Field(0.0, description="Weight for the coverage score")


class ThresholdsConfig(CamelModel):
    """Cut points for the priority buckets. A score equal to a cut point takes the higher bucket."""
    p0: float = Field(8.5, alias="P0")
    p1: float = Field(6.5, alias="P1")
    p2: float = Field(4.5, alias="P2")

    def classify(self, score: float) -> Priority:
        if score >= self.p0:
            return Priority.P0
        if score >= self.p1:
            return Priority.P1
        if score >= self.p2:
            return Priority.P2
        return Priority.P3


class LayerThresholdsConfig(ThresholdsConfig):
    """Layer cut points; P0 defaults lower than the legacy one."""
    p0: float = Field(8.0, alias="P0")


class LayerWeightsConfig(CamelModel):
    """Per-layer weights. A weight left out is not summed at all."""
    business_criticality: Optional[float] = Field(
        None, validation_alias=AliasChoices("businessCriticality", "BC", "business_criticality")
    )
    complexity: Optional[float] = Field(
        None, validation_alias=AliasChoices("complexity", "CC")
    )
    error_risk: Optional[float] = Field(
        None, validation_alias=AliasChoices("errorRisk", "ER", "error_risk")
    )
    testability: Optional[float] = None
    dependency_count: Optional[float] = Field(
        None, validation_alias=AliasChoices("dependencyCount", "dependency_count")
    )
    coverage: Optional[float] = Field(
        None, validation_alias=AliasChoices("coverage", "coverageScore")
    )

    def present(self) -> dict[str, float]:
        return {name: value for name, value in self.model_dump().items() if value is not None}


class LayerConfig(CamelModel):
    """Weights, thresholds and path patterns for one architectural layer."""
    name: Optional[str] = Field(None, description="Display name shown in reports")
    description: Optional[str] = None
    patterns: list[str] = Field(default_factory=list, description="Path globs used as a fallback")
    weights: LayerWeightsConfig = Field(default_factory=LayerWeightsConfig)
    thresholds: LayerThresholdsConfig = Field(default_factory=LayerThresholdsConfig)


class RoundConfig(CamelModel):
    digits: int = Field(2, description="Decimal digits kept when flooring the score")


# =============================================================================
# Signals
# =============================================================================


def _default_bc_keywords() -> dict[int, list[str]]:
    return {
        10: ["payment", "checkout", "billing", "refund"],
        9: ["order", "auth", "login", "token", "permission"],
        8: ["account", "cart", "price", "transaction", "booking"],
        7: ["user", "profile", "search", "notification"],
        5: ["report", "export", "upload"],
    }


def _default_impact_keywords() -> dict[int, list[str]]:
    return {
        5: ["payment", "money", "security", "data loss", "privacy"],
        4: ["order", "auth", "account", "persistence"],
        3: ["network", "api", "sync"],
        2: ["display", "style", "layout"],
        1: ["log", "debug", "analytics"],
    }


def _default_likelihood_rules() -> list[LikelihoodRule]:
    return [
        LikelihoodRule(field="commits30d", op=">=", value=10, score=5),
        LikelihoodRule(field="commits30d", op="between", min=5, max=9, score=4),
        LikelihoodRule(field="commits30d", op="between", min=1, max=4, score=3),
        LikelihoodRule(field="fallback90d", op="gt", value=0, score=2),
        LikelihoodRule(field="fallback180dZero", op="eq", value=True, score=1),
    ]


def _default_er_matrix() -> dict[int, dict[int, int]]:
    # ER grows with both likelihood and impact; each step adds roughly one point
    return {
        likelihood: {impact: min(10, likelihood + impact) for impact in range(1, 6)}
        for likelihood in range(1, 6)
    }


def _default_cyclomatic_ranges() -> list[RangeRule]:
    return [
        RangeRule(lte=4, score=2),
        RangeRule(gte=5, lte=9, score=4),
        RangeRule(gte=10, lte=15, score=6),
        RangeRule(gte=16, lte=20, score=8),
        RangeRule(gt=20, score=10),
    ]


def _default_dependency_count_mapping() -> list[RangeRule]:
    return [
        RangeRule(gte=10, score=10),
        RangeRule(gte=5, lt=10, score=8),
        RangeRule(gte=3, lt=5, score=6),
        RangeRule(gte=1, lt=3, score=4),
        RangeRule(eq=0, score=2),
    ]


def _default_coverage_mapping() -> list[RangeRule]:
    return [
        RangeRule(lte=0, score=10),
        RangeRule(lte=40, score=8),
        RangeRule(lte=70, score=6),
        RangeRule(lte=90, score=3),
    ]


class PlatformAdjustConfig(CamelModel):
    """Extra complexity for multi-platform code that changes rarely."""
    delta: int = Field(0, description="Added to CC when the rule fires")
    cap: int = 10
    skip_if_likelihood_gte: int = Field(4, description="No nudge once likelihood reaches this value")


class CCMappingConfig(CamelModel):
    """Cyclomatic-only complexity mapping."""
    cyclomatic: list[RangeRule] = Field(default_factory=_default_cyclomatic_ranges)
    adjustments: list[Adjustment] = Field(default_factory=list)
    max_adjustment: int = Field(3, description="Upper bound on the summed adjustment deltas")
    cap: int = 10
    platform_adjust: PlatformAdjustConfig = Field(default_factory=PlatformAdjustConfig)


class CCFusionConfig(CamelModel):
    """Cyclomatic + cognitive fusion weights."""
    w_c: float = Field(0.7, alias="wC")
    w_k: float = Field(0.3, alias="wK")
    cap: int = 10


class CCAdjustConfig(CamelModel):
    """Bonus for long internal (non-exported) functions."""
    loc_bonus_threshold: int = 50
    loc_bonus: int = 1


class RoiRulesConfig(CamelModel):
    """Fixed testability/ROI score per code-feature branch."""
    pure: int = 10
    injectable: int = 9
    native_or_network: int = Field(
        5, validation_alias=AliasChoices("nativeOrNetwork", "multiPlatformStrong", "native_or_network")
    )
    needs_ui: int = Field(3, alias="needsUI")
    multi_context: int = 7


class FallbacksConfig(CamelModel):
    er_likelihood: int = Field(3, alias="ERLikelihood")


class BoostRulesConfig(CamelModel):
    """Likelihood boosts from auxiliary git signals."""
    authors30d_gte: int = Field(999, description="Author count in 30 days that counts as churn")
    cap: int = Field(5, description="Likelihood never boosts past this value")


class DepGraphConfig(CamelModel):
    """Dependency-graph driven likelihood boosts."""
    enable: bool = False
    neighbor_category_boost: int = Field(2, description="Cross-module score that triggers a boost")
    degree_boost: int = Field(8, description="fanIn + fanOut that triggers a boost")
    cross_module_categories: list[str] = Field(
        default_factory=list,
        description="Categories counted for cross-module score; empty counts every category",
    )
    count_external_imports: bool = Field(
        False, description="Count bare-specifier imports as their own category"
    )


class CoverageScoringConfig(CamelModel):
    """Coverage percentage to risk-weighted score."""
    mapping: list[RangeRule] = Field(default_factory=_default_coverage_mapping)
    na_score: int = Field(5, description="Score when coverage is unknown")
    default_score: int = Field(1, description="Score when coverage is above every band")


class CoverageBoostConfig(CamelModel):
    """Secondary nudge for under-covered files."""
    enable: bool = False
    threshold: float = 60.0
    max_boost: float = 0.5
    scale: float = 0.5


class SignalRange(CamelModel):
    min: int
    max: int


class RangesConfig(CamelModel):
    """Declared [min, max] range of every signal."""
    bc: SignalRange = Field(default_factory=lambda: SignalRange(min=1, max=10), alias="BC")
    cc: SignalRange = Field(default_factory=lambda: SignalRange(min=2, max=10), alias="CC")
    er: SignalRange = Field(default_factory=lambda: SignalRange(min=1, max=10), alias="ER")
    roi: SignalRange = Field(default_factory=lambda: SignalRange(min=0, max=10), alias="ROI")
    testability: SignalRange = Field(default_factory=lambda: SignalRange(min=0, max=10))
    dependency_count: SignalRange = Field(default_factory=lambda: SignalRange(min=2, max=10))
    coverage_score: SignalRange = Field(default_factory=lambda: SignalRange(min=1, max=10))


# =============================================================================
# Overrides and AI
# =============================================================================


class OverridesConfig(CamelModel):
    """Human overrides keyed by `path#name`; each bypasses its mapper."""
    bc: dict[str, int] = Field(default_factory=dict, alias="BC")
    cc: dict[str, int] = Field(default_factory=dict, alias="CC")
    er: dict[str, int] = Field(default_factory=dict, alias="ER")
    roi: dict[str, int] = Field(default_factory=dict, alias="ROI")
    testability: dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("testability", "Testability")
    )


class HintMapsConfig(CamelModel):
    """Project-local calibration tables."""
    impact_local: dict[str, int] = Field(
        default_factory=dict, description="impactHint text to impact score"
    )


class AIEnhancementConfig(CamelModel):
    """Validated suggestions from the AI analysis step."""
    enabled: bool = False
    analyzed: bool = False
    analyzed_at: Optional[str] = None
    suggestions: AISuggestions = Field(default_factory=AISuggestions)


# =============================================================================
# Root
# =============================================================================


class ScoringConfig(CamelModel):
    """Complete configuration for the priority scoring engine."""
    scoring_mode: ScoringMode = ScoringMode.LEGACY.value
    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    layers: dict[str, LayerConfig] = Field(default_factory=dict)
    rounding: RoundConfig = Field(default_factory=RoundConfig, alias="round")
    ranges: RangesConfig = Field(default_factory=RangesConfig)

    bc_keywords: dict[int, list[str]] = Field(default_factory=_default_bc_keywords)
    bc_cap_for_non_main_chain: int = 8
    main_chain_paths: list[str] = Field(default_factory=list)
    impact_keywords: dict[int, list[str]] = Field(default_factory=_default_impact_keywords)
    likelihood_rules: list[LikelihoodRule] = Field(default_factory=_default_likelihood_rules)
    fallbacks: FallbacksConfig = Field(default_factory=FallbacksConfig)
    er_matrix: dict[int, dict[int, int]] = Field(default_factory=_default_er_matrix)
    boost_rules: BoostRulesConfig = Field(default_factory=BoostRulesConfig)
    dep_graph: DepGraphConfig = Field(default_factory=DepGraphConfig)

    cc_mapping: CCMappingConfig = Field(default_factory=CCMappingConfig)
    cc_fusion: CCFusionConfig = Field(default_factory=CCFusionConfig)
    cc_adjust: CCAdjustConfig = Field(default_factory=CCAdjustConfig)

    roi_rules: RoiRulesConfig = Field(default_factory=RoiRulesConfig)
    testability_rules: Optional[RoiRulesConfig] = None
    dependency_count_mapping: list[RangeRule] = Field(
        default_factory=_default_dependency_count_mapping
    )
    coverage_scoring: CoverageScoringConfig = Field(default_factory=CoverageScoringConfig)
    coverage_boost: CoverageBoostConfig = Field(default_factory=CoverageBoostConfig)

    overrides: OverridesConfig = Field(default_factory=OverridesConfig)
    hint_maps: HintMapsConfig = Field(default_factory=HintMapsConfig)
    ai_enhancement: AIEnhancementConfig = Field(default_factory=AIEnhancementConfig)

    class Config:
        use_enum_values = True

    def thresholds_for(self, layer: Optional[str]) -> ThresholdsConfig:
        """Thresholds the combiner uses for a target in this layer."""
        if self.scoring_mode == ScoringMode.LAYERED and layer in self.layers:
            return self.layers[layer].thresholds
        return self.thresholds


# =============================================================================
# Loading
# =============================================================================


def parse_config_text(text: str, suffix: str = ".jsonc") -> dict[str, Any]:
    """Parse a config document into a plain mapping."""
    try:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(strip_json_comments(text)) if text.strip() else {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse config: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config must contain a mapping at the root")
    return data


def _resolve_external_map(value: Any, base_dir: Path, section: str) -> Any:
    """Sections such as `overrides` may name a JSON file instead of inlining it."""
    if not isinstance(value, str):
        return value
    path = Path(value)
    if not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        logger.warning("%s file not found: %s, ignoring", section, path)
        return {}
    return parse_config_text(path.read_text(encoding="utf-8"), path.suffix)


def build_config(data: dict[str, Any], base_dir: Optional[Path] = None) -> ScoringConfig:
    """Validate a raw mapping into a ScoringConfig and check it for consistency."""
    base_dir = base_dir or Path.cwd()
    data = dict(data)
    if "overrides" in data:
        data["overrides"] = _resolve_external_map(data["overrides"], base_dir, "overrides")
    hint_maps = data.get("hintMaps")
    if isinstance(hint_maps, dict) and "impactLocal" in hint_maps:
        hint_maps = dict(hint_maps)
        hint_maps["impactLocal"] = _resolve_external_map(hint_maps["impactLocal"], base_dir, "hintMaps.impactLocal")
        data["hintMaps"] = hint_maps

    try:
        config = ScoringConfig.model_validate(data)
    except ValidationError as e:
        issues = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigError("Invalid scoring config", issues) from e

    ensure_valid(config)
    return config


def load_config(path: Optional[Union[str, Path]] = None) -> ScoringConfig:
    """Load and validate the scoring configuration.

    Args:
        path: Explicit config path. When omitted the usual locations are
            searched (see find_config_file); if none exists the defaults apply.

    Returns:
        The validated ScoringConfig.

    Raises:
        ConfigError: If the document cannot be parsed or is inconsistent.
    """
    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
    else:
        config_file = find_config_file()
        if config_file is None:
            logger.warning("No scoring config found, using defaults")
            return ScoringConfig()

    logger.info("Loading scoring config from %s", config_file)
    data = parse_config_text(config_file.read_text(encoding="utf-8"), config_file.suffix)
    return build_config(data, config_file.parent)


def find_config_file() -> Optional[Path]:
    """Find a scoring configuration file.

    Looks in (order of priority):
    1. PRIORITY_SCORER_CONFIG environment variable
    2. ./ai-test.config.jsonc
    3. ./ai-test.config.json
    4. ./ut_scoring_config.json
    5. ~/.config/priority-scorer/config.yaml
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in DEFAULT_CONFIG_NAMES:
        path = Path(name)
        if path.exists():
            return path

    if USER_CONFIG_PATH.exists():
        return USER_CONFIG_PATH

    return None


# =============================================================================
# Validation
# =============================================================================


def validate_config(config: ScoringConfig) -> list[str]:
    """Return every consistency problem found in the config."""
    issues = []

    if config.scoring_mode == ScoringMode.LAYERED and not config.layers:
        issues.append("Layered mode requires a non-empty 'layers' section")

    for name, weight in config.weights.model_dump().items():
        if weight < 0:
            issues.append(f"weights.{name} must not be negative")

    issues.extend(_check_thresholds("thresholds", config.thresholds))

    for layer_name, layer in config.layers.items():
        for name, weight in layer.weights.present().items():
            if weight < 0:
                issues.append(f"layers.{layer_name}.weights.{name} must not be negative")
        issues.extend(_check_thresholds(f"layers.{layer_name}.thresholds", layer.thresholds))

    if config.rounding.digits < 0:
        issues.append("round.digits must not be negative")

    for signal, overrides in (
        ("BC", config.overrides.bc),
        ("CC", config.overrides.cc),
        ("ER", config.overrides.er),
        ("ROI", config.overrides.roi),
        ("testability", config.overrides.testability),
    ):
        declared = _range_for(config, signal)
        for key, value in overrides.items():
            if not declared.min <= value <= declared.max:
                issues.append(
                    f"overrides.{signal}[{key}]={value} outside [{declared.min}, {declared.max}]"
                )

    issues.extend(_check_suggestions(config.ai_enhancement.suggestions))
    return issues


def _check_suggestions(suggestions: AISuggestions) -> list[str]:
    prefix = "aiEnhancement.suggestions"
    checks = (
        ("businessCriticalPaths", "suggestedBC", suggestions.business_critical_paths,
         lambda item: item.suggested_bc, SUGGESTED_BC_VALUES),
        ("highRiskModules", "suggestedER", suggestions.high_risk_modules,
         lambda item: item.suggested_er, SUGGESTED_ER_VALUES),
        ("testabilityAdjustments", "adjustment", suggestions.testability_adjustments,
         lambda item: item.adjustment, TESTABILITY_ADJUSTMENTS),
    )

    issues = []
    for category, field, items, value_of, allowed in checks:
        for i, item in enumerate(items):
            value = value_of(item)
            if value is not None and value not in allowed:
                issues.append(f"{prefix}.{category}[{i}].{field}={value} not in {allowed}")
    return issues


def ensure_valid(config: ScoringConfig) -> None:
    """Raise ConfigError when the config is inconsistent."""
    issues = validate_config(config)
    if issues:
        raise ConfigError("Invalid scoring config: " + "; ".join(issues), issues)


def _check_thresholds(section: str, thresholds: ThresholdsConfig) -> list[str]:
    if thresholds.p0 >= thresholds.p1 >= thresholds.p2:
        return []
    return [f"{section} must satisfy P0 >= P1 >= P2"]


def _range_for(config: ScoringConfig, signal: str) -> SignalRange:
    return {
        "BC": config.ranges.bc,
        "CC": config.ranges.cc,
        "ER": config.ranges.er,
        "ROI": config.ranges.roi,
        "testability": config.ranges.testability,
    }[signal]


# =============================================================================
# Writing
# =============================================================================


def config_to_dict(config: ScoringConfig) -> dict[str, Any]:
    """Serialize a config with its JSON key names."""
    return config.model_dump(mode="json", by_alias=True, exclude_none=True)


def _write_document(data: dict[str, Any], path: Path) -> None:
    """Write a config document as JSON (or YAML for .yaml/.yml paths)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix in (".yaml", ".yml"):
        content = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    else:
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def save_default_config(path: Path) -> None:
    """Save the default configuration with a header comment.

    Args:
        path: Where to write; `.yaml`/`.yml` produce YAML, anything else JSONC.
    """
    data = config_to_dict(ScoringConfig())
    header = [
        "Test Priority Scorer Configuration",
        "==================================",
        "",
        "Controls how functions are scored and bucketed into P0-P3.",
        "scoringMode 'legacy' uses 'weights'/'thresholds'; 'layered' uses 'layers'.",
        "",
        f"The scorer also looks for {', '.join(DEFAULT_CONFIG_NAMES)}",
        f"or the file named by the {CONFIG_ENV_VAR} environment variable.",
    ]

    if path.suffix in (".yaml", ".yml"):
        content = "\n".join(f"# {line}".rstrip() for line in header) + "\n\n"
        content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    else:
        content = "\n".join(f"// {line}".rstrip() for line in header) + "\n"
        content += json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def merge_suggestions(config: ScoringConfig, suggestions: AISuggestions) -> ScoringConfig:
    """Return a copy of the config carrying validated AI suggestions."""
    enhancement = config.ai_enhancement.model_copy(update={
        "analyzed": True,
        "analyzed_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "suggestions": suggestions,
    })
    return config.model_copy(update={"ai_enhancement": enhancement})


def write_suggestions(path: Path, suggestions: AISuggestions) -> ScoringConfig:
    """Install validated suggestions into a config file.

    Only the values of the `aiEnhancement` section change; every other
    section keeps its values. The document is re-serialized as plain JSON
    (or YAML), so comments in a JSONC file are not preserved. A document
    without that section gets it with `enabled` switched on.

    Returns:
        The config as it now reads from disk.
    """
    data = parse_config_text(path.read_text(encoding="utf-8"), path.suffix) if path.exists() else {}
    had_section = "aiEnhancement" in data

    merged = merge_suggestions(build_config(data, path.parent), suggestions)
    if not had_section:
        merged = merged.model_copy(update={
            "ai_enhancement": merged.ai_enhancement.model_copy(update={"enabled": True})
        })

    data["aiEnhancement"] = merged.ai_enhancement.model_dump(mode="json", by_alias=True, exclude_none=True)
    _write_document(data, path)

    logger.info("Wrote %d AI suggestion(s) to %s", suggestions.total(), path)
    return merged
