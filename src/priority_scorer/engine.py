"""Scoring engine - orchestrates the scoring phases for each target.

Per target:
1. Resolve the architectural layer
2. Compute the signals (BC, CC, ER, ROI, testability, dependency count)
3. Overlay validated AI suggestions
4. Combine into a score and priority
5. Apply the coverage boost

The dependency graph is built once, before scoring, and the config is
validated when the engine is created. Scoring one target never reads
another target's result.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .combiner import CombinedScore, apply_boost, combine
from .config import ScoringConfig, ensure_valid
from .coverage import coverage_boost, lookup_coverage_pct, map_coverage_score
from .dependency_graph import DependencyGraph
from .errors import InputError, ScoringError
from .layers import resolve_layer
from .logging_config import get_logger
from .overlay import apply_overlay
from .schema import (
    ComplexityMetrics,
    GitSignal,
    ScoredTarget,
    ScoringResult,
    Target,
    TargetFailure,
)
from .signals import compute_signals
from .utils import clamp, normalize_path

logger = get_logger("engine")


class ScoringEngine:
    """Scores targets against one validated config and dependency graph."""

    def __init__(self, config: ScoringConfig, dependency_graph: Optional[DependencyGraph] = None):
        """Initialize the engine.

        Raises:
            ConfigError: If the config is inconsistent (fail fast, before any target).
        """
        ensure_valid(config)
        self.config = config
        self.dependency_graph = dependency_graph or {}

    def score(
        self,
        targets: list[Target],
        metrics: dict[str, ComplexityMetrics],
        git_signals: Optional[dict[str, GitSignal]] = None,
        coverage_summary: Optional[dict[str, Any]] = None,
        strict: bool = False,
    ) -> ScoringResult:
        """Score a batch of targets.

        Args:
            targets: Targets from the scanner.
            metrics: Complexity metrics keyed by `path#name`.
            git_signals: Git signals keyed by file path; missing files count as
                never changed.
            coverage_summary: Coverage summary map; None leaves coverage out of
                the score entirely.
            strict: Raise on the first target that cannot be scored instead of
                recording it as a failure.

        Returns:
            ScoringResult with one ScoredTarget per scorable target, in input order.
        """
        git_signals = git_signals or {}
        result = ScoringResult(scoring_mode=self.config.scoring_mode)

        for target in targets:
            try:
                scored = self.score_target(
                    target,
                    metrics.get(target.key),
                    git_signals.get(normalize_path(target.path)),
                    coverage_summary,
                )
            except ScoringError as e:
                if strict:
                    raise
                logger.warning("Skipping %s: %s", target.key, e)
                result.failures.append(TargetFailure(key=target.key, error=str(e)))
                continue
            result.scored.append(scored)

        logger.info(
            "Scored %d targets (%d failed)", len(result.scored), len(result.failures)
        )
        return result

    def score_target(
        self,
        target: Target,
        metrics: Optional[ComplexityMetrics],
        git: Optional[GitSignal] = None,
        coverage_summary: Optional[dict[str, Any]] = None,
    ) -> ScoredTarget:
        """Score one target.

        Raises:
            MissingMetricsError: If the target has no complexity metrics.
        """
        scored, _ = self.explain(target, metrics, git, coverage_summary)
        return scored

    def explain(
        self,
        target: Target,
        metrics: Optional[ComplexityMetrics],
        git: Optional[GitSignal] = None,
        coverage_summary: Optional[dict[str, Any]] = None,
    ) -> tuple[ScoredTarget, CombinedScore]:
        """Score one target and also return the weighted terms behind its score."""
        config = self.config
        layer = resolve_layer(target, config)
        node = self.dependency_graph.get(normalize_path(target.path))

        signals = compute_signals(target, metrics, git, node, config)
        signals = apply_overlay(target.path, signals, config.ai_enhancement, config.ranges)

        coverage_pct = None
        coverage_score = None
        if coverage_summary is not None:
            coverage_pct = lookup_coverage_pct(coverage_summary, target.path)
            declared = config.ranges.coverage_score
            coverage_score = int(clamp(
                map_coverage_score(coverage_pct, config.coverage_scoring), declared.min, declared.max
            ))

        combined = combine(signals, coverage_score, layer, config)
        delta = coverage_boost(coverage_pct, config.coverage_boost)
        combined = apply_boost(combined, delta, config.rounding.digits)

        data = target.model_dump()
        data["layer"] = layer
        scored = ScoredTarget(
            **data,
            bc=signals.bc,
            cc=signals.cc,
            er=signals.er,
            roi=signals.roi,
            testability=signals.testability,
            dependency_count=signals.dependency_count,
            likelihood=signals.likelihood,
            impact=signals.impact,
            coverage_pct=coverage_pct,
            coverage_score=coverage_score,
            coverage_boost=delta,
            score=combined.score,
            priority=combined.priority,
            layer_name=combined.layer_name,
        )
        return scored, combined


# =============================================================================
# Input loading
# =============================================================================


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON input document.

    Raises:
        InputError: If the file is missing or not valid JSON.
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Input file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}") from e


def _expect_mapping(data: Any, path: Union[str, Path]) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise InputError(f"Expected a JSON object in {path}")
    return data


def load_targets(path: Union[str, Path]) -> list[Target]:
    """Load scanner output: a JSON array of targets (or `{"targets": [...]}`)."""
    data = read_json(path)
    if isinstance(data, dict):
        data = data.get("targets")
    if not isinstance(data, list):
        raise InputError(f"Expected a list of targets in {path}")
    try:
        return [Target.model_validate(item) for item in data]
    except ValidationError as e:
        raise InputError(f"Invalid target in {path}: {e}") from e


def load_metrics(
    path: Union[str, Path],
    cognitive_path: Optional[Union[str, Path]] = None,
) -> dict[str, ComplexityMetrics]:
    """Load complexity metrics keyed by `path#name`.

    A separate cognitive-complexity map (`{path#name: int}`) may be merged in;
    it wins over any cognitive value in the metrics file.
    """
    data = _expect_mapping(read_json(path), path)
    try:
        metrics = {key: ComplexityMetrics.model_validate(value) for key, value in data.items()}
    except ValidationError as e:
        raise InputError(f"Invalid metrics in {path}: {e}") from e

    if cognitive_path is not None:
        cognitive = _expect_mapping(read_json(cognitive_path), cognitive_path)
        for key, value in cognitive.items():
            if key in metrics and isinstance(value, int) and not isinstance(value, bool):
                metrics[key] = metrics[key].model_copy(update={"cognitive": value})
    return metrics


def load_git_signals(path: Union[str, Path]) -> dict[str, GitSignal]:
    """Load git signals keyed by file path."""
    data = _expect_mapping(read_json(path), path)
    try:
        return {normalize_path(key): GitSignal.model_validate(value) for key, value in data.items()}
    except ValidationError as e:
        raise InputError(f"Invalid git signals in {path}: {e}") from e


def load_coverage_summary(path: Union[str, Path]) -> dict[str, Any]:
    """Load a coverage summary map (`{file: {lines: {pct}}}`)."""
    return _expect_mapping(read_json(path), path)


def load_imports(path: Union[str, Path]) -> dict[str, list[str]]:
    """Load import specifiers per file (`{file: [specifier, ...]}`)."""
    data = _expect_mapping(read_json(path), path)
    imports = {}
    for key, value in data.items():
        if not isinstance(value, list):
            raise InputError(f"Imports of {key} in {path} must be a list")
        imports[key] = [str(spec) for spec in value]
    return imports
