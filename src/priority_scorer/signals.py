"""
Signal mappers.

Each mapper turns one category of raw evidence into a bounded integer
score. Mappers receive the config explicitly, and a per-signal override
keyed by `path#name` bypasses the mapper entirely.

Signals:
- BC: business criticality from keyword buckets over name, path and hint
- CC: complexity from cyclomatic (and cognitive, when available) numbers
- ER: error risk from git likelihood x impact
- ROI / testability: ease of testing from code-feature hints
- dependency count: fan-in from the import graph
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

from .config import RoiRulesConfig, ScoringConfig
from .errors import MissingMetricsError
from .logging_config import get_logger
from .rules import first_match, keyword_rules
from .schema import ComplexityMetrics, DependencyGraphNode, GitSignal, RoiHint, Target
from .utils import clamp, pick

logger = get_logger("signals")

DEFAULT_BC = 3
DEFAULT_CC_BASE = 3
DEFAULT_IMPACT = 3
DEFAULT_ER = 6
DEFAULT_DEPENDENCY_COUNT = 2


# =============================================================================
# Business Criticality
# =============================================================================


def is_main_chain(path: str, config: ScoringConfig) -> bool:
    """Whether the path contains one of the configured main-chain substrings."""
    lower = (path or "").lower()
    return any(str(part).lower() in lower for part in config.main_chain_paths)


def map_bc(target: Target, config: ScoringConfig) -> int:
    """Business criticality, 1-10."""
    override = config.overrides.bc.get(target.key)
    if override is not None:
        return override

    haystack = f"{target.name} {target.path} {target.impact_hint}"
    bc = first_match(keyword_rules(config.bc_keywords), haystack, DEFAULT_BC)

    if not is_main_chain(target.path, config):
        bc = min(bc, config.bc_cap_for_non_main_chain)

    declared = config.ranges.bc
    return int(clamp(bc, declared.min, declared.max))


# =============================================================================
# Complexity
# =============================================================================


def map_cc(
    target: Target,
    metrics: Optional[ComplexityMetrics],
    config: ScoringConfig,
    git: Optional[GitSignal] = None,
    likelihood: Optional[int] = None,
) -> int:
    """Complexity, 2-10.

    Args:
        target: Target being scored.
        metrics: Complexity numbers; required unless CC is overridden.
        config: Scoring config.
        git: Git signal, consulted for the multi-platform adjustment.
        likelihood: Base (unboosted) likelihood already computed for ER.

    Raises:
        MissingMetricsError: If no metrics were supplied.
    """
    override = config.overrides.cc.get(target.key)
    if override is not None:
        return override
    if metrics is None:
        raise MissingMetricsError(target.key)

    if metrics.cognitive is not None:
        fusion = config.cc_fusion
        fused = fusion.w_c * metrics.cyclomatic + fusion.w_k * metrics.cognitive
        cc = clamp(math.floor(fused / 5) + 3, 2, fusion.cap)
    else:
        mapping = config.cc_mapping
        base = first_match(mapping.cyclomatic, metrics.cyclomatic, DEFAULT_CC_BASE)
        adjustment = sum(adj.delta for adj in mapping.adjustments if adj.applies(metrics))
        cc = clamp(base + min(adjustment, mapping.max_adjustment), 2, mapping.cap)

    bonus = config.cc_adjust
    if target.internal and target.loc >= bonus.loc_bonus_threshold:
        cc = clamp(cc + bonus.loc_bonus, 2, config.cc_mapping.cap)

    platform = config.cc_mapping.platform_adjust
    if git is not None and git.multi_platform and pick(likelihood, 0) < platform.skip_if_likelihood_gte:
        cc = clamp(cc + platform.delta, 2, platform.cap)

    declared = config.ranges.cc
    return int(clamp(cc, declared.min, declared.max))


# =============================================================================
# Error Risk
# =============================================================================


class Likelihood(NamedTuple):
    """Likelihood from the rule list alone, and after graph/git boosts."""
    base: int
    boosted: int


def compute_likelihood(
    git: GitSignal,
    node: Optional[DependencyGraphNode],
    config: ScoringConfig,
) -> Likelihood:
    """Change likelihood, 1-5, computed once per target."""
    base = first_match(config.likelihood_rules, git, config.fallbacks.er_likelihood)
    cap = config.boost_rules.cap
    score = base

    graph = config.dep_graph
    if graph.enable and node is not None:
        if node.cross_module_score >= graph.neighbor_category_boost:
            score = clamp(score + 1, 1, cap)
        if node.fan_out + node.fan_in >= graph.degree_boost:
            score = clamp(score + 1, 1, cap)

    if git.authors30d >= config.boost_rules.authors30d_gte or git.in_category or git.multi_platform:
        score = clamp(score + 1, 1, cap)

    return Likelihood(base=base, boosted=int(score))


def map_impact(impact_hint: str, config: ScoringConfig) -> int:
    """Impact, 1-5, from the project-local map or impact keywords."""
    local = config.hint_maps.impact_local
    if impact_hint and impact_hint in local:
        return local[impact_hint]
    return first_match(keyword_rules(config.impact_keywords), impact_hint, DEFAULT_IMPACT)


def map_er(target: Target, likelihood: int, impact: int, config: ScoringConfig) -> int:
    """Error risk from the likelihood x impact matrix, 1-10."""
    override = config.overrides.er.get(target.key)
    if override is not None:
        return override

    er = config.er_matrix.get(likelihood, {}).get(impact, DEFAULT_ER)
    declared = config.ranges.er
    return int(clamp(er, declared.min, declared.max))


# =============================================================================
# Testability / ROI
# =============================================================================


def _score_hint(hint: RoiHint, rules: RoiRulesConfig) -> int:
    if hint.is_pure:
        return rules.pure
    if hint.dependencies_injectable:
        return rules.injectable
    if hint.multi_platform_strong:
        return rules.native_or_network
    if hint.needs_ui:
        return rules.needs_ui
    return rules.multi_context


def map_roi(target: Target, config: ScoringConfig) -> int:
    override = config.overrides.roi.get(target.key)
    if override is not None:
        return override
    declared = config.ranges.roi
    return int(clamp(_score_hint(target.roi_hint, config.roi_rules), declared.min, declared.max))


def map_testability(target: Target, config: ScoringConfig) -> int:
    """Same heuristic as ROI; `testabilityRules` may replace the table."""
    override = config.overrides.testability.get(target.key)
    if override is not None:
        return override
    rules = pick(config.testability_rules, config.roi_rules)
    declared = config.ranges.testability
    return int(clamp(_score_hint(target.roi_hint, rules), declared.min, declared.max))


# =============================================================================
# Dependency Count
# =============================================================================


def map_dependency_count(node: Optional[DependencyGraphNode], config: ScoringConfig) -> int:
    """Score from how many files import this one; no graph data scores 2."""
    if node is None:
        return DEFAULT_DEPENDENCY_COUNT
    score = first_match(config.dependency_count_mapping, node.fan_in, DEFAULT_DEPENDENCY_COUNT)
    declared = config.ranges.dependency_count
    return int(clamp(score, declared.min, declared.max))


# =============================================================================
# All signals
# =============================================================================


@dataclass(frozen=True)
class Signals:
    """Every signal computed for one target, before the AI overlay."""
    bc: int
    cc: int
    er: int
    roi: int
    testability: int
    dependency_count: int
    likelihood: int
    impact: int


def compute_signals(
    target: Target,
    metrics: Optional[ComplexityMetrics],
    git: Optional[GitSignal],
    node: Optional[DependencyGraphNode],
    config: ScoringConfig,
) -> Signals:
    """Run every mapper for one target.

    Likelihood is computed once: its base value gates the CC platform
    adjustment and its boosted value feeds the ER matrix.
    """
    git = git or GitSignal()
    likelihood = compute_likelihood(git, node, config)
    impact = map_impact(target.impact_hint, config)

    signals = Signals(
        bc=map_bc(target, config),
        cc=map_cc(target, metrics, config, git=git, likelihood=likelihood.base),
        er=map_er(target, likelihood.boosted, impact, config),
        roi=map_roi(target, config),
        testability=map_testability(target, config),
        dependency_count=map_dependency_count(node, config),
        likelihood=likelihood.boosted,
        impact=impact,
    )
    logger.debug("Signals for %s: %s", target.key, signals)
    return signals
