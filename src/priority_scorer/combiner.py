"""
Score combiner and priority bucketing.

Legacy mode folds BC, CC, ER, ROI and coverage with one global weight
vector. Layered mode picks the weight and threshold vectors of the
target's layer and sums only the weights that layer declares; a target
whose layer is not configured falls back to legacy, with testability in
place of ROI.
"""

from dataclasses import dataclass
from typing import Optional

from .config import LayerConfig, ScoringConfig, ThresholdsConfig
from .schema import Priority, ScoringMode
from .signals import Signals
from .utils import floor_to_digits


@dataclass(frozen=True)
class CombinedScore:
    """Result of the combiner for one target."""
    score: float
    priority: Priority
    thresholds: ThresholdsConfig
    terms: dict[str, float]
    layer_name: Optional[str] = None
    layered: bool = False


def legacy_terms(
    signals: Signals,
    coverage_score: Optional[int],
    config: ScoringConfig,
    roi: Optional[int] = None,
) -> dict[str, float]:
    """Weighted contribution of each signal under the global weights."""
    weights = config.weights
    terms = {
        "BC": signals.bc * weights.bc,
        "CC": signals.cc * weights.cc,
        "ER": signals.er * weights.er,
        "ROI": (signals.roi if roi is None else roi) * weights.roi,
    }
    if coverage_score is not None:
        terms["coverage"] = coverage_score * weights.coverage
    return terms


def layered_terms(
    signals: Signals,
    coverage_score: Optional[int],
    layer_def: LayerConfig,
) -> dict[str, float]:
    """Weighted contribution of each signal the layer declares a weight for."""
    values = {
        "business_criticality": signals.bc,
        "complexity": signals.cc,
        "error_risk": signals.er,
        "testability": signals.testability,
        "dependency_count": signals.dependency_count,
        "coverage": coverage_score,
    }
    return {
        name: values[name] * weight
        for name, weight in layer_def.weights.present().items()
        if values[name] is not None
    }


def combine(
    signals: Signals,
    coverage_score: Optional[int],
    layer: str,
    config: ScoringConfig,
) -> CombinedScore:
    """Fold the signals into one score and bucket it.

    The weighted sum is floored, never rounded up, to the configured
    number of digits before it is compared with the thresholds.
    """
    layer_def = None
    if config.scoring_mode == ScoringMode.LAYERED:
        layer_def = config.layers.get(layer)

    if layer_def is None:
        # Layered mode without a definition for this layer scores like legacy
        roi = signals.testability if config.scoring_mode == ScoringMode.LAYERED else None
        terms = legacy_terms(signals, coverage_score, config, roi=roi)
    else:
        terms = layered_terms(signals, coverage_score, layer_def)
    thresholds = config.thresholds_for(layer)

    score = floor_to_digits(sum(terms.values()), config.rounding.digits)
    return CombinedScore(
        score=score,
        priority=thresholds.classify(score),
        thresholds=thresholds,
        terms=terms,
        layer_name=layer_def.name if layer_def is not None else None,
        layered=layer_def is not None,
    )


def apply_boost(combined: CombinedScore, delta: float, digits: int = 2) -> CombinedScore:
    """Add a coverage boost and re-bucket against the thresholds already used."""
    if delta <= 0:
        return combined
    score = floor_to_digits(combined.score + delta, digits)
    return CombinedScore(
        score=score,
        priority=combined.thresholds.classify(score),
        thresholds=combined.thresholds,
        terms=combined.terms,
        layer_name=combined.layer_name,
        layered=combined.layered,
    )
