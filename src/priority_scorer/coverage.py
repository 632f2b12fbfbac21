"""
Coverage scoring.

Converts line coverage into a risk-weighted score (less coverage scores
higher) and computes the optional boost for under-covered files.
"""

import math
from typing import Any, Optional

from .config import CoverageBoostConfig, CoverageScoringConfig
from .rules import ascending_by_lte, first_match
from .utils import floor_to_digits, normalize_path


def lookup_coverage_pct(summary: dict[str, Any], path: str) -> Optional[float]:
    """Line coverage percent for a file in a coverage summary map.

    Summary keys are usually absolute paths, so a key ending with the
    target's relative path also matches.
    """
    path = normalize_path(path)
    entry = summary.get(path)
    if entry is None:
        for key, value in summary.items():
            if key != "total" and normalize_path(key).endswith(path):
                entry = value
                break
    if not isinstance(entry, dict):
        return None

    pct = (entry.get("lines") or {}).get("pct")
    if isinstance(pct, bool) or not isinstance(pct, (int, float)):
        return None
    return float(pct)


def map_coverage_score(pct: Optional[float], config: CoverageScoringConfig) -> int:
    """Coverage percent to score; unknown coverage gets the NA score."""
    if pct is None or math.isnan(pct):
        return config.na_score
    return first_match(ascending_by_lte(config.mapping), pct, config.default_score)


def coverage_boost(pct: Optional[float], config: CoverageBoostConfig) -> float:
    """Score delta for a file whose coverage is below the boost threshold.

    Returns 0.0 when the boost is disabled, coverage is unknown, or the
    file is covered well enough.
    """
    if not config.enable or pct is None or math.isnan(pct):
        return 0.0
    if pct >= config.threshold:
        return 0.0
    ratio = (config.threshold - pct) / max(config.threshold, 1)
    return floor_to_digits(min(config.max_boost, ratio * config.scale), 2)
