"""
AI suggestion gate and overlay.

Suggestions from the external analysis step pass a validation gate before
they are stored in the config, and are overlaid on the computed signals
only when the config says they were analyzed and are enabled. The overlay
can raise BC and ER, and nudge testability; it never lowers BC or ER, and
every adjusted signal stays within its declared range.
"""

import re
from dataclasses import replace
from typing import Any, Optional

from .config import AIEnhancementConfig, RangesConfig
from .logging_config import get_logger
from .schema import (
    SUGGESTED_BC_VALUES,
    SUGGESTED_ER_VALUES,
    TESTABILITY_ADJUSTMENTS,
    AISuggestions,
    SuggestionItem,
)
from .signals import Signals
from .utils import clamp, match_glob

logger = get_logger("overlay")

PATTERN_RE = re.compile(r"^[a-z0-9_/-]+/?\*?\*?$")
MAX_SUGGESTIONS_PER_CATEGORY = 10


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# category -> (min confidence, value field, allowed values)
SUGGESTION_RULES: dict[str, tuple[float, str, tuple]] = {
    "businessCriticalPaths": (0.85, "suggestedBC", SUGGESTED_BC_VALUES),
    "highRiskModules": (0.75, "suggestedER", SUGGESTED_ER_VALUES),
    "testabilityAdjustments": (0.80, "adjustment", TESTABILITY_ADJUSTMENTS),
}


def _is_valid(item: Any, min_confidence: float, value_field: str, allowed: tuple) -> bool:
    if not isinstance(item, dict):
        return False
    required = ("pattern", "confidence", "reason", "evidence", value_field)
    if any(field not in item for field in required):
        return False
    if not isinstance(item["pattern"], str) or not PATTERN_RE.match(item["pattern"]):
        return False
    if not _is_number(item["confidence"]) or not min_confidence <= item["confidence"] <= 1.0:
        return False
    if not isinstance(item["reason"], str) or not 0 < len(item["reason"]) <= 200:
        return False
    evidence = item["evidence"]
    if not isinstance(evidence, list) or not 2 <= len(evidence) <= 3:
        return False
    if not all(isinstance(line, str) for line in evidence):
        return False

    value = item[value_field]
    if value_field == "adjustment":
        return isinstance(value, str) and value in allowed
    return _is_number(value) and value in allowed


def validate_suggestions(payload: Any) -> AISuggestions:
    """Keep only the well-formed, confident suggestions of an AI response.

    Args:
        payload: Parsed AI response, `{"suggestions": {category: [items]}}`.

    Returns:
        At most 10 suggestions per category, highest confidence first.
        Unknown categories and rejected entries are logged and dropped.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("suggestions"), dict):
        logger.warning("AI response has no 'suggestions' object, ignoring it")
        return AISuggestions()

    accepted: dict[str, list[dict[str, Any]]] = {}
    for category, items in payload["suggestions"].items():
        if category not in SUGGESTION_RULES:
            logger.warning("Ignoring unknown suggestion category: %s", category)
            continue
        if not isinstance(items, list):
            logger.warning("Suggestion category %s is not a list, ignoring it", category)
            continue

        min_confidence, value_field, allowed = SUGGESTION_RULES[category]
        valid = [item for item in items if _is_valid(item, min_confidence, value_field, allowed)]
        dropped = len(items) - len(valid)
        if dropped:
            logger.warning("Dropped %d invalid %s suggestion(s)", dropped, category)

        valid.sort(key=lambda item: item["confidence"], reverse=True)
        accepted[category] = valid[:MAX_SUGGESTIONS_PER_CATEGORY]

    return AISuggestions.model_validate(accepted)


def first_matching(path: str, items: list[SuggestionItem]) -> Optional[SuggestionItem]:
    """First suggestion whose pattern matches the path."""
    for item in items:
        if match_glob(path, item.pattern):
            return item
    return None


def _parse_adjustment(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def apply_overlay(
    path: str,
    signals: Signals,
    enhancement: AIEnhancementConfig,
    ranges: Optional[RangesConfig] = None,
) -> Signals:
    """Apply enabled, analyzed AI suggestions to a target's signals.

    Suggested values are clamped to the declared signal ranges.
    """
    if not (enhancement.enabled and enhancement.analyzed):
        return signals

    ranges = ranges or RangesConfig()
    suggestions = enhancement.suggestions
    bc, er, testability = signals.bc, signals.er, signals.testability

    item = first_matching(path, suggestions.business_critical_paths)
    if item is not None and item.suggested_bc is not None:
        bc = int(clamp(max(bc, item.suggested_bc), ranges.bc.min, ranges.bc.max))

    item = first_matching(path, suggestions.high_risk_modules)
    if item is not None and item.suggested_er is not None:
        er = int(clamp(max(er, item.suggested_er), ranges.er.min, ranges.er.max))

    item = first_matching(path, suggestions.testability_adjustments)
    if item is not None:
        delta = _parse_adjustment(item.adjustment)
        if delta is not None:
            declared = ranges.testability
            testability = int(clamp(testability + delta, declared.min, declared.max))

    if (bc, er, testability) != (signals.bc, signals.er, signals.testability):
        logger.debug("AI overlay adjusted %s: BC=%d ER=%d testability=%d", path, bc, er, testability)
    return replace(signals, bc=bc, er=er, testability=testability)
