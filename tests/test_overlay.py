"""Tests for the AI suggestion gate and overlay."""

import pytest

from priority_scorer.config import AIEnhancementConfig, RangesConfig, ScoringConfig, SignalRange
from priority_scorer.overlay import apply_overlay, validate_suggestions
from priority_scorer.schema import AISuggestions, SuggestionItem
from priority_scorer.signals import Signals


def suggestion(pattern="services/payment/**", confidence=0.9, **kwargs):
    item = {
        "pattern": pattern,
        "confidence": confidence,
        "reason": "Handles money movement",
        "evidence": ["calls charge()", "writes ledger"],
    }
    item.update(kwargs)
    return item


def make_signals(**kwargs) -> Signals:
    values = dict(bc=5, cc=4, er=5, roi=7, testability=7, dependency_count=2, likelihood=2, impact=3)
    values.update(kwargs)
    return Signals(**values)


class TestValidateSuggestions:
    """Only confident, well-formed suggestions survive the gate."""

    def test_accepts_valid_entries(self):
        result = validate_suggestions({"suggestions": {
            "businessCriticalPaths": [suggestion(suggestedBC=9)],
            "highRiskModules": [suggestion(pattern="api/**", confidence=0.8, suggestedER=8)],
            "testabilityAdjustments": [suggestion(pattern="ui/", adjustment="-1")],
        }})
        assert result.business_critical_paths[0].suggested_bc == 9
        assert result.high_risk_modules[0].suggested_er == 8
        assert result.testability_adjustments[0].adjustment == "-1"

    @pytest.mark.parametrize("item", [
        suggestion(confidence=0.84, suggestedBC=9),
        suggestion(confidence=1.2, suggestedBC=9),
        suggestion(suggestedBC=7),
        suggestion(pattern="Services/**", suggestedBC=9),
        suggestion(pattern="services/*.ts", suggestedBC=9),
        suggestion(evidence=["only one"], suggestedBC=9),
        suggestion(evidence=["a", "b", "c", "d"], suggestedBC=9),
        suggestion(reason="", suggestedBC=9),
        suggestion(reason="x" * 201, suggestedBC=9),
        suggestion(),
    ])
    def test_rejects_invalid_business_paths(self, item):
        result = validate_suggestions({"suggestions": {"businessCriticalPaths": [item]}})
        assert result.business_critical_paths == []

    def test_confidence_floor_differs_per_category(self):
        result = validate_suggestions({"suggestions": {
            "highRiskModules": [suggestion(confidence=0.75, suggestedER=7)],
            "testabilityAdjustments": [suggestion(confidence=0.79, adjustment="+1")],
        }})
        assert len(result.high_risk_modules) == 1
        assert result.testability_adjustments == []

    def test_rejects_unknown_adjustment(self):
        result = validate_suggestions({"suggestions": {
            "testabilityAdjustments": [suggestion(adjustment="+3")],
        }})
        assert result.testability_adjustments == []

    def test_keeps_ten_most_confident(self):
        items = [suggestion(pattern=f"mod{i}/**", confidence=0.85 + i * 0.01, suggestedBC=8) for i in range(12)]
        result = validate_suggestions({"suggestions": {"businessCriticalPaths": items}})
        kept = result.business_critical_paths
        assert len(kept) == 10
        assert kept[0].pattern == "mod11/**"
        assert [item.confidence for item in kept] == sorted((item.confidence for item in kept), reverse=True)

    def test_unknown_category_and_bad_payload(self):
        assert validate_suggestions({"suggestions": {"other": [suggestion()]}}).total() == 0
        assert validate_suggestions({"nope": 1}).total() == 0
        assert validate_suggestions([1, 2]).total() == 0


class TestApplyOverlay:
    """The overlay only raises BC/ER and nudges testability."""

    @pytest.fixture
    def enhancement(self) -> AIEnhancementConfig:
        return AIEnhancementConfig(
            enabled=True,
            analyzed=True,
            suggestions=AISuggestions(
                business_critical_paths=[SuggestionItem(pattern="services/payment/**", suggested_bc=9)],
                high_risk_modules=[SuggestionItem(pattern="services/**", suggested_er=7)],
                testability_adjustments=[SuggestionItem(pattern="services/**", adjustment="+2")],
            ),
        )

    def test_raises_signals(self, enhancement):
        result = apply_overlay("src/services/payment/charge.ts", make_signals(), enhancement)
        assert (result.bc, result.er, result.testability) == (9, 7, 9)
        assert result.cc == 4

    def test_never_lowers(self, enhancement):
        result = apply_overlay("src/services/payment/charge.ts", make_signals(bc=10, er=9), enhancement)
        assert (result.bc, result.er) == (10, 9)

    def test_testability_clamped(self, enhancement):
        result = apply_overlay("src/services/x.ts", make_signals(testability=10), enhancement)
        assert result.testability == 10

    def test_out_of_range_suggestions_clamped(self):
        enhancement = AIEnhancementConfig(
            enabled=True,
            analyzed=True,
            suggestions=AISuggestions(
                business_critical_paths=[SuggestionItem(pattern="services/**", suggested_bc=50)],
                high_risk_modules=[SuggestionItem(pattern="services/**", suggested_er=99)],
            ),
        )
        result = apply_overlay("src/services/x.ts", make_signals(), enhancement)
        assert (result.bc, result.er) == (10, 10)

        result = apply_overlay("src/services/x.ts", make_signals(), enhancement, ScoringConfig().ranges)
        assert (result.bc, result.er) == (10, 10)

    def test_testability_stays_in_declared_range(self, enhancement):
        ranges = RangesConfig(testability=SignalRange(min=0, max=8))
        result = apply_overlay("src/services/x.ts", make_signals(testability=7), enhancement, ranges)
        assert result.testability == 8

    def test_no_match(self, enhancement):
        signals = make_signals()
        assert apply_overlay("src/utils/x.ts", signals, enhancement) == signals

    @pytest.mark.parametrize("enabled,analyzed", [(False, True), (True, False)])
    def test_inactive_unless_enabled_and_analyzed(self, enhancement, enabled, analyzed):
        inactive = enhancement.model_copy(update={"enabled": enabled, "analyzed": analyzed})
        signals = make_signals()
        assert apply_overlay("src/services/payment/charge.ts", signals, inactive) == signals
