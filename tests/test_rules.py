"""Tests for the rule variants and the first-match evaluator."""

import math

import pytest

from priority_scorer.rules import (
    Adjustment,
    KeywordRule,
    LikelihoodRule,
    RangeRule,
    ascending_by_lte,
    first_match,
    keyword_rules,
)
from priority_scorer.schema import ComplexityMetrics, GitSignal


class TestRangeRule:
    """Tests for numeric band rules."""

    def test_closed_band(self):
        rule = RangeRule(gte=10, lte=15, score=6)
        assert rule.matches(10)
        assert rule.matches(12)
        assert rule.matches(15)
        assert not rule.matches(9)
        assert not rule.matches(16)

    def test_half_open_band(self):
        rule = RangeRule(gte=5, lt=10, score=8)
        assert rule.matches(5)
        assert rule.matches(9)
        assert not rule.matches(10)

    def test_strict_lower_bound(self):
        rule = RangeRule(gt=20, score=10)
        assert not rule.matches(20)
        assert rule.matches(21)

    def test_equality(self):
        rule = RangeRule(eq=0, score=2)
        assert rule.matches(0)
        assert not rule.matches(1)

    def test_missing_or_nan_never_matches(self):
        rule = RangeRule(lte=100, score=1)
        assert not rule.matches(None)
        assert not rule.matches(math.nan)

    def test_from_config_document(self):
        rule = RangeRule.model_validate({"gte": 1, "lt": 3, "score": 4})
        assert rule.kind == "range"
        assert rule.matches(2)


class TestLikelihoodRule:
    """Tests for threshold rules over git counters."""

    def test_commits30d_gte(self):
        rule = LikelihoodRule(field="commits30d", op=">=", value=10, score=5)
        assert rule.matches(GitSignal(commits30d=10))
        assert not rule.matches(GitSignal(commits30d=9))

    def test_commits30d_between(self):
        rule = LikelihoodRule(field="commits30d", op="between", min=5, max=9, score=4)
        assert rule.matches(GitSignal(commits30d=5))
        assert rule.matches(GitSignal(commits30d=9))
        assert not rule.matches(GitSignal(commits30d=10))

    def test_fallback90d_only_without_recent_activity(self):
        rule = LikelihoodRule(field="fallback90d", op="gt", value=2, score=3)
        assert rule.matches(GitSignal(commits30d=0, commits90d=5))
        assert not rule.matches(GitSignal(commits30d=1, commits90d=5))
        assert not rule.matches(GitSignal(commits30d=0, commits90d=2))

    def test_dormant_file(self):
        rule = LikelihoodRule(field="fallback180dZero", op="eq", value=True, score=1)
        assert rule.matches(GitSignal())
        assert not rule.matches(GitSignal(commits180d=1))

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LikelihoodRule.model_validate({"field": "commits7d", "op": ">=", "value": 1, "score": 5})


class TestKeywordRule:
    """Tests for substring keyword buckets."""

    def test_case_insensitive(self):
        rule = KeywordRule(score=10, keywords=("payment",))
        assert rule.matches("src/PAYMENT/calc.ts")
        assert not rule.matches("src/utils/format.ts")

    def test_empty_haystack(self):
        assert not KeywordRule(score=10, keywords=("payment",)).matches("")

    def test_buckets_ordered_by_descending_score(self):
        rules = keyword_rules({5: ["report"], 10: ["Payment"], 7: ["user"]})
        assert [r.score for r in rules] == [10, 7, 5]
        assert rules[0].keywords == ("payment",)


class TestFirstMatch:
    """Tests for the shared evaluator."""

    def test_first_hit_wins(self):
        rules = [RangeRule(gte=10, score=10), RangeRule(gte=5, score=8)]
        assert first_match(rules, 12, default=2) == 10
        assert first_match(rules, 7, default=2) == 8

    def test_default_when_nothing_matches(self):
        rules = [RangeRule(gte=10, score=10)]
        assert first_match(rules, 1, default=2) == 2

    def test_keyword_rules_pick_highest_bucket(self):
        rules = keyword_rules({10: ["payment"], 7: ["user"]})
        assert first_match(rules, "user payment profile", default=3) == 10

    def test_ascending_by_lte(self):
        rules = ascending_by_lte([
            RangeRule(lte=90, score=3),
            RangeRule(gte=95, score=0),
            RangeRule(lte=0, score=10),
        ])
        assert [r.score for r in rules] == [10, 3, 0]


class TestAdjustment:
    """Tests for CC adjustments over metric fields."""

    def test_applies_to_extra_metric_field(self):
        metrics = ComplexityMetrics(cyclomatic=5, params=6)
        assert Adjustment(field="params", op=">=", value=5, delta=2).applies(metrics)
        assert not Adjustment(field="params", op=">", value=6).applies(metrics)
        assert Adjustment(field="params", op="==", value=6).applies(metrics)

    def test_missing_field_never_applies(self):
        metrics = ComplexityMetrics(cyclomatic=5)
        assert not Adjustment(field="nesting", value=0).applies(metrics)
