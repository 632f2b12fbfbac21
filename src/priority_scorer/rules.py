"""Rule variants and the shared first-match evaluator.

Every heuristic table in the scoring config is an ordered list of rules.
Each rule knows how to test one subject and carries the score it yields;
`first_match` walks the list and returns the score of the first hit.

Three variants exist:
- threshold: likelihood rules over git counters
- range: numeric bands (cyclomatic, dependency fan-in, coverage percent)
- keyword: substring buckets (business criticality, impact)
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from .schema import GitSignal


class Rule(Protocol):
    """Anything with a score that can test a subject."""
    score: int

    def matches(self, subject: Any) -> bool:
        ...


def first_match(rules: Iterable[Rule], subject: Any, default: int) -> int:
    """Return the score of the first rule matching subject, else default."""
    for rule in rules:
        if rule.matches(subject):
            return rule.score
    return default


class RangeRule(BaseModel):
    """Numeric band. All bounds that are present must hold."""
    kind: Literal["range"] = "range"
    eq: Optional[float] = None
    gt: Optional[float] = None
    gte: Optional[float] = None
    lt: Optional[float] = None
    lte: Optional[float] = None
    score: int

    def matches(self, subject: Any) -> bool:
        if subject is None:
            return False
        value = float(subject)
        if math.isnan(value):
            return False
        if self.eq is not None and value != self.eq:
            return False
        if self.gt is not None and not value > self.gt:
            return False
        if self.gte is not None and not value >= self.gte:
            return False
        if self.lt is not None and not value < self.lt:
            return False
        if self.lte is not None and not value <= self.lte:
            return False
        return True


class LikelihoodRule(BaseModel):
    """Threshold rule over git change counters.

    `commits30d` rules test 30-day activity; `fallback90d` only applies when
    there was no 30-day activity; `fallback180dZero` marks dormant files.
    """
    kind: Literal["threshold"] = "threshold"
    field: Literal["commits30d", "fallback90d", "fallback180dZero"]
    op: Literal[">=", ">", "==", "between", "gt", "eq"] = ">="
    value: Optional[Any] = None
    min: Optional[int] = None
    max: Optional[int] = None
    score: int

    def matches(self, subject: GitSignal) -> bool:
        c30, c90, c180 = subject.commits30d, subject.commits90d, subject.commits180d

        if self.field == "commits30d":
            if self.op == "between":
                low = self.min if self.min is not None else 0
                high = self.max if self.max is not None else math.inf
                return low <= c30 <= high
            if self.value is None:
                return False
            if self.op in (">=",):
                return c30 >= self.value
            if self.op in (">", "gt"):
                return c30 > self.value
            if self.op in ("==", "eq"):
                return c30 == self.value
            return False

        if self.field == "fallback90d" and self.op in ("gt", ">"):
            return c30 == 0 and self.value is not None and c90 > self.value

        if self.field == "fallback180dZero" and self.op in ("eq", "=="):
            return c90 == 0 and c180 == 0 and self.value is True

        return False


@dataclass(frozen=True)
class KeywordRule:
    """Substring bucket: any keyword contained in the haystack is a hit."""
    score: int
    keywords: tuple[str, ...] = field(default_factory=tuple)
    kind: str = "keyword"

    def matches(self, subject: str) -> bool:
        haystack = (subject or "").lower()
        return any(keyword in haystack for keyword in self.keywords if keyword)


def keyword_rules(buckets: dict[int, list[str]]) -> list[KeywordRule]:
    """Build keyword rules ordered by descending score."""
    return [
        KeywordRule(score=score, keywords=tuple(str(k).lower() for k in buckets[score]))
        for score in sorted(buckets, reverse=True)
    ]


def ascending_by_lte(rules: Iterable[RangeRule]) -> list[RangeRule]:
    """Order `lte` bands from the tightest upward; rules without `lte` go last."""
    return sorted(rules, key=lambda r: r.lte if r.lte is not None else math.inf)


class Adjustment(BaseModel):
    """Additive tweak applied when a metric field satisfies a comparison."""
    field: str
    op: Literal[">=", ">", "=="] = ">="
    value: float
    delta: int = Field(1, description="Amount added to the base score when the rule fires")

    def applies(self, metrics: Any) -> bool:
        actual = getattr(metrics, self.field, None)
        if actual is None:
            return False
        if self.op == ">=":
            return actual >= self.value
        if self.op == ">":
            return actual > self.value
        return actual == self.value
