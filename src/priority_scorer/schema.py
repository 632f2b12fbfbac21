"""Pydantic models for the Priority Scoring Engine.

Input records handed in by the scanner, the static analyzer and the git
miner, and the scored output consumed by the reporting layer. JSON documents
use camelCase keys; attributes are snake_case and both spellings are accepted.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class TargetType(str, Enum):
    """Kind of code unit discovered by the scanner."""
    FUNCTION = "function"
    COMPONENT = "component"
    HOOK = "hook"
    ATOM = "atom"


class Layer(str, Enum):
    """Architectural layer used to select a weight/threshold vector."""
    FOUNDATION = "foundation"
    BUSINESS = "business"
    STATE = "state"
    UI = "ui"
    UNKNOWN = "unknown"

    @classmethod
    def ordered(cls) -> list["Layer"]:
        """Layers in the order path patterns are tried."""
        return [cls.FOUNDATION, cls.BUSINESS, cls.STATE, cls.UI]


class Priority(str, Enum):
    """Priority bucket, P0 being the most urgent."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def label(self) -> str:
        return {
            Priority.P0: "Must Test",
            Priority.P1: "High Priority",
            Priority.P2: "Medium Priority",
            Priority.P3: "Low Priority",
        }[self]


class ScoringMode(str, Enum):
    """Weighting regime for the combiner."""
    LEGACY = "legacy"
    LAYERED = "layered"


class ReportStatus(str, Enum):
    """Human-maintained status column of a persisted report."""
    TODO = "TODO"
    DONE = "DONE"
    SKIP = "SKIP"


class CamelModel(BaseModel):
    """Base model accepting camelCase JSON keys and snake_case names."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# =============================================================================
# Input Models
# =============================================================================


class RoiHint(CamelModel):
    """Code-feature hints produced by the scanner.

    None means the scanner could not tell; the layer resolver treats an
    explicit False differently from an unknown value.
    """
    is_pure: Optional[bool] = None
    dependencies_injectable: Optional[bool] = None
    multi_platform_strong: Optional[bool] = None
    needs_ui: Optional[bool] = Field(None, alias="needsUI")

    class Config:
        frozen = True


class Target(CamelModel):
    """A function or component discovered by the scanner."""
    name: str
    path: str
    type: TargetType = TargetType.FUNCTION.value
    layer: str = Layer.UNKNOWN.value
    internal: bool = False
    loc: int = 0
    exported: bool = False
    impact_hint: str = ""
    roi_hint: RoiHint = Field(default_factory=RoiHint)
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True
        use_enum_values = True

    @property
    def key(self) -> str:
        """Stable identifier shared by metrics, overrides and reports."""
        return f"{self.path}#{self.name}"


class ComplexityMetrics(CamelModel):
    """Static complexity numbers for one target.

    Extra numeric fields are kept so CC adjustments can refer to them.
    """
    cyclomatic: int
    cognitive: Optional[int] = None

    class Config:
        extra = "allow"


class GitSignal(CamelModel):
    """Change-history counters for one file."""
    commits30d: int = 0
    commits90d: int = 0
    commits180d: int = 0
    authors30d: int = 0
    in_category: bool = False
    multi_platform: bool = False


class DependencyGraphNode(CamelModel):
    """Import-graph facts for one file."""
    category: str
    deps: list[str] = Field(default_factory=list)
    cross_module_score: int = 0
    fan_out: int = 0
    fan_in: int = 0

    class Config:
        frozen = True


# =============================================================================
# AI Suggestions
# =============================================================================

SUGGESTED_BC_VALUES = (8, 9, 10)
SUGGESTED_ER_VALUES = (7, 8, 9, 10)
TESTABILITY_ADJUSTMENTS = ("-2", "-1", "+1", "+2")


class SuggestionItem(CamelModel):
    """One pattern-matched suggestion from the AI analysis step."""
    pattern: str
    confidence: float = 0.0
    reason: str = ""
    evidence: list[str] = Field(default_factory=list)
    suggested_bc: Optional[int] = Field(None, alias="suggestedBC")
    suggested_er: Optional[int] = Field(None, alias="suggestedER")
    adjustment: Optional[str] = None


class AISuggestions(CamelModel):
    """Suggestions grouped by the signal they adjust."""
    business_critical_paths: list[SuggestionItem] = Field(default_factory=list)
    high_risk_modules: list[SuggestionItem] = Field(default_factory=list)
    testability_adjustments: list[SuggestionItem] = Field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.business_critical_paths)
            + len(self.high_risk_modules)
            + len(self.testability_adjustments)
        )


# =============================================================================
# Output Models
# =============================================================================


class ScoredTarget(Target):
    """A target with its signals, score and priority bucket."""
    bc: int = Field(alias="BC")
    cc: int = Field(alias="CC")
    er: int = Field(alias="ER")
    roi: int = Field(alias="ROI")
    testability: int
    dependency_count: int
    likelihood: int
    impact: int
    coverage_pct: Optional[float] = None
    coverage_score: Optional[int] = None
    coverage_boost: float = 0.0
    score: float
    priority: Priority
    layer_name: Optional[str] = None

    class Config:
        frozen = True
        use_enum_values = True


class TargetFailure(CamelModel):
    """A target that could not be scored."""
    key: str
    error: str


class ScoringResult(CamelModel):
    """Outcome of scoring a batch of targets."""
    scoring_mode: ScoringMode
    scored: list[ScoredTarget] = Field(default_factory=list)
    failures: list[TargetFailure] = Field(default_factory=list)

    class Config:
        use_enum_values = True

