"""Impact analysis domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ruleinsight.models.execution import ExecutionRecord
from ruleinsight.models.rule import Rule


class ImpactLevel(str, Enum):
    """Categorical impact level."""

    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChangeType(str, Enum):
    """Classification of a rule edit."""

    ADDITION = "addition"
    REMOVAL = "removal"
    MODIFICATION = "modification"
    NO_CHANGE = "no_change"
    UNKNOWN = "unknown"


class ImpactThresholds(BaseModel):
    """Score thresholds mapping a composite score to an ImpactLevel.

    Not validated on construction so invalid configurations can be
    inspected with ``validate_impact_thresholds``.
    """

    high: float = 0.8
    medium: float = 0.5
    low: float = 0.2


class ImpactFactor(BaseModel):
    """Sub-factor of an impact dimension."""

    score: float = Field(..., ge=0.0, le=1.0)
    change: str = Field(default="minimal", description="Qualitative size of change")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    placeholder: bool = Field(
        default=False,
        description="Fixed stand-in score, not derived from the rule or history",
    )


class PredictedPerformance(BaseModel):
    """Execution time prediction for the new rule."""

    baseline_execution_time_ms: float = 100
    predicted_execution_time_ms: float = 100
    complexity_change: int = 0
    condition_change: int = 0
    action_change: int = 0
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class ImpactDimension(BaseModel):
    """Result of analysing one impact axis."""

    name: str
    score: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    factors: dict[str, ImpactFactor] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)


class PerformanceImpact(ImpactDimension):
    """Performance axis with its execution time prediction."""

    name: str = "performance"
    predicted_performance: PredictedPerformance = Field(default_factory=PredictedPerformance)


class DimensionImpacts(BaseModel):
    """The four impact axes of one analysis."""

    performance: PerformanceImpact
    business: ImpactDimension
    operational: ImpactDimension
    risk: ImpactDimension


class OverallImpact(BaseModel):
    """Weighted composite of the four dimension scores."""

    score: float = Field(..., ge=0.0, le=1.0)
    level: ImpactLevel
    breakdown: dict[str, float] = Field(default_factory=dict)


class Recommendation(BaseModel):
    """Actionable recommendation derived from dimension scores."""

    category: str
    priority: str
    title: str
    description: str
    actions: list[str] = Field(default_factory=list)


class ImpactReport(BaseModel):
    """Overall impact plus every dimension."""

    overall: OverallImpact
    performance: PerformanceImpact
    business: ImpactDimension
    operational: ImpactDimension
    risk: ImpactDimension


class AnalysisMetadata(BaseModel):
    """Context of an impact analysis."""

    user_id: str | None = None
    change_type: ChangeType = ChangeType.UNKNOWN
    affected_systems: list[str] = Field(default_factory=list)
    degraded_dimensions: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


class ImpactAnalysisResult(BaseModel):
    """One assessment of a proposed rule change. Never mutated after creation."""

    analysis_id: str
    rule_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    old_rule: Rule
    new_rule: Rule
    impact: ImpactReport
    recommendations: list[Recommendation] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)


class HistoricalRuleData(BaseModel):
    """Baseline data loaded before analysing a change."""

    performance: list[ExecutionRecord] = Field(default_factory=list)
    email_logs: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def sample_size(self) -> int:
        return len(self.performance)


class ValidationReport(BaseModel):
    """Outcome of a scoring-logic self check."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)

    def error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)
