"""Dashboard aggregation models."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from ruleinsight.models.execution import MetricsSummary, PerformanceBenchmarks, RuleMetrics, SlowRule
from ruleinsight.models.impact import ImpactLevel
from ruleinsight.models.testing import SuiteStatus


class RuleStatus(str, Enum):
    """Operational state of a rule derived from its metrics."""

    INACTIVE = "inactive"
    UNTESTED = "untested"
    FAILING = "failing"
    SLOW = "slow"
    ACTIVE = "active"


class RuleHealth(str, Enum):
    """Health grade of a rule derived from its efficiency score."""

    INACTIVE = "inactive"
    CRITICAL = "critical"
    UNHEALTHY = "unhealthy"
    WARNING = "warning"
    HEALTHY = "healthy"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RuleOverview(BaseModel):
    """One rule as shown on the dashboard."""

    rule_id: str
    name: str = ""
    enabled: bool = True
    priority: int = 1
    metrics: RuleMetrics = Field(default_factory=RuleMetrics)
    efficiency: int = Field(default=0, ge=0, le=100)
    status: RuleStatus = RuleStatus.UNTESTED
    health: RuleHealth = RuleHealth.HEALTHY
    has_tests: bool = False


class PerformanceDistribution(BaseModel):
    """Rule count per average execution time band."""

    excellent: int = 0
    good: int = 0
    acceptable: int = 0
    poor: int = 0


class TopPerformer(BaseModel):
    rule_id: str
    efficiency: int
    average_execution_time_ms: float
    success_rate: float


class PerformanceAlert(BaseModel):
    """Per-rule finding against the user's benchmarks."""

    rule_id: str
    type: str
    severity: AlertSeverity
    message: str


class PerformanceOverview(BaseModel):
    summary: MetricsSummary = Field(default_factory=MetricsSummary)
    benchmarks: PerformanceBenchmarks = Field(default_factory=PerformanceBenchmarks)
    slow_rules: list[SlowRule] = Field(default_factory=list)
    distribution: PerformanceDistribution = Field(default_factory=PerformanceDistribution)
    top_performers: list[TopPerformer] = Field(default_factory=list)
    alerts: list[PerformanceAlert] = Field(default_factory=list)


class ImpactDistribution(BaseModel):
    """Analysis count per overall impact level."""

    high: int = 0
    medium: int = 0
    low: int = 0
    minimal: int = 0


class RiskAssessment(BaseModel):
    """Share of high impact changes among recent analyses."""

    risk_level: int = Field(default=0, ge=0, le=100)
    high_risk_changes: int = 0
    total_changes: int = 0
    risk_trend: str = "stable"


class RecentChange(BaseModel):
    rule_id: str
    analysis_id: str
    impact_level: ImpactLevel
    impact_score: float
    timestamp: datetime
    recommendations: list[str] = Field(default_factory=list)


class ImpactOverview(BaseModel):
    total_analyses: int = 0
    distribution: ImpactDistribution = Field(default_factory=ImpactDistribution)
    recent_changes: list[RecentChange] = Field(default_factory=list)
    high_impact_changes: int = 0
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)


class TestCoverageSummary(BaseModel):
    """Share of the user's rules with test results in the window."""

    __test__ = False

    overall: int = Field(default=0, ge=0, le=100)
    total_rules: int = 0
    tested_rules: int = 0
    untested_rules: int = 0


class TestResultsSummary(BaseModel):
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: int = 0
    average_execution_time_ms: float = 0


class RecentSuite(BaseModel):
    id: str
    rule_id: str
    status: SuiteStatus
    created_at: datetime
    last_executed: datetime | None = None
    total_tests: int = 0


class TestingOverview(BaseModel):
    __test__ = False

    total_test_suites: int = 0
    total_tests: int = 0
    coverage: TestCoverageSummary = Field(default_factory=TestCoverageSummary)
    results: TestResultsSummary = Field(default_factory=TestResultsSummary)
    recent_suites: list[RecentSuite] = Field(default_factory=list)


class SystemHealth(BaseModel):
    """Rule activation and last-24h execution health of a user."""

    total_rules: int = 0
    active_rules: int = 0
    inactive_rules: int = 0
    recent_activity: int = 0
    system_status: str = "unknown"
    health_score: int = Field(default=0, ge=0, le=100)
    uptime: int = Field(default=0, ge=0, le=100)
    last_activity: datetime | None = None


class DashboardAlert(BaseModel):
    type: str
    severity: AlertSeverity
    title: str
    message: str
    rule_ids: list[str] = Field(default_factory=list)


class DashboardRecommendation(BaseModel):
    category: str
    priority: str
    title: str
    description: str
    actions: list[str] = Field(default_factory=list)
    affected_rules: list[str] = Field(default_factory=list)


class DashboardSummary(BaseModel):
    total_rules: int = 0
    active_rules: int = 0
    inactive_rules: int = 0
    healthy_rules: int = 0
    unhealthy_rules: int = 0
    average_efficiency: int = 0
    average_execution_time_ms: float = 0
    overall_success_rate: float = 0
    total_tests: int = 0
    test_coverage: int = 0
    high_impact_changes: int = 0
    system_health: str = "unknown"


class DashboardMetrics(BaseModel):
    """Everything the rule dashboard shows for one user and time window."""

    user_id: str
    time_range: str = "24h"
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    summary: DashboardSummary = Field(default_factory=DashboardSummary)
    rules: list[RuleOverview] = Field(default_factory=list)
    performance: PerformanceOverview = Field(default_factory=PerformanceOverview)
    impact: ImpactOverview = Field(default_factory=ImpactOverview)
    testing: TestingOverview = Field(default_factory=TestingOverview)
    system_health: SystemHealth = Field(default_factory=SystemHealth)
    alerts: list[DashboardAlert] = Field(default_factory=list)
    recommendations: list[DashboardRecommendation] = Field(default_factory=list)
