"""Execution telemetry and aggregated performance models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecutionOutcome(BaseModel):
    """Outcome reported by the rule engine for one rule evaluation."""

    success: bool = Field(default=True, description="Whether evaluation completed without error")
    triggered: bool = Field(default=False, description="Whether the rule condition matched")
    error: str | None = Field(default=None, description="Error message if evaluation failed")
    email_id: str | None = Field(default=None, description="Evaluated email")


class ExecutionRecord(BaseModel):
    """One observed run of a rule. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Record unique identifier")
    rule_id: str = Field(..., description="Rule that was evaluated")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    execution_time_ms: float = Field(..., ge=0, description="Evaluation latency in milliseconds")
    success: bool = Field(default=True)
    triggered: bool = Field(default=False)
    error_message: str | None = Field(default=None)
    email_id: str | None = Field(default=None)
    user_id: str | None = Field(default=None)
    context: dict[str, Any] = Field(default_factory=dict)


class RuleMetrics(BaseModel):
    """Aggregate statistics for one rule over a time window."""

    total_executions: int = Field(default=0, ge=0)
    total_execution_time_ms: float = Field(default=0, ge=0)
    average_execution_time_ms: float = Field(default=0, ge=0)
    min_execution_time_ms: float = Field(default=0, ge=0)
    max_execution_time_ms: float = Field(default=0, ge=0)
    median_execution_time_ms: float = Field(default=0, ge=0)
    p95_execution_time_ms: float = Field(default=0, ge=0)
    p99_execution_time_ms: float = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    trigger_count: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0, ge=0, le=100)
    trigger_rate: float = Field(default=0, ge=0, le=100)
    first_execution: datetime | None = None
    last_execution: datetime | None = None


class RuleReference(BaseModel):
    """A rule singled out in a summary, with the value it was chosen for."""

    rule_id: str
    value: float


class MetricsSummary(BaseModel):
    """Cross-rule summary for one user and time window."""

    total_rules: int = 0
    total_executions: int = 0
    average_execution_time_ms: float = 0
    overall_success_rate: float = 0
    overall_trigger_rate: float = 0
    fastest_rule: RuleReference | None = None
    slowest_rule: RuleReference | None = None
    most_reliable_rule: RuleReference | None = None


class AllRulesMetrics(BaseModel):
    """Per-rule metrics plus summary for a user."""

    summary: MetricsSummary = Field(default_factory=MetricsSummary)
    rules: dict[str, RuleMetrics] = Field(default_factory=dict)
    time_range: str = "24h"
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TrendPoint(BaseModel):
    """Daily value in a trend series."""

    date: str
    value: float


class PerformanceTrends(BaseModel):
    """Daily performance series for one rule."""

    execution_time: list[TrendPoint] = Field(default_factory=list)
    success_rate: list[TrendPoint] = Field(default_factory=list)
    trigger_rate: list[TrendPoint] = Field(default_factory=list)
    execution_count: list[TrendPoint] = Field(default_factory=list)


class BenchmarkBands(BaseModel):
    """Reference execution time bands in milliseconds."""

    excellent: int = 100
    good: int = 500
    acceptable: int = 1000
    poor: int = 2000


class PerformanceBenchmarks(BaseModel):
    """30-day execution time distribution across all rules of a user."""

    average_execution_time_ms: float = 0
    median_execution_time_ms: float = 0
    p95_execution_time_ms: float = 0
    p99_execution_time_ms: float = 0
    min_execution_time_ms: float = 0
    max_execution_time_ms: float = 0
    overall_success_rate: float = 0
    bands: BenchmarkBands = Field(default_factory=BenchmarkBands)


class SlowRule(BaseModel):
    """Rule with executions at or above the slow threshold."""

    rule_id: str
    occurrences: int = 0
    total_time_ms: float = 0
    average_time_ms: float = 0
    max_time_ms: float = 0
    last_occurrence: datetime | None = None


class HistoryPoint(BaseModel):
    """Single execution kept in the in-memory rolling window."""

    timestamp: datetime
    execution_time_ms: float
    success: bool
    triggered: bool


class RollingAggregate(BaseModel):
    """In-process running totals for a rule.

    Only the last ``rolling_window_size`` points are kept in ``history``;
    the counters cover every execution recorded by this process.
    """

    total_executions: int = 0
    total_execution_time_ms: float = 0
    average_execution_time_ms: float = 0
    success_count: int = 0
    failure_count: int = 0
    trigger_count: int = 0
    last_execution: datetime | None = None
    history: list[HistoryPoint] = Field(default_factory=list)
