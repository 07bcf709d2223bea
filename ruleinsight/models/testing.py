"""Test suite, test case and test result models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ruleinsight.models.rule import Rule


class TestType(str, Enum):
    """Test case category."""

    __test__ = False

    UNIT = "unit"
    INTEGRATION = "integration"
    PERFORMANCE = "performance"
    REGRESSION = "regression"
    EDGE_CASE = "edge_case"


class SuiteStatus(str, Enum):
    """Test suite lifecycle state."""

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# created -> running -> completed | failed; finished suites may be re-run
SUITE_TRANSITIONS: dict[SuiteStatus, frozenset[SuiteStatus]] = {
    SuiteStatus.CREATED: frozenset({SuiteStatus.RUNNING}),
    SuiteStatus.RUNNING: frozenset({SuiteStatus.COMPLETED, SuiteStatus.FAILED}),
    SuiteStatus.COMPLETED: frozenset({SuiteStatus.RUNNING}),
    SuiteStatus.FAILED: frozenset({SuiteStatus.RUNNING}),
}


class TestStatus(str, Enum):
    """Outcome of one test case execution."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"


class ExpectedResult(BaseModel):
    """Expected rule outcome."""

    triggered: bool
    action: str | None = None
    target: str | None = None
    integration_success: bool | None = None


class PerformanceCriteria(BaseModel):
    """Pass criteria for performance test cases."""

    iterations: int = Field(default=100, ge=1)
    max_execution_time_ms: float = Field(default=500, gt=0)
    min_success_rate: float = Field(default=95, ge=0, le=100)


class ExpectedBehavior(BaseModel):
    """Expected behaviour for edge case inputs."""

    should_not_crash: bool = True
    should_return_default: bool = False
    should_handle_gracefully: bool = False


class TestCase(BaseModel):
    """Single test case for a rule."""

    __test__ = False

    id: str
    type: TestType
    name: str = ""
    description: str = ""
    rule: Rule
    test_data: dict[str, Any] | None = None
    expected_result: ExpectedResult | None = None
    performance_criteria: PerformanceCriteria | None = None
    baseline_result: ExpectedResult | None = None
    expected_behavior: ExpectedBehavior | None = None
    edge_case_type: str | None = None
    dependencies: list[str] = Field(default_factory=list)


class SuiteConfiguration(BaseModel):
    """Execution configuration stored with a suite."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    max_concurrent_tests: int = Field(default=5, ge=1)
    parallel_execution: bool = True


class ExecutionSummary(BaseModel):
    """Aggregate of one suite run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: int = 0
    average_execution_time_ms: float = 0
    total_execution_time_ms: float = 0
    status: TestStatus = TestStatus.PASSED


class SuiteRun(BaseModel):
    """Bookkeeping of one execution pass of a suite."""

    run_id: str
    status: SuiteStatus
    started_at: datetime
    completed_at: datetime | None = None
    test_types: list[TestType] | None = None
    summary: ExecutionSummary | None = None
    error: str | None = None


class TestSuite(BaseModel):
    """Named collection of test cases for one rule."""

    __test__ = False

    id: str
    rule_id: str
    user_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    test_types: list[TestType] = Field(default_factory=list)
    test_cases: list[TestCase] = Field(default_factory=list)
    configuration: SuiteConfiguration = Field(default_factory=SuiteConfiguration)
    status: SuiteStatus = SuiteStatus.CREATED
    last_executed: datetime | None = None
    runs: list[SuiteRun] = Field(default_factory=list)
    metadata: dict[str, int] = Field(default_factory=dict)


class TestResult(BaseModel):
    """Outcome of one execution of one test case. Immutable."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_id: str
    test_case_id: str
    suite_id: str | None = None
    run_id: str | None = None
    test_type: TestType | None = None
    status: TestStatus
    execution_time_ms: float = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    result: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    cancelled: bool = False


class CoverageEntry(BaseModel):
    """Executed versus defined cases for one test type."""

    total: int
    executed: int
    coverage: int


class TestRecommendation(BaseModel):
    """Follow-up suggested by a test report."""

    __test__ = False

    type: str
    title: str
    description: str
    action: str


class TestTrends(BaseModel):
    """Comparison of this run with the previous run of the same suite."""

    __test__ = False

    pass_rate_trend: str = "stable"
    performance_trend: str = "stable"
    failure_patterns: list[str] = Field(default_factory=list)
    previous_run_id: str | None = None


class TestReport(BaseModel):
    """Detailed report of one suite run."""

    __test__ = False

    test_suite_id: str
    rule_id: str
    run_id: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    summary: ExecutionSummary
    coverage: dict[str, CoverageEntry] = Field(default_factory=dict)
    recommendations: list[TestRecommendation] = Field(default_factory=list)
    trends: TestTrends = Field(default_factory=TestTrends)
    total_test_cases: int = 0
    executed_test_cases: int = 0
    execution_time_ms: float = 0


class SuiteExecution(BaseModel):
    """Value returned by ``execute_test_suite``."""

    test_suite_id: str
    run_id: str
    status: SuiteStatus
    results: list[TestResult] = Field(default_factory=list)
    summary: ExecutionSummary
    report: TestReport | None = None
    batch_count: int = 0


class RegressionBaseline(BaseModel):
    """Recorded rule outcome used as expected result for regression tests."""

    rule_id: str
    test_data: dict[str, Any] | None = None
    result: ExpectedResult
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RunningTest(BaseModel):
    """Entry of the running-tests registry."""

    __test__ = False

    test_id: str
    test_case_id: str
    suite_id: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SuiteOptions(BaseModel):
    """Options of ``create_test_suite``."""

    test_types: list[TestType] = Field(
        default_factory=lambda: [TestType.UNIT, TestType.INTEGRATION, TestType.PERFORMANCE],
        description="Generated test categories",
    )
    include_edge_cases: bool = Field(default=True, description="Add empty and null input cases")
    include_regression_tests: bool = Field(default=True, description="Add one case per stored baseline")
    custom_test_cases: list[TestCase] = Field(default_factory=list, description="Appended verbatim")
    configuration: SuiteConfiguration | None = Field(default=None, description="Overrides settings")
    user_id: str | None = None


class ExecutionOptions(BaseModel):
    """Options of ``execute_test_suite``."""

    test_types: list[TestType] | None = Field(default=None, description="Run only these types")
    parallel: bool | None = Field(default=None, description="Overrides the suite configuration")
    generate_report: bool = True
    record_baselines: bool = Field(
        default=False,
        description="Store passing unit outcomes as regression baselines",
    )
