"""Suite run summaries, coverage, recommendations and trends."""

from typing import Sequence, TypeVar

from ruleinsight.analytics.statistics import round_half_up
from ruleinsight.models.testing import (
    CoverageEntry,
    ExecutionSummary,
    TestCase,
    TestRecommendation,
    TestReport,
    TestResult,
    TestStatus,
    TestSuite,
    TestTrends,
)

T = TypeVar("T")


def create_batches(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into contiguous batches of at most ``size``."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[start:start + size]) for start in range(0, len(items), size)]


def execution_summary(results: Sequence[TestResult]) -> ExecutionSummary:
    total = len(results)
    passed = sum(1 for r in results if r.status == TestStatus.PASSED)
    failed = total - passed
    total_time = sum(r.execution_time_ms for r in results)

    return ExecutionSummary(
        total=total,
        passed=passed,
        failed=failed,
        pass_rate=int(round_half_up(passed / total * 100)) if total else 0,
        average_execution_time_ms=round_half_up(total_time / total) if total else 0,
        total_execution_time_ms=total_time,
        status=TestStatus.FAILED if failed else TestStatus.PASSED,
    )


def calculate_coverage(
    test_cases: Sequence[TestCase],
    results: Sequence[TestResult],
) -> dict[str, CoverageEntry]:
    """Executed versus defined cases, per test type."""
    coverage = {}
    for test_type in dict.fromkeys(case.type for case in test_cases):
        case_ids = {case.id for case in test_cases if case.type == test_type}
        total = sum(1 for case in test_cases if case.type == test_type)
        executed = sum(1 for r in results if r.test_case_id in case_ids)
        coverage[test_type.value] = CoverageEntry(
            total=total,
            executed=executed,
            coverage=int(round_half_up(executed / total * 100)) if total else 0,
        )
    return coverage


def recommend_followups(
    results: Sequence[TestResult],
    slow_threshold_ms: float,
) -> list[TestRecommendation]:
    recommendations = []

    failed = [r for r in results if r.status == TestStatus.FAILED]
    if failed:
        recommendations.append(
            TestRecommendation(
                type="error",
                title="Failed Tests Detected",
                description=f"{len(failed)} tests failed. Review and fix issues.",
                action="Review failed test results and fix underlying issues",
            )
        )

    slow = [r for r in results if r.execution_time_ms > slow_threshold_ms]
    if slow:
        recommendations.append(
            TestRecommendation(
                type="performance",
                title="Slow Tests Detected",
                description=f"{len(slow)} tests are running slowly.",
                action="Optimize test execution or rule performance",
            )
        )

    return recommendations


def _direction(current: float, previous: float, higher_is_better: bool) -> str:
    if current == previous:
        return "stable"
    improved = current > previous if higher_is_better else current < previous
    return "improving" if improved else "declining"


def compare_with_previous(
    summary: ExecutionSummary,
    results: Sequence[TestResult],
    previous: TestReport | None,
    previous_results: Sequence[TestResult] = (),
) -> TestTrends:
    """Compare a run with the previous run of the same suite.

    Args:
        summary: Summary of the current run
        results: Results of the current run
        previous: Report of the previous run, None for a first run
        previous_results: Results of the previous run

    Returns:
        Trends, all stable without a previous run
    """
    if previous is None:
        return TestTrends()

    failed_before = {r.test_case_id for r in previous_results if r.status == TestStatus.FAILED}
    failure_patterns = sorted(
        {r.test_case_id for r in results if r.status == TestStatus.FAILED} & failed_before
    )

    return TestTrends(
        pass_rate_trend=_direction(summary.pass_rate, previous.summary.pass_rate, True),
        performance_trend=_direction(
            summary.average_execution_time_ms,
            previous.summary.average_execution_time_ms,
            False,
        ),
        failure_patterns=failure_patterns,
        previous_run_id=previous.run_id,
    )


def build_report(
    suite: TestSuite,
    run_id: str,
    results: Sequence[TestResult],
    slow_threshold_ms: float,
    previous: TestReport | None = None,
    previous_results: Sequence[TestResult] = (),
) -> TestReport:
    summary = execution_summary(results)
    return TestReport(
        test_suite_id=suite.id,
        rule_id=suite.rule_id,
        run_id=run_id,
        summary=summary,
        coverage=calculate_coverage(suite.test_cases, results),
        recommendations=recommend_followups(results, slow_threshold_ms),
        trends=compare_with_previous(summary, results, previous, previous_results),
        total_test_cases=len(suite.test_cases),
        executed_test_cases=len(results),
        execution_time_ms=summary.total_execution_time_ms,
    )
