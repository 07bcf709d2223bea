"""Tests for suite run reporting helpers."""

import pytest
from conftest import make_rule

from ruleinsight.container import Container
from ruleinsight.models.dashboard import RuleStatus
from ruleinsight.models.testing import (
    ExecutionSummary,
    TestCase,
    TestReport,
    TestResult,
    TestStatus,
    TestType,
)
from ruleinsight.testing.report import (
    calculate_coverage,
    compare_with_previous,
    create_batches,
    execution_summary,
    recommend_followups,
)


def make_result(case_id: str, status: TestStatus = TestStatus.PASSED, time_ms: float = 10) -> TestResult:
    return TestResult(test_id=f"test_{case_id}", test_case_id=case_id, status=status, execution_time_ms=time_ms)


def test_batches_are_contiguous() -> None:
    batches = create_batches(list(range(12)), 5)

    assert [len(batch) for batch in batches] == [5, 5, 2]
    assert batches[2] == [10, 11]
    assert create_batches([], 5) == []

    with pytest.raises(ValueError):
        create_batches([1], 0)


def test_execution_summary() -> None:
    summary = execution_summary([
        make_result("a", time_ms=10),
        make_result("b", time_ms=20),
        make_result("c", TestStatus.FAILED, time_ms=30),
    ])

    assert summary.total == 3
    assert summary.passed == 2
    assert summary.failed == 1
    assert summary.pass_rate == 67
    assert summary.average_execution_time_ms == 20
    assert summary.total_execution_time_ms == 60
    assert summary.status == TestStatus.FAILED
    assert execution_summary([]) == ExecutionSummary()


def test_coverage_per_type() -> None:
    rule = make_rule()
    cases = [
        TestCase(id="unit_a", type=TestType.UNIT, rule=rule),
        TestCase(id="unit_b", type=TestType.UNIT, rule=rule),
        TestCase(id="perf_a", type=TestType.PERFORMANCE, rule=rule),
    ]

    coverage = calculate_coverage(cases, [make_result("unit_a")])

    assert coverage["unit"].total == 2
    assert coverage["unit"].coverage == 50
    assert coverage["performance"].executed == 0


def test_recommendations_flag_failures_and_slow_tests() -> None:
    recommendations = recommend_followups(
        [make_result("a", TestStatus.FAILED), make_result("b", time_ms=6000)],
        slow_threshold_ms=5000,
    )

    assert [r.title for r in recommendations] == ["Failed Tests Detected", "Slow Tests Detected"]
    assert recommendations[0].description == "1 tests failed. Review and fix issues."
    assert recommend_followups([make_result("a")], slow_threshold_ms=5000) == []


def test_trends_against_previous_run() -> None:
    previous = TestReport(
        test_suite_id="suite_1",
        rule_id="rule_1",
        run_id="run_a",
        summary=ExecutionSummary(total=2, passed=1, failed=1, pass_rate=50, average_execution_time_ms=30),
    )
    results = [make_result("a"), make_result("b", TestStatus.FAILED)]
    summary = ExecutionSummary(total=2, passed=1, failed=1, pass_rate=50, average_execution_time_ms=10)

    trends = compare_with_previous(
        summary,
        results,
        previous,
        [make_result("a", TestStatus.FAILED), make_result("b", TestStatus.FAILED)],
    )

    assert trends.previous_run_id == "run_a"
    assert trends.pass_rate_trend == "stable"
    assert trends.performance_trend == "improving"
    assert trends.failure_patterns == ["b"]
    assert compare_with_previous(summary, results, None).previous_run_id is None


@pytest.mark.asyncio
async def test_container_shares_one_redis_client(redis, settings) -> None:
    container = Container(redis=redis, settings=settings)

    assert container.metrics_store.redis is redis
    assert container.suite_store.redis is redis
    assert container.settings is settings
    assert await container.email_logs.ping() is True


@pytest.mark.asyncio
async def test_container_dashboard_reads_saved_rules(redis, settings) -> None:
    container = Container(redis=redis, settings=settings)
    await container.rule_store.save(make_rule("rule_saved"))

    result = await container.dashboard.get_dashboard_metrics("user_1")

    assert not result.degraded
    assert [rule.rule_id for rule in result.data.rules] == ["rule_saved"]
    assert result.data.rules[0].status == RuleStatus.UNTESTED
