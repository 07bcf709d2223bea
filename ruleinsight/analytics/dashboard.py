"""Rule dashboard aggregation.

Combines performance analytics, impact analyses and test outcomes of one
user into a single ``DashboardMetrics`` snapshot. Each section degrades on
its own: a failing store replaces that section with its zero structure and
marks the whole result degraded.
"""

import asyncio
from datetime import datetime
from typing import Iterable, Sequence

from ruleinsight.analytics import statistics
from ruleinsight.analytics.cache import CacheBackend, TTLCache
from ruleinsight.analytics.performance import PerformanceAnalytics
from ruleinsight.core.config import Settings, get_settings
from ruleinsight.core.exceptions import StoreError
from ruleinsight.core.logging import get_logger
from ruleinsight.models.dashboard import (
    AlertSeverity,
    DashboardAlert,
    DashboardMetrics,
    DashboardRecommendation,
    DashboardSummary,
    ImpactDistribution,
    ImpactOverview,
    PerformanceAlert,
    PerformanceDistribution,
    PerformanceOverview,
    RecentChange,
    RecentSuite,
    RiskAssessment,
    RuleHealth,
    RuleOverview,
    RuleStatus,
    SystemHealth,
    TestCoverageSummary,
    TestingOverview,
    TestResultsSummary,
    TopPerformer,
)
from ruleinsight.models.execution import (
    AllRulesMetrics,
    BenchmarkBands,
    PerformanceBenchmarks,
    RuleMetrics,
    SlowRule,
)
from ruleinsight.models.impact import ImpactAnalysisResult, ImpactLevel
from ruleinsight.models.result import ServiceResult
from ruleinsight.models.rule import Rule
from ruleinsight.models.testing import TestResult, TestStatus, TestSuite
from ruleinsight.observability.metrics import DEGRADED_READS
from ruleinsight.storage.impact_store import ImpactStore
from ruleinsight.storage.rule_store import RuleStore
from ruleinsight.storage.test_store import TestSuiteStore

logger = get_logger(__name__)

FAILING_SUCCESS_RATE = 80
ACCEPTABLE_SUCCESS_RATE = 90
LOW_EFFICIENCY = 70
CRITICAL_EFFICIENCY = 50
TOP_PERFORMERS = 5
RECENT_CHANGES = 10
RECENT_SUITES = 5


def rule_status(enabled: bool, metrics: RuleMetrics, bands: BenchmarkBands) -> RuleStatus:
    if not enabled:
        return RuleStatus.INACTIVE
    if metrics.total_executions == 0:
        return RuleStatus.UNTESTED
    if metrics.success_rate < FAILING_SUCCESS_RATE:
        return RuleStatus.FAILING
    if metrics.average_execution_time_ms > bands.poor:
        return RuleStatus.SLOW
    return RuleStatus.ACTIVE


def rule_health(enabled: bool, metrics: RuleMetrics, efficiency: int) -> RuleHealth:
    """Grade a rule by efficiency first, then by success rate."""
    if not enabled:
        return RuleHealth.INACTIVE
    if efficiency < CRITICAL_EFFICIENCY:
        return RuleHealth.CRITICAL
    if efficiency < LOW_EFFICIENCY:
        return RuleHealth.UNHEALTHY
    if metrics.success_rate < ACCEPTABLE_SUCCESS_RATE:
        return RuleHealth.WARNING
    return RuleHealth.HEALTHY


def performance_distribution(
    rules: Iterable[RuleMetrics],
    bands: BenchmarkBands,
) -> PerformanceDistribution:
    """Count rules per average execution time band (upper bounds exclusive)."""
    distribution = PerformanceDistribution()
    for metrics in rules:
        average = metrics.average_execution_time_ms
        if average < bands.excellent:
            distribution.excellent += 1
        elif average < bands.good:
            distribution.good += 1
        elif average < bands.acceptable:
            distribution.acceptable += 1
        else:
            distribution.poor += 1
    return distribution


def top_performers(rules: Sequence[RuleOverview], limit: int = TOP_PERFORMERS) -> list[TopPerformer]:
    """Executed rules with the highest efficiency, ties in input order."""
    executed = [rule for rule in rules if rule.metrics.total_executions > 0]
    ranked = sorted(executed, key=lambda rule: rule.efficiency, reverse=True)
    return [
        TopPerformer(
            rule_id=rule.rule_id,
            efficiency=rule.efficiency,
            average_execution_time_ms=rule.metrics.average_execution_time_ms,
            success_rate=rule.metrics.success_rate,
        )
        for rule in ranked[:limit]
    ]


def performance_alerts(
    rules: dict[str, RuleMetrics],
    benchmarks: PerformanceBenchmarks,
) -> list[PerformanceAlert]:
    """Rules slower than the user's p95 or below the acceptable success rate."""
    alerts = []
    for rule_id, metrics in rules.items():
        if benchmarks.p95_execution_time_ms and (
            metrics.average_execution_time_ms > benchmarks.p95_execution_time_ms
        ):
            alerts.append(
                PerformanceAlert(
                    rule_id=rule_id,
                    type="slow_performance",
                    severity=AlertSeverity.WARNING,
                    message=(
                        f"Rule execution time ({metrics.average_execution_time_ms}ms) "
                        "exceeds 95th percentile"
                    ),
                )
            )
        if metrics.success_rate < ACCEPTABLE_SUCCESS_RATE:
            alerts.append(
                PerformanceAlert(
                    rule_id=rule_id,
                    type="low_success_rate",
                    severity=AlertSeverity.ERROR,
                    message=f"Rule success rate ({metrics.success_rate}%) is below acceptable threshold",
                )
            )
    return alerts


def impact_distribution(analyses: Iterable[ImpactAnalysisResult]) -> ImpactDistribution:
    distribution = ImpactDistribution()
    for analysis in analyses:
        level = analysis.impact.overall.level.value
        setattr(distribution, level, getattr(distribution, level) + 1)
    return distribution


def risk_assessment(analyses: Sequence[ImpactAnalysisResult]) -> RiskAssessment:
    """Share of high impact analyses.

    The trend is ``increasing`` above 20%, ``decreasing`` below 5%.
    """
    total = len(analyses)
    high = sum(1 for a in analyses if a.impact.overall.level == ImpactLevel.HIGH)
    share = high / total * 100 if total else 0
    if share > 20:
        trend = "increasing"
    elif share < 5:
        trend = "decreasing"
    else:
        trend = "stable"
    return RiskAssessment(
        risk_level=int(statistics.round_half_up(share)),
        high_risk_changes=high,
        total_changes=total,
        risk_trend=trend,
    )


def coverage_summary(rule_ids: Sequence[str], tested_rule_ids: set[str]) -> TestCoverageSummary:
    """Share of rules with at least one test result."""
    rule_set = set(rule_ids)
    tested = len(rule_set & tested_rule_ids)
    total = len(rule_set)
    return TestCoverageSummary(
        overall=int(statistics.round_half_up(tested / total * 100)) if total else 0,
        total_rules=total,
        tested_rules=tested,
        untested_rules=total - tested,
    )


def aggregate_test_results(results: Sequence[TestResult]) -> TestResultsSummary:
    total = len(results)
    if not total:
        return TestResultsSummary()
    passed = sum(1 for r in results if r.status == TestStatus.PASSED)
    failed = sum(1 for r in results if r.status == TestStatus.FAILED)
    return TestResultsSummary(
        total=total,
        passed=passed,
        failed=failed,
        pass_rate=int(statistics.round_half_up(passed / total * 100)),
        average_execution_time_ms=statistics.round_half_up(
            sum(r.execution_time_ms for r in results) / total
        ),
    )


def system_health(rules: Sequence[RuleOverview], last_day: AllRulesMetrics) -> SystemHealth:
    """Activation share and last-24h success share of a user's rules.

    Status: ``inactive`` without enabled rules, ``degraded`` below 80%
    successful executions, ``partial`` with fewer than half the rules
    enabled, ``operational`` otherwise.
    """
    total = len(rules)
    active = sum(1 for rule in rules if rule.enabled)
    executions = last_day.summary.total_executions
    success_share = last_day.summary.overall_success_rate / 100 if executions else 0

    if active == 0:
        status = "inactive"
    elif success_share < 0.8:
        status = "degraded"
    elif active < total * 0.5:
        status = "partial"
    else:
        status = "operational"

    activation_score = active / total * 100 if total else 0
    last_activity = max(
        (m.last_execution for m in last_day.rules.values() if m.last_execution),
        default=None,
    )
    return SystemHealth(
        total_rules=total,
        active_rules=active,
        inactive_rules=total - active,
        recent_activity=executions,
        system_status=status,
        health_score=int(statistics.round_half_up((activation_score + success_share * 100) / 2)),
        uptime=int(statistics.round_half_up(success_share * 100)),
        last_activity=last_activity,
    )


def overall_health(rules: Sequence[RuleOverview]) -> str:
    healthy = sum(1 for rule in rules if rule.health == RuleHealth.HEALTHY)
    ratio = healthy / len(rules) if rules else 0
    if ratio >= 0.9:
        return "excellent"
    if ratio >= 0.7:
        return "good"
    if ratio >= 0.5:
        return "fair"
    return "poor"


def build_summary(
    rules: Sequence[RuleOverview],
    performance: PerformanceOverview,
    impact: ImpactOverview,
    testing: TestingOverview,
) -> DashboardSummary:
    total = len(rules)
    active = sum(1 for rule in rules if rule.enabled)
    healthy = sum(1 for rule in rules if rule.health == RuleHealth.HEALTHY)
    efficiency = sum(rule.efficiency for rule in rules) / total if total else 0
    return DashboardSummary(
        total_rules=total,
        active_rules=active,
        inactive_rules=total - active,
        healthy_rules=healthy,
        unhealthy_rules=total - healthy,
        average_efficiency=int(statistics.round_half_up(efficiency)),
        average_execution_time_ms=performance.summary.average_execution_time_ms,
        overall_success_rate=statistics.round_half_up(performance.summary.overall_success_rate, 2),
        total_tests=testing.total_tests,
        test_coverage=testing.coverage.overall,
        high_impact_changes=impact.high_impact_changes,
        system_health=overall_health(rules),
    )


def build_alerts(rules: Sequence[RuleOverview], slow_rules: Sequence[SlowRule]) -> list[DashboardAlert]:
    """Slow, unhealthy and mostly inactive rule alerts."""
    alerts = []
    if slow_rules:
        alerts.append(
            DashboardAlert(
                type="performance",
                severity=AlertSeverity.WARNING,
                title="Slow Performing Rules Detected",
                message=f"{len(slow_rules)} rules are performing below acceptable thresholds",
                rule_ids=[rule.rule_id for rule in slow_rules],
            )
        )

    unhealthy = [r for r in rules if r.health in (RuleHealth.UNHEALTHY, RuleHealth.CRITICAL)]
    if unhealthy:
        alerts.append(
            DashboardAlert(
                type="health",
                severity=AlertSeverity.ERROR,
                title="Unhealthy Rules Detected",
                message=f"{len(unhealthy)} rules are in unhealthy state",
                rule_ids=[rule.rule_id for rule in unhealthy],
            )
        )

    inactive = [rule for rule in rules if not rule.enabled]
    if len(inactive) > len(rules) * 0.5:
        alerts.append(
            DashboardAlert(
                type="configuration",
                severity=AlertSeverity.INFO,
                title="High Number of Inactive Rules",
                message=f"{len(inactive)} out of {len(rules)} rules are inactive",
                rule_ids=[rule.rule_id for rule in inactive],
            )
        )
    return alerts


def build_recommendations(
    rules: Sequence[RuleOverview],
    slow_rules: Sequence[SlowRule],
) -> list[DashboardRecommendation]:
    recommendations = []
    if slow_rules:
        recommendations.append(
            DashboardRecommendation(
                category="performance",
                priority="high",
                title="Optimize Slow Rules",
                description="Consider optimizing rules with poor performance",
                actions=[
                    "Review rule conditions for complexity",
                    "Implement caching strategies",
                    "Consider rule consolidation",
                ],
                affected_rules=[rule.rule_id for rule in slow_rules],
            )
        )

    low_efficiency = [r for r in rules if r.enabled and r.efficiency < LOW_EFFICIENCY]
    if low_efficiency:
        recommendations.append(
            DashboardRecommendation(
                category="efficiency",
                priority="medium",
                title="Improve Rule Efficiency",
                description="Some rules have low efficiency scores",
                actions=[
                    "Review rule logic and conditions",
                    "Optimize trigger conditions",
                    "Improve error handling",
                ],
                affected_rules=[rule.rule_id for rule in low_efficiency],
            )
        )

    untested = [rule for rule in rules if not rule.has_tests]
    if untested:
        recommendations.append(
            DashboardRecommendation(
                category="testing",
                priority="medium",
                title="Add Test Coverage",
                description="Some rules lack adequate test coverage",
                actions=[
                    "Create unit tests for rules",
                    "Add integration tests",
                    "Implement automated testing",
                ],
                affected_rules=[rule.rule_id for rule in untested],
            )
        )
    return recommendations


class DashboardAnalytics:
    """Per-user dashboard snapshots, cached per (user, time range)."""

    def __init__(
        self,
        analytics: PerformanceAnalytics,
        rule_store: RuleStore,
        impact_store: ImpactStore,
        suite_store: TestSuiteStore,
        cache: CacheBackend[DashboardMetrics] | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._analytics = analytics
        self._rule_store = rule_store
        self._impact_store = impact_store
        self._suite_store = suite_store
        self._cache = cache if cache is not None else TTLCache(
            maxsize=self._settings.analytics_cache_max_entries,
            ttl_seconds=self._settings.analytics_cache_ttl_seconds,
        )
        self._lock = asyncio.Lock()

    async def get_dashboard_metrics(
        self,
        user_id: str,
        time_range: str = "24h",
        refresh: bool = False,
    ) -> ServiceResult[DashboardMetrics]:
        """Dashboard snapshot of every rule owned by a user.

        Rules are the user's stored definitions plus any rule with
        executions in the window.

        Args:
            user_id: Rule owner
            time_range: One of 1h, 24h, 7d, 30d, 90d (others mean 24h)
            refresh: Bypass the snapshot cache

        Returns:
            Snapshot, degraded when any section fell back to its default.
            Only healthy snapshots are cached.
        """
        time_range = statistics.resolve_time_range(time_range)
        cache_key = f"{user_id}:{time_range}"

        if not refresh:
            async with self._lock:
                cached = self._cache.get(cache_key)
            if cached is not None:
                return ServiceResult[DashboardMetrics].ok(cached.model_copy(deep=True))

        logger.info("Generating dashboard metrics", user_id=user_id, time_range=time_range)
        errors: list[str] = []

        stored_rules, window, benchmarks, slow_rules, last_day = await asyncio.gather(
            self._load_rules(user_id),
            self._analytics.get_all_rules_metrics(user_id, time_range),
            self._analytics.get_performance_benchmarks(user_id),
            self._analytics.get_slow_performing_rules(user_id),
            self._analytics.get_all_rules_metrics(user_id, "24h"),
        )
        for result in (stored_rules, window, benchmarks, slow_rules, last_day):
            if result.degraded:
                errors.append(result.error or "unavailable")

        known = {rule.rule_id for rule in stored_rules.data}
        rule_ids = [rule.rule_id for rule in stored_rules.data]
        rule_ids.extend(rule_id for rule_id in window.data.rules if rule_id not in known)

        since = statistics.time_filter(time_range)
        impact = await self._impact_overview(user_id, rule_ids, since, errors)
        testing, tested_rule_ids = await self._testing_overview(user_id, rule_ids, since, errors)

        efficiencies = await asyncio.gather(
            *(self._analytics.get_rule_efficiency_score(rule_id) for rule_id in rule_ids)
        )
        for efficiency in efficiencies:
            if efficiency.degraded:
                errors.append(efficiency.error or "unavailable")

        definitions = {rule.rule_id: rule for rule in stored_rules.data}
        bands = benchmarks.data.bands
        rules = [
            self._overview(
                rule_id,
                definitions.get(rule_id),
                window.data.rules.get(rule_id, RuleMetrics()),
                efficiency.data,
                rule_id in tested_rule_ids,
                bands,
            )
            for rule_id, efficiency in zip(rule_ids, efficiencies)
        ]

        performance = PerformanceOverview(
            summary=window.data.summary,
            benchmarks=benchmarks.data,
            slow_rules=slow_rules.data,
            distribution=performance_distribution(window.data.rules.values(), bands),
            top_performers=top_performers(rules),
            alerts=performance_alerts(window.data.rules, benchmarks.data),
        )
        dashboard = DashboardMetrics(
            user_id=user_id,
            time_range=time_range,
            summary=build_summary(rules, performance, impact, testing),
            rules=rules,
            performance=performance,
            impact=impact,
            testing=testing,
            system_health=system_health(rules, last_day.data),
            alerts=build_alerts(rules, slow_rules.data),
            recommendations=build_recommendations(rules, slow_rules.data),
        )

        logger.info(
            "Dashboard metrics generated",
            user_id=user_id,
            rules=len(rules),
            alerts=len(dashboard.alerts),
            degraded=bool(errors),
        )
        if errors:
            DEGRADED_READS.labels(operation="get_dashboard_metrics").inc()
            return ServiceResult.fallback(dashboard, "; ".join(dict.fromkeys(errors)))

        async with self._lock:
            self._cache.set(cache_key, dashboard)
        return ServiceResult[DashboardMetrics].ok(dashboard.model_copy(deep=True))

    async def clear_cache(self) -> int:
        async with self._lock:
            return self._cache.clear()

    async def _load_rules(self, user_id: str) -> ServiceResult[list[Rule]]:
        try:
            return ServiceResult[list[Rule]].ok(await self._rule_store.list_by_user(user_id))
        except StoreError as e:
            logger.error("Error loading dashboard rules", user_id=user_id, error=str(e))
            return ServiceResult.fallback([], e)

    async def _impact_overview(
        self,
        user_id: str,
        rule_ids: list[str],
        since: datetime,
        errors: list[str],
    ) -> ImpactOverview:
        try:
            analyses = await self._impact_store.list_since(rule_ids, since)
        except StoreError as e:
            logger.error("Error getting impact metrics", user_id=user_id, error=str(e))
            errors.append(str(e))
            return ImpactOverview()

        analyses.sort(key=lambda a: a.timestamp, reverse=True)
        assessment = risk_assessment(analyses)
        return ImpactOverview(
            total_analyses=len(analyses),
            distribution=impact_distribution(analyses),
            recent_changes=[
                RecentChange(
                    rule_id=a.rule_id,
                    analysis_id=a.analysis_id,
                    impact_level=a.impact.overall.level,
                    impact_score=a.impact.overall.score,
                    timestamp=a.timestamp,
                    recommendations=[r.title for r in a.recommendations],
                )
                for a in analyses[:RECENT_CHANGES]
            ],
            high_impact_changes=assessment.high_risk_changes,
            risk_assessment=assessment,
        )

    async def _testing_overview(
        self,
        user_id: str,
        rule_ids: list[str],
        since: datetime,
        errors: list[str],
    ) -> tuple[TestingOverview, set[str]]:
        """Testing section plus the rules that have any test suite."""
        suites: list[TestSuite] = []
        results: list[TestResult] = []
        with_suites: set[str] = set()
        tested: set[str] = set()
        try:
            for rule_id in rule_ids:
                for suite_id in await self._suite_store.list_ids_by_rule(rule_id):
                    suite = await self._suite_store.get(suite_id)
                    if suite is None:
                        continue
                    with_suites.add(rule_id)
                    if suite.created_at >= since:
                        suites.append(suite)
                    recent = [
                        result
                        for result in await self._suite_store.list_results(suite_id)
                        if result.timestamp >= since
                    ]
                    if recent:
                        tested.add(rule_id)
                    results.extend(recent)
        except StoreError as e:
            logger.error("Error getting testing metrics", user_id=user_id, error=str(e))
            errors.append(str(e))
            return TestingOverview(), with_suites

        suites.sort(key=lambda s: s.created_at, reverse=True)
        return (
            TestingOverview(
                total_test_suites=len(suites),
                total_tests=len(results),
                coverage=coverage_summary(rule_ids, tested),
                results=aggregate_test_results(results),
                recent_suites=[
                    RecentSuite(
                        id=suite.id,
                        rule_id=suite.rule_id,
                        status=suite.status,
                        created_at=suite.created_at,
                        last_executed=suite.last_executed,
                        total_tests=len(suite.test_cases),
                    )
                    for suite in suites[:RECENT_SUITES]
                ],
            ),
            with_suites,
        )

    @staticmethod
    def _overview(
        rule_id: str,
        definition: Rule | None,
        metrics: RuleMetrics,
        efficiency: int,
        has_tests: bool,
        bands: BenchmarkBands,
    ) -> RuleOverview:
        enabled = definition.enabled if definition else True
        return RuleOverview(
            rule_id=rule_id,
            name=definition.name if definition else "",
            enabled=enabled,
            priority=definition.priority if definition else 1,
            metrics=metrics,
            efficiency=efficiency,
            status=rule_status(enabled, metrics, bands),
            health=rule_health(enabled, metrics, efficiency),
            has_tests=has_tests,
        )
