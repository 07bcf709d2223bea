"""Rule change impact analysis service."""

import asyncio
import uuid
from typing import Any, Callable

from ruleinsight.analytics.cache import CacheBackend, TTLCache
from ruleinsight.analytics.performance import PerformanceAnalytics
from ruleinsight.analytics.statistics import resolve_time_range, time_filter
from ruleinsight.core.config import Settings, get_settings
from ruleinsight.core.exceptions import InvalidThresholdsError, RuleInsightError, StoreError
from ruleinsight.core.logging import get_logger
from ruleinsight.impact import dimensions, scoring
from ruleinsight.impact.changes import detect_change_type, identify_affected_systems
from ruleinsight.impact.complexity import validate_rule_complexity
from ruleinsight.models.impact import (
    AnalysisMetadata,
    DimensionImpacts,
    HistoricalRuleData,
    ImpactAnalysisResult,
    ImpactDimension,
    ImpactLevel,
    ImpactReport,
    ImpactThresholds,
    OverallImpact,
    PerformanceImpact,
    ValidationReport,
)
from ruleinsight.models.result import ServiceResult
from ruleinsight.models.rule import Rule
from ruleinsight.observability.metrics import DEGRADED_READS, IMPACT_ANALYSES
from ruleinsight.observability.tracing import TraceContext
from ruleinsight.storage.auxiliary import EmailLogStore
from ruleinsight.storage.impact_store import ImpactStore
from ruleinsight.storage.metrics_store import MetricsStore

logger = get_logger(__name__)


class ImpactAnalyzer:
    """Scores proposed rule changes along four weighted dimensions."""

    def __init__(
        self,
        analytics: PerformanceAnalytics,
        metrics_store: MetricsStore,
        impact_store: ImpactStore,
        email_logs: EmailLogStore | None = None,
        thresholds: ImpactThresholds | None = None,
        cache: CacheBackend[HistoricalRuleData] | None = None,
        settings: Settings | None = None,
    ):
        """Initialize analyzer.

        Args:
            analytics: Source of baseline rule metrics
            metrics_store: Execution records for historical data
            impact_store: Analysis persistence
            email_logs: Email log lookup, history has no logs if omitted
            thresholds: Level thresholds, from settings if omitted
            cache: Historical data cache
            settings: Application settings

        Raises:
            InvalidThresholdsError: If the thresholds are inconsistent
        """
        self._settings = settings or get_settings()
        self._analytics = analytics
        self._metrics_store = metrics_store
        self._impact_store = impact_store
        self._email_logs = email_logs
        self._thresholds = self._checked(
            thresholds
            or ImpactThresholds(
                high=self._settings.impact_threshold_high,
                medium=self._settings.impact_threshold_medium,
                low=self._settings.impact_threshold_low,
            )
        )
        self._cache = cache if cache is not None else TTLCache(
            maxsize=self._settings.analytics_cache_max_entries,
            ttl_seconds=self._settings.impact_cache_ttl_seconds,
        )
        self._lock = asyncio.Lock()

    @property
    def thresholds(self) -> ImpactThresholds:
        return self._thresholds.model_copy()

    @staticmethod
    def _checked(thresholds: ImpactThresholds) -> ImpactThresholds:
        report = scoring.validate_thresholds(thresholds)
        if not report.is_valid:
            raise InvalidThresholdsError(report.errors)
        return thresholds.model_copy()

    def configure_thresholds(self, thresholds: ImpactThresholds) -> None:
        """Replace the level thresholds.

        Raises:
            InvalidThresholdsError: If the thresholds are inconsistent
        """
        self._thresholds = self._checked(thresholds)
        logger.info("Impact thresholds configured", **thresholds.model_dump())

    def validate_impact_thresholds(self, thresholds: ImpactThresholds | None = None) -> ValidationReport:
        """Check the given thresholds, or the configured ones."""
        return scoring.validate_thresholds(thresholds or self._thresholds)

    def validate_calculations(self, impacts: DimensionImpacts) -> ValidationReport:
        return scoring.validate_calculations(impacts, self._thresholds)

    def validate_rule_complexity(self, rule: Rule) -> ValidationReport:
        return validate_rule_complexity(rule)

    def calculate_overall_impact(self, impacts: DimensionImpacts) -> OverallImpact:
        return scoring.calculate_overall_impact(impacts, self._thresholds)

    async def get_historical_rule_data(
        self,
        rule_id: str,
        time_range: str | None = None,
    ) -> ServiceResult[HistoricalRuleData]:
        """Execution records and email logs used as analysis baseline.

        Args:
            rule_id: Rule ID
            time_range: Window, defaults to the configured history range

        Returns:
            Historical data, empty and degraded if the stores fail
        """
        time_range = resolve_time_range(time_range or self._settings.impact_history_range)
        cache_key = f"historical:{rule_id}:{time_range}"

        async with self._lock:
            cached = self._cache.get(cache_key)
        if cached is not None:
            return ServiceResult[HistoricalRuleData].ok(cached)

        since = time_filter(time_range)
        try:
            performance = await self._metrics_store.list_by_rule(rule_id, since)
            email_logs = await self._email_logs.list_since(rule_id, since) if self._email_logs else []
        except StoreError as e:
            DEGRADED_READS.labels(operation="get_historical_rule_data").inc()
            logger.error("Error getting historical rule data", rule_id=rule_id, error=str(e))
            return ServiceResult.fallback(HistoricalRuleData(), e)

        history = HistoricalRuleData(performance=performance, email_logs=email_logs)
        async with self._lock:
            self._cache.set(cache_key, history)
        return ServiceResult[HistoricalRuleData].ok(history)

    async def analyze_rule_change_impact(
        self,
        rule_id: str,
        old_rule: Rule,
        new_rule: Rule,
        context: dict[str, Any] | None = None,
    ) -> ServiceResult[ImpactAnalysisResult]:
        """Assess a proposed rule change.

        Args:
            rule_id: Rule being changed
            old_rule: Current definition
            new_rule: Proposed definition
            context: Caller context, ``user_id`` is recorded

        Returns:
            Persisted analysis. Degraded when the baseline or a dimension
            could not be computed, or the default analysis if everything
            failed.
        """
        context = context or {}
        analysis_id = f"impact_{rule_id}_{uuid.uuid4().hex[:12]}"

        with TraceContext("impact_analysis", rule_id=rule_id, analysis_id=analysis_id):
            logger.info("Starting rule impact analysis", rule_id=rule_id, analysis_id=analysis_id)
            try:
                result, problems = await self._analyze(analysis_id, rule_id, old_rule, new_rule, context)
            except Exception as e:
                DEGRADED_READS.labels(operation="analyze_rule_change_impact").inc()
                logger.error(
                    "Error analyzing rule change impact",
                    rule_id=rule_id,
                    error=str(e),
                    exc_info=True,
                )
                return ServiceResult.fallback(
                    self._default_analysis(rule_id, old_rule, new_rule, context),
                    e,
                )

            await self._store_result(result)
            IMPACT_ANALYSES.labels(level=result.impact.overall.level.value).inc()
            logger.info(
                "Rule impact analysis completed",
                rule_id=rule_id,
                analysis_id=analysis_id,
                overall_impact=result.impact.overall.score,
                confidence=result.confidence,
                degraded_dimensions=result.metadata.degraded_dimensions,
            )

        if problems:
            return ServiceResult.fallback(result, "; ".join(problems))
        return ServiceResult[ImpactAnalysisResult].ok(result)

    async def _analyze(
        self,
        analysis_id: str,
        rule_id: str,
        old_rule: Rule,
        new_rule: Rule,
        context: dict[str, Any],
    ) -> tuple[ImpactAnalysisResult, list[str]]:
        problems = []
        history = await self.get_historical_rule_data(rule_id)
        if history.degraded:
            problems.append(f"historical data unavailable: {history.error}")

        outcomes = await asyncio.gather(
            self._analyze_performance(rule_id, old_rule, new_rule, history.data),
            self._run_dimension(dimensions.analyze_business, old_rule, new_rule, history.data),
            self._run_dimension(dimensions.analyze_operational, old_rule, new_rule, history.data),
            self._run_dimension(dimensions.analyze_risk, old_rule, new_rule, history.data),
            return_exceptions=True,
        )

        resolved: dict[str, ImpactDimension] = {}
        degraded_dimensions = []
        for name, outcome in zip(dimensions.DIMENSIONS, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "Impact dimension failed",
                    rule_id=rule_id,
                    dimension=name,
                    error=str(outcome),
                )
                degraded_dimensions.append(name)
                problems.append(f"{name} analysis failed: {outcome}")
                resolved[name] = dimensions.default_dimension(name)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                resolved[name] = outcome

        impacts = DimensionImpacts(**resolved)
        overall = self.calculate_overall_impact(impacts)

        result = ImpactAnalysisResult(
            analysis_id=analysis_id,
            rule_id=rule_id,
            old_rule=old_rule,
            new_rule=new_rule,
            impact=ImpactReport(overall=overall, **resolved),
            recommendations=scoring.generate_recommendations(impacts),
            confidence=scoring.confidence_from_sample_size(history.data.sample_size),
            metadata=AnalysisMetadata(
                user_id=context.get("user_id"),
                change_type=detect_change_type(old_rule, new_rule),
                affected_systems=identify_affected_systems(old_rule, new_rule),
                degraded_dimensions=degraded_dimensions,
                context=context,
            ),
        )
        return result, problems

    async def _analyze_performance(
        self,
        rule_id: str,
        old_rule: Rule,
        new_rule: Rule,
        history: HistoricalRuleData,
    ) -> PerformanceImpact:
        metrics = await self._analytics.get_metrics(rule_id, "7d")
        if metrics.degraded:
            raise RuleInsightError(f"Baseline metrics unavailable: {metrics.error}")
        return dimensions.analyze_performance(old_rule, new_rule, history, metrics.data)

    @staticmethod
    async def _run_dimension(
        analyze: Callable[[Rule, Rule, HistoricalRuleData], ImpactDimension],
        old_rule: Rule,
        new_rule: Rule,
        history: HistoricalRuleData,
    ) -> ImpactDimension:
        return analyze(old_rule, new_rule, history)

    async def _store_result(self, result: ImpactAnalysisResult) -> None:
        try:
            await self._impact_store.append(result)
        except StoreError as e:
            logger.error(
                "Failed to store impact analysis result",
                analysis_id=result.analysis_id,
                error=str(e),
            )

    @staticmethod
    def _default_analysis(
        rule_id: str,
        old_rule: Rule,
        new_rule: Rule,
        context: dict[str, Any],
    ) -> ImpactAnalysisResult:
        return ImpactAnalysisResult(
            analysis_id=f"default_{rule_id}_{uuid.uuid4().hex[:12]}",
            rule_id=rule_id,
            old_rule=old_rule,
            new_rule=new_rule,
            impact=ImpactReport(
                overall=OverallImpact(score=0.3, level=ImpactLevel.LOW),
                performance=dimensions.default_dimension(dimensions.PERFORMANCE),
                business=dimensions.default_dimension(dimensions.BUSINESS),
                operational=dimensions.default_dimension(dimensions.OPERATIONAL),
                risk=dimensions.default_dimension(dimensions.RISK),
            ),
            confidence=0.5,
            metadata=AnalysisMetadata(
                user_id=context.get("user_id"),
                degraded_dimensions=list(dimensions.DIMENSIONS),
                context=context,
            ),
        )

    async def get_analysis_history(
        self,
        rule_id: str,
        limit: int = 20,
    ) -> ServiceResult[list[ImpactAnalysisResult]]:
        """Persisted analyses of a rule, newest first."""
        try:
            analyses = await self._impact_store.list_by_rule(rule_id, limit=limit)
        except StoreError as e:
            DEGRADED_READS.labels(operation="get_analysis_history").inc()
            logger.error("Error getting impact analysis history", rule_id=rule_id, error=str(e))
            return ServiceResult.fallback([], e)
        return ServiceResult[list[ImpactAnalysisResult]].ok(analyses)

    async def clear_cache(self) -> int:
        """Drop cached historical data."""
        async with self._lock:
            cleared = self._cache.clear()
        logger.info("Impact analysis cache cleared", entries=cleared)
        return cleared
