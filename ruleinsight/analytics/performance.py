"""Rule performance analytics service."""

import asyncio
import uuid
from typing import Any, TypeVar

from ruleinsight.analytics import statistics
from ruleinsight.analytics.cache import CacheBackend, TTLCache
from ruleinsight.core.config import Settings, get_settings
from ruleinsight.core.exceptions import StoreError
from ruleinsight.core.logging import get_logger
from ruleinsight.models.execution import (
    AllRulesMetrics,
    ExecutionOutcome,
    ExecutionRecord,
    HistoryPoint,
    PerformanceBenchmarks,
    PerformanceTrends,
    RollingAggregate,
    RuleMetrics,
    SlowRule,
)
from ruleinsight.models.result import ServiceResult
from ruleinsight.observability.metrics import (
    ANALYTICS_CACHE,
    DEGRADED_READS,
    EXECUTIONS_RECORDED,
    TELEMETRY_WRITE_FAILURES,
)
from ruleinsight.storage.metrics_store import MetricsStore

logger = get_logger(__name__)

T = TypeVar("T")


class PerformanceAnalytics:
    """Execution telemetry ingestion and aggregation.

    Reads never raise on store failures: they return the zero structure of
    the operation wrapped in a degraded ``ServiceResult``.
    """

    def __init__(
        self,
        store: MetricsStore,
        cache: CacheBackend[RuleMetrics] | None = None,
        settings: Settings | None = None,
    ):
        """Initialize analytics.

        Args:
            store: Execution record store
            cache: Metrics cache, a TTLCache sized from settings if omitted
            settings: Application settings
        """
        self._settings = settings or get_settings()
        self._store = store
        self._cache = cache if cache is not None else TTLCache(
            maxsize=self._settings.analytics_cache_max_entries,
            ttl_seconds=self._settings.analytics_cache_ttl_seconds,
        )
        self._rolling: dict[str, RollingAggregate] = {}
        self._lock = asyncio.Lock()

    async def record_execution(
        self,
        rule_id: str,
        outcome: ExecutionOutcome,
        execution_time_ms: float,
        context: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        """Record one rule execution.

        The record is persisted and folded into the in-process rolling
        aggregate. Persistence failures are logged and counted, never raised.

        Args:
            rule_id: Executed rule
            outcome: Engine-reported outcome
            execution_time_ms: Evaluation latency
            context: Free-form execution context, ``user_id`` is indexed

        Returns:
            The execution record
        """
        context = context or {}
        record = ExecutionRecord(
            record_id=uuid.uuid4().hex,
            rule_id=rule_id,
            execution_time_ms=execution_time_ms,
            success=outcome.success,
            triggered=outcome.triggered,
            error_message=outcome.error,
            email_id=outcome.email_id,
            user_id=context.get("user_id"),
            context=context,
        )

        try:
            await self._store.append(record)
        except StoreError as e:
            TELEMETRY_WRITE_FAILURES.inc()
            logger.error(
                "Failed to store execution record",
                rule_id=rule_id,
                operation=e.operation,
                error=str(e),
            )

        async with self._lock:
            self._update_rolling(record)

        EXECUTIONS_RECORDED.labels(success=str(record.success).lower()).inc()
        logger.debug(
            "Rule execution tracked",
            rule_id=rule_id,
            execution_time_ms=execution_time_ms,
            success=record.success,
        )
        return record

    def _update_rolling(self, record: ExecutionRecord) -> None:
        aggregate = self._rolling.setdefault(record.rule_id, RollingAggregate())
        aggregate.total_executions += 1
        aggregate.total_execution_time_ms += record.execution_time_ms
        aggregate.average_execution_time_ms = (
            aggregate.total_execution_time_ms / aggregate.total_executions
        )
        aggregate.last_execution = record.timestamp
        if record.success:
            aggregate.success_count += 1
        else:
            aggregate.failure_count += 1
        if record.triggered:
            aggregate.trigger_count += 1

        aggregate.history.append(
            HistoryPoint(
                timestamp=record.timestamp,
                execution_time_ms=record.execution_time_ms,
                success=record.success,
                triggered=record.triggered,
            )
        )
        overflow = len(aggregate.history) - self._settings.rolling_window_size
        if overflow > 0:
            del aggregate.history[:overflow]

    async def get_rolling_aggregate(self, rule_id: str) -> RollingAggregate | None:
        """Snapshot of the in-process aggregate of a rule."""
        async with self._lock:
            aggregate = self._rolling.get(rule_id)
            return aggregate.model_copy(deep=True) if aggregate else None

    async def get_metrics(self, rule_id: str, time_range: str = "24h") -> ServiceResult[RuleMetrics]:
        """Metrics of one rule over a canonical window.

        Args:
            rule_id: Rule ID
            time_range: One of 1h, 24h, 7d, 30d, 90d (others mean 24h)

        Returns:
            Metrics, zero-valued when the window holds no records
        """
        time_range = statistics.resolve_time_range(time_range)
        cache_key = f"{rule_id}:{time_range}"

        async with self._lock:
            cached = self._cache.get(cache_key)
        if cached is not None:
            ANALYTICS_CACHE.labels(result="hit").inc()
            return ServiceResult[RuleMetrics].ok(cached.model_copy())
        ANALYTICS_CACHE.labels(result="miss").inc()

        try:
            records = await self._store.list_by_rule(rule_id, statistics.time_filter(time_range))
        except StoreError as e:
            return self._degraded("get_metrics", RuleMetrics(), e, rule_id=rule_id)

        metrics = statistics.calculate_metrics(records)
        async with self._lock:
            self._cache.set(cache_key, metrics)
        return ServiceResult[RuleMetrics].ok(metrics.model_copy())

    async def get_all_rules_metrics(
        self,
        user_id: str,
        time_range: str = "24h",
    ) -> ServiceResult[AllRulesMetrics]:
        """Per-rule metrics and summary for every rule of a user."""
        time_range = statistics.resolve_time_range(time_range)
        try:
            records = await self._store.list_by_user(user_id, statistics.time_filter(time_range))
        except StoreError as e:
            return self._degraded(
                "get_all_rules_metrics",
                AllRulesMetrics(time_range=time_range),
                e,
                user_id=user_id,
            )
        return ServiceResult[AllRulesMetrics].ok(
            statistics.calculate_all_rules_metrics(records, time_range)
        )

    async def get_rule_efficiency_score(self, rule_id: str) -> ServiceResult[int]:
        """Efficiency score in [0, 100] over the last 30 days."""
        metrics = await self.get_metrics(rule_id, "30d")
        if metrics.degraded:
            return ServiceResult[int].fallback(0, metrics.error or "metrics unavailable")
        return ServiceResult[int].ok(statistics.calculate_efficiency_score(metrics.data))

    async def get_slow_performing_rules(
        self,
        user_id: str,
        threshold_ms: float | None = None,
    ) -> ServiceResult[list[SlowRule]]:
        """Rules of a user that ran at or above the threshold in the last 7 days."""
        if threshold_ms is None:
            threshold_ms = self._settings.slow_rule_threshold_ms
        try:
            records = await self._store.list_by_user(user_id, statistics.time_filter("7d"))
        except StoreError as e:
            return self._degraded("get_slow_performing_rules", [], e, user_id=user_id)
        return ServiceResult[list[SlowRule]].ok(statistics.group_slow_rules(records, threshold_ms))

    async def get_performance_trends(
        self,
        rule_id: str,
        time_range: str = "7d",
    ) -> ServiceResult[PerformanceTrends]:
        """Daily performance series of a rule."""
        time_range = statistics.resolve_time_range(time_range)
        try:
            records = await self._store.list_by_rule(rule_id, statistics.time_filter(time_range))
        except StoreError as e:
            return self._degraded("get_performance_trends", PerformanceTrends(), e, rule_id=rule_id)
        return ServiceResult[PerformanceTrends].ok(statistics.calculate_trends(records))

    async def get_performance_benchmarks(self, user_id: str) -> ServiceResult[PerformanceBenchmarks]:
        """30-day execution time distribution across the rules of a user."""
        try:
            records = await self._store.list_by_user(user_id, statistics.time_filter("30d"))
        except StoreError as e:
            return self._degraded(
                "get_performance_benchmarks",
                PerformanceBenchmarks(),
                e,
                user_id=user_id,
            )
        return ServiceResult[PerformanceBenchmarks].ok(statistics.calculate_benchmarks(records))

    async def clear_cache(self) -> int:
        """Drop every cached metrics entry.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            cleared = self._cache.clear()
        logger.info("Analytics cache cleared", entries=cleared)
        return cleared

    @property
    def cache_stats(self) -> dict[str, Any]:
        return self._cache.stats

    def _degraded(self, operation: str, default: T, error: Exception, **log_context: Any) -> ServiceResult[T]:
        DEGRADED_READS.labels(operation=operation).inc()
        logger.error(
            "Analytics read degraded",
            operation=operation,
            error=str(error),
            **log_context,
        )
        return ServiceResult.fallback(default, error)
