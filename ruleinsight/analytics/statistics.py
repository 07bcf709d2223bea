"""Pure aggregation functions over execution records."""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from ruleinsight.models.execution import (
    AllRulesMetrics,
    ExecutionRecord,
    MetricsSummary,
    PerformanceBenchmarks,
    PerformanceTrends,
    RuleMetrics,
    RuleReference,
    SlowRule,
    TrendPoint,
)

DEFAULT_TIME_RANGE = "24h"

TIME_RANGES: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


def resolve_time_range(time_range: str) -> str:
    """Canonical window name, falling back to 24h for unknown values."""
    return time_range if time_range in TIME_RANGES else DEFAULT_TIME_RANGE


def time_filter(time_range: str, now: datetime | None = None) -> datetime:
    """Start of the window ``time_range`` ending at ``now``."""
    now = now or datetime.now(timezone.utc)
    return now - TIME_RANGES[resolve_time_range(time_range)]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.5 -> 3)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile.

    Args:
        values: Sample, any order
        p: Percentile in [0, 100]

    Returns:
        Value at index ``ceil(p/100 * n) - 1`` of the sorted sample, clamped
        to the valid range; 0 for an empty sample
    """
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil(p / 100 * len(ordered)) - 1
    index = min(max(index, 0), len(ordered) - 1)
    return ordered[index]


def median(values: Sequence[float]) -> float:
    """Median, averaging the two middle values for even sample sizes."""
    if not values:
        return 0
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[middle - 1] + ordered[middle]) / 2
    return ordered[middle]


def calculate_metrics(records: Sequence[ExecutionRecord]) -> RuleMetrics:
    """Aggregate records of one rule.

    Average, median and percentiles are rounded to whole milliseconds and
    rates to two decimals. An empty sample yields zero-valued metrics.
    """
    if not records:
        return RuleMetrics()

    total = len(records)
    times = [record.execution_time_ms for record in records]
    total_time = sum(times)
    success_count = sum(1 for record in records if record.success)
    trigger_count = sum(1 for record in records if record.triggered)
    timestamps = [record.timestamp for record in records]

    return RuleMetrics(
        total_executions=total,
        total_execution_time_ms=total_time,
        average_execution_time_ms=round_half_up(total_time / total),
        min_execution_time_ms=min(times),
        max_execution_time_ms=max(times),
        median_execution_time_ms=round_half_up(median(times)),
        p95_execution_time_ms=round_half_up(percentile(times, 95)),
        p99_execution_time_ms=round_half_up(percentile(times, 99)),
        success_count=success_count,
        failure_count=total - success_count,
        trigger_count=trigger_count,
        success_rate=round_half_up(success_count / total * 100, 2),
        trigger_rate=round_half_up(trigger_count / total * 100, 2),
        first_execution=min(timestamps),
        last_execution=max(timestamps),
    )


def group_by_rule(records: Iterable[ExecutionRecord]) -> dict[str, list[ExecutionRecord]]:
    """Records per rule, rules in order of first appearance."""
    grouped: dict[str, list[ExecutionRecord]] = {}
    for record in records:
        grouped.setdefault(record.rule_id, []).append(record)
    return grouped


def calculate_summary(rules: dict[str, RuleMetrics]) -> MetricsSummary:
    """Cross-rule totals plus fastest, slowest and most reliable rule.

    Ties keep the rule encountered first.
    """
    if not rules:
        return MetricsSummary()

    total_executions = sum(m.total_executions for m in rules.values())
    total_time = sum(m.total_execution_time_ms for m in rules.values())
    total_successes = sum(m.success_count for m in rules.values())
    total_triggers = sum(m.trigger_count for m in rules.values())

    fastest = slowest = most_reliable = next(iter(rules))
    for rule_id, metrics in rules.items():
        if metrics.average_execution_time_ms < rules[fastest].average_execution_time_ms:
            fastest = rule_id
        if metrics.average_execution_time_ms > rules[slowest].average_execution_time_ms:
            slowest = rule_id
        if metrics.success_rate > rules[most_reliable].success_rate:
            most_reliable = rule_id

    def rate(count: int) -> float:
        return round_half_up(count / total_executions * 100, 2) if total_executions else 0

    return MetricsSummary(
        total_rules=len(rules),
        total_executions=total_executions,
        average_execution_time_ms=round_half_up(total_time / total_executions) if total_executions else 0,
        overall_success_rate=rate(total_successes),
        overall_trigger_rate=rate(total_triggers),
        fastest_rule=RuleReference(rule_id=fastest, value=rules[fastest].average_execution_time_ms),
        slowest_rule=RuleReference(rule_id=slowest, value=rules[slowest].average_execution_time_ms),
        most_reliable_rule=RuleReference(rule_id=most_reliable, value=rules[most_reliable].success_rate),
    )


def calculate_all_rules_metrics(records: Sequence[ExecutionRecord], time_range: str) -> AllRulesMetrics:
    """Per-rule metrics and summary for records of many rules."""
    rules = {rule_id: calculate_metrics(group) for rule_id, group in group_by_rule(records).items()}
    return AllRulesMetrics(
        summary=calculate_summary(rules),
        rules=rules,
        time_range=time_range,
    )


def calculate_efficiency_score(metrics: RuleMetrics) -> int:
    """Efficiency in [0, 100] blending reliability, triggering and speed."""
    if metrics.total_executions == 0:
        return 0

    success_rate = metrics.success_count / metrics.total_executions * 100
    trigger_rate = metrics.trigger_count / metrics.total_executions * 100
    speed = max(0.0, 100 - metrics.average_execution_time_ms / 10)

    score = success_rate * 0.4 + min(trigger_rate, 50) * 0.3 + speed * 0.3
    return int(round_half_up(min(score, 100)))


def calculate_trends(records: Sequence[ExecutionRecord]) -> PerformanceTrends:
    """Daily (UTC) average time, success rate, trigger rate and count."""
    daily: dict[str, list[ExecutionRecord]] = {}
    for record in records:
        day = record.timestamp.astimezone(timezone.utc).date().isoformat()
        daily.setdefault(day, []).append(record)

    trends = PerformanceTrends()
    for day in sorted(daily):
        items = daily[day]
        count = len(items)
        average = sum(item.execution_time_ms for item in items) / count
        success_rate = sum(1 for item in items if item.success) / count * 100
        trigger_rate = sum(1 for item in items if item.triggered) / count * 100

        trends.execution_time.append(TrendPoint(date=day, value=round_half_up(average)))
        trends.success_rate.append(TrendPoint(date=day, value=round_half_up(success_rate, 2)))
        trends.trigger_rate.append(TrendPoint(date=day, value=round_half_up(trigger_rate, 2)))
        trends.execution_count.append(TrendPoint(date=day, value=count))
    return trends


def calculate_benchmarks(records: Sequence[ExecutionRecord]) -> PerformanceBenchmarks:
    """Execution time distribution and mean per-rule success rate."""
    if not records:
        return PerformanceBenchmarks()

    times = [record.execution_time_ms for record in records]
    per_rule = group_by_rule(records)
    rule_success = [
        sum(1 for item in items if item.success) / len(items) for items in per_rule.values()
    ]

    return PerformanceBenchmarks(
        average_execution_time_ms=round_half_up(sum(times) / len(times)),
        median_execution_time_ms=round_half_up(median(times)),
        p95_execution_time_ms=round_half_up(percentile(times, 95)),
        p99_execution_time_ms=round_half_up(percentile(times, 99)),
        min_execution_time_ms=min(times),
        max_execution_time_ms=max(times),
        overall_success_rate=round_half_up(sum(rule_success) / len(rule_success) * 100, 2),
    )


def group_slow_rules(records: Iterable[ExecutionRecord], threshold_ms: float) -> list[SlowRule]:
    """Rules with executions at or above ``threshold_ms``, slowest average first."""
    grouped: dict[str, SlowRule] = {}
    for record in records:
        if record.execution_time_ms < threshold_ms:
            continue
        slow = grouped.setdefault(record.rule_id, SlowRule(rule_id=record.rule_id))
        slow.occurrences += 1
        slow.total_time_ms += record.execution_time_ms
        slow.average_time_ms = slow.total_time_ms / slow.occurrences
        slow.max_time_ms = max(slow.max_time_ms, record.execution_time_ms)
        if slow.last_occurrence is None or record.timestamp > slow.last_occurrence:
            slow.last_occurrence = record.timestamp

    return sorted(grouped.values(), key=lambda slow: slow.average_time_ms, reverse=True)
