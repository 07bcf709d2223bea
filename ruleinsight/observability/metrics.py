"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

# Telemetry metrics
EXECUTIONS_RECORDED = Counter(
    "ruleinsight_executions_recorded_total",
    "Total number of rule executions recorded",
    ["success"],
)

TELEMETRY_WRITE_FAILURES = Counter(
    "ruleinsight_telemetry_write_failures_total",
    "Execution records that could not be persisted",
)

TELEMETRY_MESSAGES = Counter(
    "ruleinsight_telemetry_messages_total",
    "Telemetry messages consumed from the queue",
    ["status"],
)

# Analytics metrics
ANALYTICS_CACHE = Counter(
    "ruleinsight_analytics_cache_total",
    "Analytics cache lookups",
    ["result"],
)

DEGRADED_READS = Counter(
    "ruleinsight_degraded_reads_total",
    "Reads answered with a default value after a store failure",
    ["operation"],
)

# Impact metrics
IMPACT_ANALYSES = Counter(
    "ruleinsight_impact_analyses_total",
    "Total number of rule impact analyses",
    ["level"],
)

# Testing metrics
TEST_CASES_EXECUTED = Counter(
    "ruleinsight_test_cases_executed_total",
    "Total number of executed test cases",
    ["test_type", "status"],
)

TEST_CASE_LATENCY = Histogram(
    "ruleinsight_test_case_latency_seconds",
    "Test case execution latency in seconds",
    ["test_type"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
)

RUNNING_TESTS = Gauge(
    "ruleinsight_running_tests",
    "Number of test cases currently executing",
)
