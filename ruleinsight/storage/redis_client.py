"""Redis client management."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ruleinsight.core.config import get_settings
from ruleinsight.core.exceptions import StoreError

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Returns:
        Redis client instance

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


@asynccontextmanager
async def store_operation(operation: str) -> AsyncIterator[None]:
    """Translate Redis failures into StoreError.

    Usage:
        async with store_operation("metrics.append"):
            await r.zadd(...)
    """
    try:
        yield
    except RedisError as e:
        raise StoreError(operation, e) from e


def to_score(timestamp: datetime) -> int:
    """Sorted-set score (epoch milliseconds) for a datetime."""
    return int(timestamp.timestamp() * 1000)


# Key prefixes
class RedisKeys:
    """Redis key patterns."""

    # rule_performance_metrics
    EXECUTIONS_BY_RULE = "ruleinsight:executions:rule:{rule_id}"
    EXECUTIONS_BY_USER = "ruleinsight:executions:user:{user_id}"

    # Rule definitions
    RULE_DETAIL = "ruleinsight:rules:detail:{rule_id}"
    RULES_BY_USER = "ruleinsight:rules:user:{user_id}"

    # rule_impact_analysis
    IMPACT_DETAIL = "ruleinsight:impact:detail:{analysis_id}"
    IMPACT_BY_RULE = "ruleinsight:impact:rule:{rule_id}"

    # test_suites / test_results / test_reports
    TEST_SUITE = "ruleinsight:tests:suite:{suite_id}"
    TEST_SUITES_BY_RULE = "ruleinsight:tests:suites:rule:{rule_id}"
    TEST_RESULTS = "ruleinsight:tests:results:{suite_id}"
    TEST_REPORTS = "ruleinsight:tests:reports:{suite_id}"
    TEST_BASELINES = "ruleinsight:tests:baselines:{rule_id}"
    TEST_BASELINE_DIGESTS = "ruleinsight:tests:baselines:digests:{rule_id}"

    # Email / notification logs
    EMAIL_LOGS = "ruleinsight:email_logs:{rule_id}"

    @classmethod
    def executions_by_rule(cls, rule_id: str) -> str:
        return cls.EXECUTIONS_BY_RULE.format(rule_id=rule_id)

    @classmethod
    def executions_by_user(cls, user_id: str) -> str:
        return cls.EXECUTIONS_BY_USER.format(user_id=user_id)

    @classmethod
    def rule_detail(cls, rule_id: str) -> str:
        return cls.RULE_DETAIL.format(rule_id=rule_id)

    @classmethod
    def rules_by_user(cls, user_id: str) -> str:
        return cls.RULES_BY_USER.format(user_id=user_id)

    @classmethod
    def impact_detail(cls, analysis_id: str) -> str:
        return cls.IMPACT_DETAIL.format(analysis_id=analysis_id)

    @classmethod
    def impact_by_rule(cls, rule_id: str) -> str:
        return cls.IMPACT_BY_RULE.format(rule_id=rule_id)

    @classmethod
    def test_suite(cls, suite_id: str) -> str:
        return cls.TEST_SUITE.format(suite_id=suite_id)

    @classmethod
    def test_suites_by_rule(cls, rule_id: str) -> str:
        return cls.TEST_SUITES_BY_RULE.format(rule_id=rule_id)

    @classmethod
    def test_results(cls, suite_id: str) -> str:
        return cls.TEST_RESULTS.format(suite_id=suite_id)

    @classmethod
    def test_reports(cls, suite_id: str) -> str:
        return cls.TEST_REPORTS.format(suite_id=suite_id)

    @classmethod
    def test_baselines(cls, rule_id: str) -> str:
        return cls.TEST_BASELINES.format(rule_id=rule_id)

    @classmethod
    def test_baseline_digests(cls, rule_id: str) -> str:
        return cls.TEST_BASELINE_DIGESTS.format(rule_id=rule_id)

    @classmethod
    def email_logs(cls, rule_id: str) -> str:
        return cls.EMAIL_LOGS.format(rule_id=rule_id)
