"""Execution record storage (rule_performance_metrics)."""

from datetime import datetime

from pydantic import ValidationError
from redis.asyncio import Redis

from ruleinsight.core.logging import get_logger
from ruleinsight.models.execution import ExecutionRecord
from ruleinsight.storage.redis_client import RedisKeys, get_redis, store_operation, to_score

logger = get_logger(__name__)


class MetricsStore:
    """Execution records in Redis sorted sets scored by timestamp.

    Each record is indexed by rule and, when known, by user so both range
    queries are a single ZRANGEBYSCORE.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def append(self, record: ExecutionRecord) -> None:
        """Persist an execution record.

        Args:
            record: Record to store

        Raises:
            StoreError: If Redis rejects the write
        """
        entry = record.model_dump_json()
        score = to_score(record.timestamp)

        async with store_operation("metrics.append"):
            await self.redis.zadd(RedisKeys.executions_by_rule(record.rule_id), {entry: score})
            if record.user_id:
                await self.redis.zadd(RedisKeys.executions_by_user(record.user_id), {entry: score})

    async def list_by_rule(
        self,
        rule_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[ExecutionRecord]:
        """Records of one rule in chronological order.

        Args:
            rule_id: Rule ID
            since: Inclusive lower bound
            until: Inclusive upper bound (open if omitted)

        Returns:
            Matching records, oldest first
        """
        async with store_operation("metrics.list_by_rule"):
            entries = await self.redis.zrangebyscore(
                RedisKeys.executions_by_rule(rule_id),
                min=to_score(since),
                max=to_score(until) if until else "+inf",
            )
        return self._decode(entries)

    async def list_by_user(
        self,
        user_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[ExecutionRecord]:
        """Records of every rule owned by a user in chronological order."""
        async with store_operation("metrics.list_by_user"):
            entries = await self.redis.zrangebyscore(
                RedisKeys.executions_by_user(user_id),
                min=to_score(since),
                max=to_score(until) if until else "+inf",
            )
        return self._decode(entries)

    async def count_by_rule(self, rule_id: str) -> int:
        """Number of stored records for a rule."""
        async with store_operation("metrics.count_by_rule"):
            return await self.redis.zcard(RedisKeys.executions_by_rule(rule_id))

    @staticmethod
    def _decode(entries: list[str]) -> list[ExecutionRecord]:
        records = []
        for entry in entries:
            try:
                records.append(ExecutionRecord.model_validate_json(entry))
            except ValidationError:
                logger.warning("Skipping malformed execution record")
                continue
        return records
