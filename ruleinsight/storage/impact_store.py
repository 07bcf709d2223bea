"""Impact analysis storage (rule_impact_analysis)."""

from datetime import datetime

from pydantic import ValidationError
from redis.asyncio import Redis

from ruleinsight.core.exceptions import StoreError
from ruleinsight.core.logging import get_logger
from ruleinsight.models.impact import ImpactAnalysisResult
from ruleinsight.storage.redis_client import RedisKeys, get_redis, store_operation

logger = get_logger(__name__)


class ImpactStore:
    """Append-only storage of impact analyses."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def append(self, result: ImpactAnalysisResult) -> bool:
        """Store an analysis once.

        Args:
            result: Analysis to store

        Returns:
            True if stored, False if the analysis ID already existed
        """
        async with store_operation("impact.append"):
            created = await self.redis.setnx(
                RedisKeys.impact_detail(result.analysis_id),
                result.model_dump_json(),
            )
            if created:
                await self.redis.rpush(RedisKeys.impact_by_rule(result.rule_id), result.analysis_id)
        return bool(created)

    async def get(self, analysis_id: str) -> ImpactAnalysisResult | None:
        """Get an analysis by ID.

        Raises:
            StoreError: If Redis fails or the stored analysis is unreadable
        """
        async with store_operation("impact.get"):
            data = await self.redis.get(RedisKeys.impact_detail(analysis_id))
        if not data:
            return None
        try:
            return ImpactAnalysisResult.model_validate_json(data)
        except ValidationError as e:
            raise StoreError("impact.get", e) from e

    async def list_by_rule(self, rule_id: str, limit: int = 20) -> list[ImpactAnalysisResult]:
        """Most recent analyses of a rule, newest first.

        Args:
            rule_id: Rule ID
            limit: Maximum number of analyses

        Returns:
            Stored analyses, unreadable entries skipped
        """
        async with store_operation("impact.list_by_rule"):
            analysis_ids = await self.redis.lrange(RedisKeys.impact_by_rule(rule_id), -limit, -1)
            entries = (
                await self.redis.mget([RedisKeys.impact_detail(a) for a in analysis_ids])
                if analysis_ids
                else []
            )

        results = []
        for entry in reversed(entries):
            if not entry:
                continue
            try:
                results.append(ImpactAnalysisResult.model_validate_json(entry))
            except ValidationError:
                logger.warning("Skipping malformed impact analysis", rule_id=rule_id)
        return results

    async def list_since(
        self,
        rule_ids: list[str],
        since: datetime,
        limit_per_rule: int = 20,
    ) -> list[ImpactAnalysisResult]:
        """Recent analyses of several rules newer than ``since``."""
        results = []
        for rule_id in rule_ids:
            for result in await self.list_by_rule(rule_id, limit_per_rule):
                if result.timestamp >= since:
                    results.append(result)
        return results
