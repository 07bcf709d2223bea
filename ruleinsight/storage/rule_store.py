"""Rule definition lookup."""

from pydantic import ValidationError
from redis.asyncio import Redis

from ruleinsight.core.exceptions import StoreError
from ruleinsight.core.logging import get_logger
from ruleinsight.models.rule import Rule
from ruleinsight.storage.redis_client import RedisKeys, get_redis, store_operation, to_score

logger = get_logger(__name__)


class RuleStore:
    """Rule definitions stored as Redis hashes, indexed by owning user.

    Rules are owned by the rule-management surface; this store only needs
    to save and look them up.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def save(self, rule: Rule) -> Rule:
        """Create or replace a rule.

        Args:
            rule: Rule to store

        Returns:
            Stored rule
        """
        async with store_operation("rules.save"):
            await self.redis.hset(
                RedisKeys.rule_detail(rule.rule_id),
                mapping={
                    "config": rule.model_dump_json(),
                    "user_id": rule.user_id or "",
                    "enabled": str(rule.enabled).lower(),
                    "updated_at": str(to_score(rule.updated_at)),
                },
            )
            if rule.user_id:
                await self.redis.sadd(RedisKeys.rules_by_user(rule.user_id), rule.rule_id)
        return rule

    async def get(self, rule_id: str) -> Rule | None:
        """Get a rule by ID.

        Args:
            rule_id: Rule ID

        Returns:
            Rule if found, None otherwise
        """
        async with store_operation("rules.get"):
            data = await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
        if not data:
            return None
        try:
            return Rule.model_validate_json(data)
        except ValidationError as e:
            raise StoreError("rules.get", e) from e

    async def list_by_user(self, user_id: str) -> list[Rule]:
        """Rules owned by a user, ordered by rule ID.

        Unreadable definitions are skipped.
        """
        async with store_operation("rules.list_by_user"):
            rule_ids = sorted(await self.redis.smembers(RedisKeys.rules_by_user(user_id)))
            entries = [
                await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
                for rule_id in rule_ids
            ]

        rules = []
        for rule_id, entry in zip(rule_ids, entries):
            if not entry:
                continue
            try:
                rules.append(Rule.model_validate_json(entry))
            except ValidationError:
                logger.warning("Skipping malformed rule", rule_id=rule_id)
        return rules

    async def delete(self, rule_id: str) -> bool:
        """Delete a rule.

        Returns:
            True if deleted, False if not found
        """
        async with store_operation("rules.delete"):
            user_id = await self.redis.hget(RedisKeys.rule_detail(rule_id), "user_id")
            if user_id:
                await self.redis.srem(RedisKeys.rules_by_user(user_id), rule_id)
            return await self.redis.delete(RedisKeys.rule_detail(rule_id)) > 0
