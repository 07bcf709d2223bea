"""Auxiliary storage operations (email and notification logs)."""

import json
from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis

from ruleinsight.storage.redis_client import RedisKeys, get_redis, store_operation, to_score


class EmailLogStore:
    """Email and notification log lookup keyed by rule.

    Entries are written by the mail pipeline; this core reads them for
    impact baselines and integration checks.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def add(self, rule_id: str, entry: dict[str, Any], timestamp: datetime | None = None) -> None:
        """Append a log entry.

        Args:
            rule_id: Rule that handled the email
            entry: Log payload (service, status, message id, ...)
            timestamp: Entry time, defaults to now
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        payload = {**entry, "created_at": timestamp.isoformat()}
        async with store_operation("email_logs.add"):
            await self.redis.zadd(
                RedisKeys.email_logs(rule_id),
                {json.dumps(payload, sort_keys=True): to_score(timestamp)},
            )

    async def list_since(self, rule_id: str, since: datetime) -> list[dict[str, Any]]:
        """Entries for a rule newer than ``since``."""
        async with store_operation("email_logs.list_since"):
            entries = await self.redis.zrangebyscore(
                RedisKeys.email_logs(rule_id),
                min=to_score(since),
                max="+inf",
            )

        logs = []
        for entry in entries:
            try:
                logs.append(json.loads(entry))
            except json.JSONDecodeError:
                continue
        return logs

    async def ping(self) -> bool:
        """Whether the log backend answers."""
        async with store_operation("email_logs.ping"):
            return bool(await self.redis.ping())
