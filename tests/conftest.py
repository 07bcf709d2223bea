"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import AsyncIterator

import pytest
import pytest_asyncio
from fakeredis import aioredis

from ruleinsight.core.config import Settings
from ruleinsight.core.exceptions import StoreError
from ruleinsight.models.execution import ExecutionRecord
from ruleinsight.models.rule import ActionKind, ConditionKind, ConditionType, Rule


class FakeMetricsStore:
    """In-memory execution record store."""

    def __init__(self, records: list[ExecutionRecord] | None = None):
        self.records: list[ExecutionRecord] = list(records or [])
        self.reads = 0

    async def append(self, record: ExecutionRecord) -> None:
        self.records.append(record)

    async def list_by_rule(
        self,
        rule_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[ExecutionRecord]:
        self.reads += 1
        return [
            r for r in self.records
            if r.rule_id == rule_id and r.timestamp >= since and (until is None or r.timestamp <= until)
        ]

    async def list_by_user(
        self,
        user_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[ExecutionRecord]:
        self.reads += 1
        return [
            r for r in self.records
            if r.user_id == user_id and r.timestamp >= since and (until is None or r.timestamp <= until)
        ]


class FailingMetricsStore:
    """Store whose every operation fails like an unreachable Redis."""

    async def append(self, record: ExecutionRecord) -> None:
        raise StoreError("metrics.append", ConnectionError("connection refused"))

    async def list_by_rule(self, rule_id: str, since: datetime, until: datetime | None = None) -> list:
        raise StoreError("metrics.list_by_rule", ConnectionError("connection refused"))

    async def list_by_user(self, user_id: str, since: datetime, until: datetime | None = None) -> list:
        raise StoreError("metrics.list_by_user", ConnectionError("connection refused"))


class FakeRuleStore:
    """In-memory rule store."""

    def __init__(self, rules: list[Rule] | None = None):
        self._rules = {rule.rule_id: rule for rule in rules or []}

    async def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    async def list_by_user(self, user_id: str) -> list[Rule]:
        return sorted(
            (rule for rule in self._rules.values() if rule.user_id == user_id),
            key=lambda rule: rule.rule_id,
        )

    async def save(self, rule: Rule) -> Rule:
        self._rules[rule.rule_id] = rule
        return rule


def make_rule(
    rule_id: str = "rule_1",
    condition: ConditionKind = ConditionKind.SUBJECT_CONTAINS,
    condition_value: str = "urgent",
    condition_type: ConditionType = ConditionType.SIMPLE,
    escalation_action: ActionKind = ActionKind.ESCALATE,
    escalation_target: str | None = "manager@example.com",
    priority: int = 5,
    **kwargs,
) -> Rule:
    return Rule(
        rule_id=rule_id,
        user_id=kwargs.pop("user_id", "user_1"),
        name=kwargs.pop("name", "Urgent escalation"),
        condition=condition,
        condition_value=condition_value,
        condition_type=condition_type,
        escalation_action=escalation_action,
        escalation_target=escalation_target,
        priority=priority,
        **kwargs,
    )


def make_record(
    execution_time_ms: float,
    rule_id: str = "rule_1",
    success: bool = True,
    triggered: bool = False,
    user_id: str | None = "user_1",
    age: timedelta = timedelta(minutes=5),
) -> ExecutionRecord:
    return ExecutionRecord(
        record_id=f"rec_{rule_id}_{execution_time_ms}_{age.total_seconds()}",
        rule_id=rule_id,
        timestamp=datetime.now(timezone.utc) - age,
        execution_time_ms=execution_time_ms,
        success=success,
        triggered=triggered,
        user_id=user_id,
    )


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def rule() -> Rule:
    return make_rule()


@pytest_asyncio.fixture
async def redis() -> AsyncIterator[aioredis.FakeRedis]:
    """In-memory Redis replacing the connection pool."""
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
