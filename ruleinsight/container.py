"""Service wiring."""

from redis.asyncio import Redis

from ruleinsight.analytics.dashboard import DashboardAnalytics
from ruleinsight.analytics.performance import PerformanceAnalytics
from ruleinsight.core.config import Settings, get_settings
from ruleinsight.impact.analyzer import ImpactAnalyzer
from ruleinsight.storage.auxiliary import EmailLogStore
from ruleinsight.storage.impact_store import ImpactStore
from ruleinsight.storage.metrics_store import MetricsStore
from ruleinsight.storage.redis_client import get_redis
from ruleinsight.storage.rule_store import RuleStore
from ruleinsight.storage.test_store import BaselineStore, TestSuiteStore
from ruleinsight.testing.executors import TestExecutors
from ruleinsight.testing.runner import TestingAutomation
from ruleinsight.testing.simulator import RuleSimulator, Simulator


class Container:
    """Builds every store and service on one Redis client.

    Usage:
        await init_redis_pool()
        container = Container()
        await container.analytics.get_metrics("rule-1")
    """

    def __init__(
        self,
        redis: Redis | None = None,
        settings: Settings | None = None,
        simulator: Simulator | None = None,
    ):
        """Initialize container.

        Args:
            redis: Redis client, from the shared pool if omitted
            settings: Application settings
            simulator: Rule evaluator used by test executors
        """
        self.settings = settings or get_settings()
        self.redis = redis or get_redis()

        self.metrics_store = MetricsStore(self.redis)
        self.rule_store = RuleStore(self.redis)
        self.impact_store = ImpactStore(self.redis)
        self.suite_store = TestSuiteStore(self.redis)
        self.baseline_store = BaselineStore(self.redis)
        self.email_logs = EmailLogStore(self.redis)

        self.analytics = PerformanceAnalytics(self.metrics_store, settings=self.settings)
        self.impact = ImpactAnalyzer(
            self.analytics,
            self.metrics_store,
            self.impact_store,
            email_logs=self.email_logs,
            settings=self.settings,
        )
        self.testing = TestingAutomation(
            self.rule_store,
            self.suite_store,
            self.baseline_store,
            TestExecutors(simulator or RuleSimulator(), self.email_logs),
            settings=self.settings,
        )
        self.dashboard = DashboardAnalytics(
            self.analytics,
            self.rule_store,
            self.impact_store,
            self.suite_store,
            settings=self.settings,
        )
