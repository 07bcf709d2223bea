"""Test suite creation and execution."""

import asyncio
import itertools
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from ruleinsight.core.config import Settings, get_settings
from ruleinsight.core.exceptions import (
    RuleNotFoundError,
    StoreError,
    SuiteStateError,
    TestSuiteNotFoundError,
    TestTimeoutError,
)
from ruleinsight.core.logging import get_logger
from ruleinsight.models.testing import (
    SUITE_TRANSITIONS,
    ExecutionOptions,
    ExecutionSummary,
    ExpectedResult,
    PerformanceCriteria,
    RegressionBaseline,
    RunningTest,
    SuiteConfiguration,
    SuiteExecution,
    SuiteOptions,
    SuiteRun,
    SuiteStatus,
    TestCase,
    TestReport,
    TestResult,
    TestStatus,
    TestSuite,
    TestType,
)
from ruleinsight.observability.metrics import RUNNING_TESTS, TEST_CASE_LATENCY, TEST_CASES_EXECUTED
from ruleinsight.observability.tracing import TraceContext
from ruleinsight.storage.rule_store import RuleStore
from ruleinsight.storage.test_store import BaselineStore, TestSuiteStore
from ruleinsight.testing.executors import TestExecutors
from ruleinsight.testing.generator import generate_test_cases
from ruleinsight.testing.report import build_report, create_batches, execution_summary

logger = get_logger(__name__)


class TestingAutomation:
    """Generates test suites for rules and runs them in bounded batches.

    A single case never aborts its batch: errors and timeouts become failed
    results. Cancellation through ``cancel_test`` is advisory, it drops the
    registry entry and flags the result but does not interrupt work already
    dispatched.
    """

    __test__ = False

    def __init__(
        self,
        rule_store: RuleStore,
        suite_store: TestSuiteStore,
        baseline_store: BaselineStore,
        executors: TestExecutors,
        settings: Settings | None = None,
    ):
        """Initialize testing automation.

        Args:
            rule_store: Rule definition lookup
            suite_store: Suite, result and report persistence
            baseline_store: Regression baselines
            executors: Type-specific case executors
            settings: Application settings
        """
        self._settings = settings or get_settings()
        self._rule_store = rule_store
        self._suite_store = suite_store
        self._baseline_store = baseline_store
        self._executors = executors
        self._running: dict[str, RunningTest] = {}
        self._cancelled: set[str] = set()
        self._test_ids = itertools.count(1)
        self._state_lock = asyncio.Lock()

    def default_configuration(self) -> SuiteConfiguration:
        return SuiteConfiguration(
            timeout_seconds=self._settings.test_timeout_seconds,
            max_concurrent_tests=self._settings.max_concurrent_tests,
        )

    def default_performance_criteria(self) -> PerformanceCriteria:
        return PerformanceCriteria(
            iterations=self._settings.performance_test_iterations,
            max_execution_time_ms=self._settings.performance_test_max_execution_ms,
            min_success_rate=self._settings.performance_test_min_success_rate,
        )

    async def create_test_suite(self, rule_id: str, options: SuiteOptions | None = None) -> TestSuite:
        """Generate and persist a test suite for a rule.

        Args:
            rule_id: Rule under test
            options: Generated categories, custom cases and configuration

        Returns:
            Suite in state ``created``

        Raises:
            RuleNotFoundError: If the rule does not exist
            StoreError: If the rule or suite store fails
        """
        options = options or SuiteOptions()
        rule = await self._rule_store.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        requested = list(options.test_types)
        if options.include_edge_cases:
            requested.append(TestType.EDGE_CASE)
        if options.include_regression_tests:
            requested.append(TestType.REGRESSION)
        test_types = list(dict.fromkeys(requested))

        baselines = []
        if TestType.REGRESSION in test_types:
            baselines = await self._baseline_store.list(rule_id)

        generated = generate_test_cases(
            rule,
            test_types,
            baselines=baselines,
            criteria=self.default_performance_criteria(),
        )
        test_cases = generated + list(options.custom_test_cases)

        suite = TestSuite(
            id=f"test_suite_{rule_id}_{uuid.uuid4().hex[:12]}",
            rule_id=rule_id,
            user_id=options.user_id or rule.user_id,
            test_types=test_types,
            test_cases=test_cases,
            configuration=options.configuration or self.default_configuration(),
            metadata={
                "total_test_cases": len(test_cases),
                "generated_test_cases": len(generated),
                "custom_test_cases": len(options.custom_test_cases),
            },
        )
        await self._suite_store.create(suite)

        logger.info(
            "Test suite created",
            suite_id=suite.id,
            rule_id=rule_id,
            test_cases=len(test_cases),
            test_types=[t.value for t in test_types],
        )
        return suite

    async def get_test_suite(self, suite_id: str) -> TestSuite:
        """Get a suite by ID.

        Raises:
            TestSuiteNotFoundError: If the suite does not exist
        """
        suite = await self._suite_store.get(suite_id)
        if suite is None:
            raise TestSuiteNotFoundError(suite_id)
        return suite

    @staticmethod
    def _transition(suite: TestSuite, status: SuiteStatus) -> None:
        if status not in SUITE_TRANSITIONS[suite.status]:
            raise SuiteStateError(suite.id, suite.status.value, status.value)
        suite.status = status

    async def execute_test_suite(
        self,
        test_suite_id: str,
        options: ExecutionOptions | None = None,
    ) -> SuiteExecution:
        """Run the cases of a suite and record the outcome.

        Args:
            test_suite_id: Suite to run
            options: Type filter, parallelism, report and baseline options

        Returns:
            Execution with results, summary and report. Status is
            ``completed`` even when cases fail, ``failed`` only when the run
            itself errors. A cancelled run is stored as ``failed`` with the
            error ``cancelled`` before the cancellation propagates.

        Raises:
            TestSuiteNotFoundError: If the suite does not exist
            SuiteStateError: If the suite is already running
        """
        options = options or ExecutionOptions()
        run_id = f"run_{uuid.uuid4().hex[:12]}"

        async with self._state_lock:
            suite = await self.get_test_suite(test_suite_id)
            self._transition(suite, SuiteStatus.RUNNING)
            run = SuiteRun(
                run_id=run_id,
                status=SuiteStatus.RUNNING,
                started_at=datetime.now(timezone.utc),
                test_types=options.test_types,
            )
            suite.runs.append(run)
            await self._suite_store.update(suite)

        with TraceContext("suite_run", suite_id=suite.id, run_id=run_id):
            logger.info("Test suite execution started", suite_id=suite.id, run_id=run_id)

            results: list[TestResult] = []
            report = None
            batch_count = 0
            error = None
            try:
                cases = [
                    case
                    for case in suite.test_cases
                    if not options.test_types or case.type in options.test_types
                ]
                parallel = (
                    options.parallel
                    if options.parallel is not None
                    else suite.configuration.parallel_execution
                )
                if parallel:
                    batch_count = await self._execute_parallel(suite, cases, run_id, results)
                else:
                    batch_count = await self._execute_sequential(suite, cases, run_id, results)

                if options.generate_report:
                    report = await self._generate_report(suite, run_id, results)
                if options.record_baselines:
                    await self._record_passing_baselines(suite.rule_id, cases, results)
                status = SuiteStatus.COMPLETED
            except asyncio.CancelledError:
                logger.warning("Test suite execution cancelled", suite_id=suite.id, run_id=run_id)
                await self._finish_run(
                    suite, run, SuiteStatus.FAILED, execution_summary(results), "cancelled"
                )
                raise
            except Exception as e:
                logger.error(
                    "Test suite execution failed",
                    suite_id=suite.id,
                    run_id=run_id,
                    error=str(e),
                    exc_info=True,
                )
                status = SuiteStatus.FAILED
                error = str(e)

            summary = report.summary if report else execution_summary(results)
            await self._finish_run(suite, run, status, summary, error)

            logger.info(
                "Test suite execution finished",
                suite_id=suite.id,
                run_id=run_id,
                status=status.value,
                total=summary.total,
                passed=summary.passed,
                failed=summary.failed,
                batches=batch_count,
            )

        return SuiteExecution(
            test_suite_id=suite.id,
            run_id=run_id,
            status=status,
            results=results,
            summary=summary,
            report=report,
            batch_count=batch_count,
        )

    async def _execute_parallel(
        self,
        suite: TestSuite,
        cases: Sequence[TestCase],
        run_id: str,
        results: list[TestResult],
    ) -> int:
        batches = create_batches(cases, suite.configuration.max_concurrent_tests)
        for index, batch in enumerate(batches, start=1):
            logger.debug("Executing test batch", suite_id=suite.id, batch=index, size=len(batch))
            batch_results = await asyncio.gather(
                *(self.execute_test_case(case, suite.configuration, suite.id, run_id) for case in batch)
            )
            results.extend(batch_results)
        return len(batches)

    async def _execute_sequential(
        self,
        suite: TestSuite,
        cases: Sequence[TestCase],
        run_id: str,
        results: list[TestResult],
    ) -> int:
        for case in cases:
            results.append(await self.execute_test_case(case, suite.configuration, suite.id, run_id))
        return len(cases)

    async def _finish_run(
        self,
        suite: TestSuite,
        run: SuiteRun,
        status: SuiteStatus,
        summary: ExecutionSummary,
        error: str | None,
    ) -> None:
        finished = datetime.now(timezone.utc)
        async with self._state_lock:
            self._transition(suite, status)
            suite.last_executed = finished
            run.status = status
            run.completed_at = finished
            run.summary = summary
            run.error = error
            try:
                await self._suite_store.update(suite)
            except StoreError as e:
                logger.error("Failed to persist test suite state", suite_id=suite.id, error=str(e))

    async def execute_test_case(
        self,
        test_case: TestCase,
        configuration: SuiteConfiguration | None = None,
        suite_id: str | None = None,
        run_id: str | None = None,
    ) -> TestResult:
        """Run one case under the configured timeout.

        Args:
            test_case: Case to run
            configuration: Timeout source, defaults from settings
            suite_id: Owning suite, results are persisted when given
            run_id: Suite run the case belongs to

        Returns:
            Result, ``failed`` on error or timeout
        """
        configuration = configuration or self.default_configuration()
        test_id = f"test_{next(self._test_ids)}"
        self._running[test_id] = RunningTest(
            test_id=test_id,
            test_case_id=test_case.id,
            suite_id=suite_id,
        )
        RUNNING_TESTS.inc()

        payload: dict[str, Any] = {}
        error = None
        started = time.perf_counter()
        try:
            payload = await asyncio.wait_for(
                self._executors.execute(test_case),
                timeout=configuration.timeout_seconds,
            )
            status = TestStatus.PASSED if payload.get("success") else TestStatus.FAILED
        except asyncio.TimeoutError:
            status = TestStatus.FAILED
            error = str(TestTimeoutError(test_case.id, configuration.timeout_seconds))
            logger.warning("Test case timed out", test_id=test_id, test_case_id=test_case.id)
        except Exception as e:
            status = TestStatus.FAILED
            error = str(e)
            logger.warning(
                "Test case execution failed",
                test_id=test_id,
                test_case_id=test_case.id,
                error=error,
            )
        finally:
            if self._running.pop(test_id, None) is not None:
                RUNNING_TESTS.dec()

        elapsed_ms = (time.perf_counter() - started) * 1000
        cancelled = test_id in self._cancelled
        self._cancelled.discard(test_id)

        result = TestResult(
            test_id=test_id,
            test_case_id=test_case.id,
            suite_id=suite_id,
            run_id=run_id,
            test_type=test_case.type,
            status=status,
            execution_time_ms=elapsed_ms,
            result=payload,
            error=error,
            cancelled=cancelled,
        )
        TEST_CASES_EXECUTED.labels(test_type=test_case.type.value, status=status.value).inc()
        TEST_CASE_LATENCY.labels(test_type=test_case.type.value).observe(elapsed_ms / 1000)

        if suite_id:
            try:
                await self._suite_store.append_result(result)
            except StoreError as e:
                logger.error("Failed to store test result", test_id=test_id, error=str(e))
        return result

    async def _generate_report(
        self,
        suite: TestSuite,
        run_id: str,
        results: Sequence[TestResult],
    ) -> TestReport:
        previous = None
        previous_results: list[TestResult] = []
        try:
            reports = await self._suite_store.list_reports(suite.id)
            if reports:
                previous = reports[-1]
                previous_results = await self._suite_store.list_results(suite.id, previous.run_id)
        except StoreError as e:
            logger.warning("Previous test report unavailable", suite_id=suite.id, error=str(e))

        report = build_report(
            suite,
            run_id,
            results,
            slow_threshold_ms=self._settings.slow_test_threshold_ms,
            previous=previous,
            previous_results=previous_results,
        )
        try:
            await self._suite_store.append_report(report)
        except StoreError as e:
            logger.error("Failed to store test report", suite_id=suite.id, error=str(e))
        return report

    async def _record_passing_baselines(
        self,
        rule_id: str,
        cases: Sequence[TestCase],
        results: Sequence[TestResult],
    ) -> None:
        by_id = {case.id: case for case in cases}
        for result in results:
            case = by_id.get(result.test_case_id)
            if (
                case is None
                or case.type != TestType.UNIT
                or result.status != TestStatus.PASSED
                or case.expected_result is None
            ):
                continue
            await self.record_baseline(
                rule_id,
                case.test_data,
                case.expected_result.model_copy(update={"integration_success": None}),
            )

    async def record_baseline(
        self,
        rule_id: str,
        test_data: dict[str, Any] | None,
        result: ExpectedResult,
    ) -> RegressionBaseline:
        """Store a known-good outcome for future regression cases.

        Recording an outcome that is already stored is a no-op.
        """
        baseline = RegressionBaseline(rule_id=rule_id, test_data=test_data, result=result)
        if await self._baseline_store.add(baseline):
            logger.info("Regression baseline recorded", rule_id=rule_id, triggered=result.triggered)
        else:
            logger.debug("Regression baseline already recorded", rule_id=rule_id)
        return baseline

    def get_running_tests(self) -> list[RunningTest]:
        """Snapshot of the in-flight test registry."""
        return [entry.model_copy() for entry in self._running.values()]

    def cancel_test(self, test_id: str) -> bool:
        """Drop a running test from the registry.

        Returns:
            True if the test was running
        """
        if self._running.pop(test_id, None) is None:
            return False
        RUNNING_TESTS.dec()
        self._cancelled.add(test_id)
        logger.info("Test cancelled", test_id=test_id)
        return True

    async def get_test_results(self, suite_id: str, run_id: str | None = None) -> list[TestResult]:
        """Stored results of a suite.

        Raises:
            TestSuiteNotFoundError: If the suite does not exist
        """
        if await self._suite_store.get_status(suite_id) is None:
            raise TestSuiteNotFoundError(suite_id)
        return await self._suite_store.list_results(suite_id, run_id)
