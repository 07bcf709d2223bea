"""Domain exceptions."""


class RuleInsightError(Exception):
    """Base class for all RuleInsight errors."""


class StoreError(RuleInsightError):
    """Persistent store could not be read or written."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Store operation '{operation}' failed{detail}")


class RuleNotFoundError(RuleInsightError):
    """Rule definition does not exist."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} not found")


class TestSuiteNotFoundError(RuleInsightError):
    """Test suite does not exist."""

    __test__ = False

    def __init__(self, suite_id: str):
        self.suite_id = suite_id
        super().__init__(f"Test suite {suite_id} not found")


class SuiteStateError(RuleInsightError):
    """Requested test suite status transition is not allowed."""

    def __init__(self, suite_id: str, current: str, requested: str):
        self.suite_id = suite_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Test suite {suite_id} cannot move from '{current}' to '{requested}'"
        )


class InvalidThresholdsError(RuleInsightError):
    """Impact thresholds violate high > medium > low > 0 and <= 1."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid impact thresholds: " + "; ".join(errors))


class TestTimeoutError(RuleInsightError):
    """Test case exceeded its execution timeout."""

    __test__ = False

    def __init__(self, test_case_id: str, timeout: float):
        self.test_case_id = test_case_id
        self.timeout = timeout
        super().__init__(f"Test case {test_case_id} timed out after {timeout:g}s")
