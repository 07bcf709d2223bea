"""Rule complexity and execution time prediction."""

from ruleinsight.analytics.statistics import round_half_up
from ruleinsight.models.execution import RuleMetrics
from ruleinsight.models.impact import PredictedPerformance, ValidationReport
from ruleinsight.models.rule import ActionKind, ConditionType, Rule

DEFAULT_BASELINE_MS = 100
MAX_EXPECTED_COMPLEXITY = 20


def rule_complexity(rule: Rule) -> int:
    """Complexity points of a rule.

    Base 1, +2 for complex or +1 for simple conditions, one point per
    condition beyond the first, +1 for escalate or +2 for auto_reply, and +1
    for priority above 7.
    """
    complexity = 1

    if rule.condition_type == ConditionType.COMPLEX:
        complexity += 2
    elif rule.condition_type == ConditionType.SIMPLE:
        complexity += 1

    if len(rule.conditions) > 1:
        complexity += len(rule.conditions) - 1

    if rule.escalation_action == ActionKind.ESCALATE:
        complexity += 1
    elif rule.escalation_action == ActionKind.AUTO_REPLY:
        complexity += 2

    if rule.priority > 7:
        complexity += 1

    return complexity


def complexity_change(old_rule: Rule, new_rule: Rule) -> int:
    return rule_complexity(new_rule) - rule_complexity(old_rule)


def _token_change(old_tokens: list[str], new_tokens: list[str]) -> int:
    added = [token for token in new_tokens if token not in old_tokens]
    removed = [token for token in old_tokens if token not in new_tokens]
    return len(added) - len(removed)


def condition_change(old_rule: Rule, new_rule: Rule) -> int:
    """Added minus removed condition tokens."""
    return _token_change(old_rule.extract_conditions(), new_rule.extract_conditions())


def action_change(old_rule: Rule, new_rule: Rule) -> int:
    """Added minus removed action tokens."""
    return _token_change(old_rule.extract_actions(), new_rule.extract_actions())


def prediction_confidence(total_executions: int) -> float:
    if total_executions > 100:
        return 0.9
    if total_executions > 50:
        return 0.8
    if total_executions > 20:
        return 0.7
    return 0.6


def predict_performance(old_rule: Rule, new_rule: Rule, metrics: RuleMetrics) -> PredictedPerformance:
    """Predict the execution time of ``new_rule`` from current metrics.

    Args:
        old_rule: Rule before the change
        new_rule: Rule after the change
        metrics: Recent metrics of the rule, average time is the baseline

    Returns:
        Prediction rounded to whole milliseconds
    """
    delta = complexity_change(old_rule, new_rule)
    conditions = condition_change(old_rule, new_rule)
    actions = action_change(old_rule, new_rule)

    baseline = metrics.average_execution_time_ms or DEFAULT_BASELINE_MS
    predicted = baseline

    if delta > 0:
        predicted *= 1 + delta * 0.2
    elif delta < 0:
        predicted *= 1 + delta * 0.1

    if conditions > 0:
        predicted *= 1 + conditions * 0.15
    if actions > 0:
        predicted *= 1 + actions * 0.1

    return PredictedPerformance(
        baseline_execution_time_ms=baseline,
        predicted_execution_time_ms=round_half_up(max(predicted, 0)),
        complexity_change=delta,
        condition_change=conditions,
        action_change=actions,
        confidence=prediction_confidence(metrics.total_executions),
    )


def validate_rule_complexity(rule: Rule) -> ValidationReport:
    """Check the complexity of a rule is in the expected range."""
    complexity = rule_complexity(rule)
    report = ValidationReport(metrics={"complexity": complexity})

    if complexity < 1:
        report.error(f"Rule complexity too low: {complexity}")
    if complexity > MAX_EXPECTED_COMPLEXITY:
        report.warnings.append(f"Rule complexity very high: {complexity}")
    return report
