"""The four impact dimensions and their sub-factors.

Only the predicted execution time is derived from the rules and their
history. Every other sub-factor is a fixed stand-in score, flagged with
``placeholder=True`` so consumers can tell heuristics from measurements.
"""

from ruleinsight.impact import scoring
from ruleinsight.impact.complexity import predict_performance
from ruleinsight.models.execution import RuleMetrics
from ruleinsight.models.impact import (
    HistoricalRuleData,
    ImpactDimension,
    ImpactFactor,
    PerformanceImpact,
    PredictedPerformance,
)
from ruleinsight.models.rule import Rule

PERFORMANCE = "performance"
BUSINESS = "business"
OPERATIONAL = "operational"
RISK = "risk"

DIMENSIONS = (PERFORMANCE, BUSINESS, OPERATIONAL, RISK)

# (score, change, confidence)
STAND_IN_FACTORS: dict[str, dict[str, tuple[float, str, float]]] = {
    PERFORMANCE: {
        "execution_time": (0.3, "minimal", 0.8),
        "resource_usage": (0.2, "minimal", 0.7),
        "scalability": (0.1, "minimal", 0.6),
    },
    BUSINESS: {
        "customer_experience": (0.4, "moderate", 0.8),
        "revenue": (0.2, "minimal", 0.6),
        "compliance": (0.1, "minimal", 0.9),
        "competitive_advantage": (0.3, "moderate", 0.7),
    },
    OPERATIONAL: {
        "maintenance": (0.2, "minimal", 0.8),
        "support": (0.3, "moderate", 0.7),
        "training": (0.1, "minimal", 0.6),
        "integration": (0.2, "minimal", 0.8),
    },
    RISK: {
        "security": (0.1, "low", 0.9),
        "privacy": (0.1, "low", 0.9),
        "stability": (0.2, "low", 0.8),
        "compliance": (0.1, "low", 0.9),
    },
}

# Used when a dimension analysis fails
DEFAULT_FACTORS: dict[str, dict[str, tuple[float, str, float]]] = {
    PERFORMANCE: {
        "execution_time": (0.2, "minimal", 0.7),
        "resource_usage": (0.1, "minimal", 0.6),
        "scalability": (0.1, "minimal", 0.6),
    },
    BUSINESS: {
        "customer_experience": (0.2, "minimal", 0.7),
        "revenue": (0.1, "minimal", 0.6),
        "compliance": (0.1, "minimal", 0.8),
        "competitive_advantage": (0.1, "minimal", 0.6),
    },
    OPERATIONAL: {
        "maintenance": (0.1, "minimal", 0.7),
        "support": (0.2, "minimal", 0.6),
        "training": (0.1, "minimal", 0.6),
        "integration": (0.1, "minimal", 0.7),
    },
    RISK: {
        "security": (0.1, "low", 0.8),
        "privacy": (0.1, "low", 0.8),
        "stability": (0.1, "low", 0.7),
        "compliance": (0.1, "low", 0.8),
    },
}

DEFAULT_SCORES = {PERFORMANCE: 0.3, BUSINESS: 0.2, OPERATIONAL: 0.2, RISK: 0.1}
DEFAULT_CONFIDENCE = {PERFORMANCE: 0.7, BUSINESS: 0.7, OPERATIONAL: 0.7, RISK: 0.8}


def _factors(table: dict[str, tuple[float, str, float]]) -> dict[str, ImpactFactor]:
    return {
        name: ImpactFactor(score=score, change=change, confidence=confidence, placeholder=True)
        for name, (score, change, confidence) in table.items()
    }


def stand_in_factors(dimension: str) -> dict[str, ImpactFactor]:
    """Fixed sub-factor scores of a dimension."""
    return _factors(STAND_IN_FACTORS[dimension])


def analyze_performance(
    old_rule: Rule,
    new_rule: Rule,
    history: HistoricalRuleData,
    metrics: RuleMetrics,
) -> PerformanceImpact:
    """Performance axis driven by the predicted execution time.

    Args:
        old_rule: Rule before the change
        new_rule: Rule after the change
        history: Baseline data, sets the confidence
        metrics: Recent metrics of the rule

    Returns:
        Performance impact
    """
    predicted = predict_performance(old_rule, new_rule, metrics)
    factors = stand_in_factors(PERFORMANCE)
    execution_time = factors["execution_time"]

    recommendations = []
    if predicted.predicted_execution_time_ms > 1000:
        recommendations.append("Consider optimizing rule conditions for better performance")
    if execution_time.score > 0.5:
        recommendations.append("Monitor execution times closely after deployment")

    return PerformanceImpact(
        score=scoring.performance_score(predicted, factors),
        confidence=scoring.confidence_from_sample_size(history.sample_size),
        factors=factors,
        recommendations=recommendations,
        predicted_performance=predicted,
    )


def analyze_business(old_rule: Rule, new_rule: Rule, history: HistoricalRuleData) -> ImpactDimension:
    factors = stand_in_factors(BUSINESS)

    recommendations = []
    if factors["customer_experience"].score > 0.5:
        recommendations.append("Notify customer service team of potential impact")
    if factors["revenue"].score > 0.3:
        recommendations.append("Review revenue implications with business stakeholders")

    return ImpactDimension(
        name=BUSINESS,
        score=scoring.business_score(factors),
        confidence=scoring.confidence_from_sample_size(history.sample_size),
        factors=factors,
        recommendations=recommendations,
    )


def analyze_operational(old_rule: Rule, new_rule: Rule, history: HistoricalRuleData) -> ImpactDimension:
    factors = stand_in_factors(OPERATIONAL)

    recommendations = []
    if factors["maintenance"].score > 0.4:
        recommendations.append("Update maintenance procedures and documentation")
    if factors["support"].score > 0.3:
        recommendations.append("Train support team on new rule behavior")

    return ImpactDimension(
        name=OPERATIONAL,
        score=scoring.operational_score(factors),
        confidence=scoring.confidence_from_sample_size(history.sample_size),
        factors=factors,
        recommendations=recommendations,
    )


def analyze_risk(old_rule: Rule, new_rule: Rule, history: HistoricalRuleData) -> ImpactDimension:
    factors = stand_in_factors(RISK)

    recommendations = []
    if factors["security"].score > 0.3:
        recommendations.append("Conduct security review before deployment")
    if factors["privacy"].score > 0.2:
        recommendations.append("Review privacy implications")
    if factors["stability"].score > 0.4:
        recommendations.append("Test thoroughly in staging environment")

    return ImpactDimension(
        name=RISK,
        score=scoring.risk_score(factors),
        confidence=scoring.confidence_from_sample_size(history.sample_size),
        factors=factors,
        recommendations=recommendations,
    )


def default_dimension(name: str) -> ImpactDimension:
    """Documented fallback for a dimension whose analysis failed."""
    if name == PERFORMANCE:
        return PerformanceImpact(
            score=DEFAULT_SCORES[PERFORMANCE],
            confidence=DEFAULT_CONFIDENCE[PERFORMANCE],
            factors=_factors(DEFAULT_FACTORS[PERFORMANCE]),
            predicted_performance=PredictedPerformance(
                predicted_execution_time_ms=100,
                confidence=0.7,
            ),
        )
    return ImpactDimension(
        name=name,
        score=DEFAULT_SCORES[name],
        confidence=DEFAULT_CONFIDENCE[name],
        factors=_factors(DEFAULT_FACTORS[name]),
    )
