"""Impact scores, levels, recommendations and their self checks."""

from ruleinsight.analytics.statistics import round_half_up
from ruleinsight.models.impact import (
    DimensionImpacts,
    ImpactFactor,
    ImpactLevel,
    ImpactThresholds,
    OverallImpact,
    PredictedPerformance,
    Recommendation,
    ValidationReport,
)

OVERALL_WEIGHTS = {
    "performance": 0.3,
    "business": 0.4,
    "operational": 0.2,
    "risk": 0.1,
}

SCORE_TOLERANCE = 0.01


def performance_score(predicted: PredictedPerformance, factors: dict[str, ImpactFactor]) -> float:
    return min(
        1.0,
        predicted.predicted_execution_time_ms / 1000 * 0.5
        + factors["execution_time"].score * 0.3
        + factors["resource_usage"].score * 0.1
        + factors["scalability"].score * 0.1,
    )


def business_score(factors: dict[str, ImpactFactor]) -> float:
    return (
        factors["customer_experience"].score * 0.4
        + factors["revenue"].score * 0.3
        + factors["compliance"].score * 0.2
        + factors["competitive_advantage"].score * 0.1
    )


def operational_score(factors: dict[str, ImpactFactor]) -> float:
    return (
        factors["maintenance"].score * 0.3
        + factors["support"].score * 0.3
        + factors["training"].score * 0.2
        + factors["integration"].score * 0.2
    )


def risk_score(factors: dict[str, ImpactFactor]) -> float:
    return (
        factors["security"].score * 0.3
        + factors["privacy"].score * 0.3
        + factors["stability"].score * 0.2
        + factors["compliance"].score * 0.2
    )


def confidence_from_sample_size(sample_size: int) -> float:
    """Confidence grows with the number of historical data points."""
    if sample_size > 100:
        return 0.9
    if sample_size > 50:
        return 0.8
    if sample_size > 20:
        return 0.7
    if sample_size > 10:
        return 0.6
    return 0.5


def impact_level(score: float, thresholds: ImpactThresholds) -> ImpactLevel:
    if score >= thresholds.high:
        return ImpactLevel.HIGH
    if score >= thresholds.medium:
        return ImpactLevel.MEDIUM
    if score >= thresholds.low:
        return ImpactLevel.LOW
    return ImpactLevel.MINIMAL


def calculate_overall_impact(impacts: DimensionImpacts, thresholds: ImpactThresholds) -> OverallImpact:
    """Weighted composite of the dimension scores.

    Pure function of its inputs: identical impacts always produce the same
    score and level.
    """
    breakdown = {
        "performance": impacts.performance.score,
        "business": impacts.business.score,
        "operational": impacts.operational.score,
        "risk": impacts.risk.score,
    }
    weighted = sum(breakdown[name] * weight for name, weight in OVERALL_WEIGHTS.items())

    return OverallImpact(
        score=round_half_up(weighted, 2),
        level=impact_level(weighted, thresholds),
        breakdown=breakdown,
    )


def generate_recommendations(impacts: DimensionImpacts) -> list[Recommendation]:
    """Actionable recommendations for dimensions above their thresholds."""
    recommendations = []

    if impacts.performance.score > 0.7:
        recommendations.append(
            Recommendation(
                category="performance",
                priority="high",
                title="Performance Optimization Required",
                description="Rule changes may significantly impact performance. Consider optimization strategies.",
                actions=[
                    "Review rule complexity",
                    "Consider caching strategies",
                    "Monitor execution times closely",
                ],
            )
        )

    if impacts.business.score > 0.6:
        recommendations.append(
            Recommendation(
                category="business",
                priority="high",
                title="Business Impact Assessment Needed",
                description="Rule changes may have significant business impact. Stakeholder review recommended.",
                actions=[
                    "Notify business stakeholders",
                    "Conduct impact assessment",
                    "Plan rollback strategy",
                ],
            )
        )

    if impacts.risk.score > 0.5:
        recommendations.append(
            Recommendation(
                category="risk",
                priority="medium",
                title="Risk Mitigation Required",
                description="Rule changes introduce potential risks. Mitigation strategies recommended.",
                actions=[
                    "Review security implications",
                    "Test in staging environment",
                    "Implement monitoring",
                ],
            )
        )

    return recommendations


def validate_thresholds(thresholds: ImpactThresholds) -> ValidationReport:
    """Check ``high > medium > low > 0`` and every threshold <= 1."""
    report = ValidationReport(metrics=thresholds.model_dump())
    high, medium, low = thresholds.high, thresholds.medium, thresholds.low

    if high <= medium:
        report.error(f"High threshold ({high}) must be greater than medium threshold ({medium})")
    if medium <= low:
        report.error(f"Medium threshold ({medium}) must be greater than low threshold ({low})")
    if low <= 0:
        report.error(f"Low threshold ({low}) must be greater than 0")

    for name, value in (("High", high), ("Medium", medium), ("Low", low)):
        if value > 1:
            report.error(f"{name} threshold ({value}) must be less than or equal to 1")

    return report


def validate_calculations(impacts: DimensionImpacts, thresholds: ImpactThresholds) -> ValidationReport:
    """Recompute every score and compare it with the stored one.

    Args:
        impacts: Dimension results to check
        thresholds: Thresholds used for the level

    Returns:
        Report with mismatches beyond 0.01 and out-of-range values as
        errors, out-of-range confidences as warnings
    """
    report = ValidationReport()

    try:
        recomputed = {
            "performance": performance_score(
                impacts.performance.predicted_performance,
                impacts.performance.factors,
            ),
            "business": business_score(impacts.business.factors),
            "operational": operational_score(impacts.operational.factors),
            "risk": risk_score(impacts.risk.factors),
        }
    except KeyError as e:
        report.error(f"Validation error: missing factor {e}")
        return report

    overall = calculate_overall_impact(impacts, thresholds)
    expected = round_half_up(
        sum(getattr(impacts, name).score * weight for name, weight in OVERALL_WEIGHTS.items()),
        2,
    )
    if abs(overall.score - expected) > SCORE_TOLERANCE:
        report.error(f"Overall impact calculation mismatch: expected {expected}, got {overall.score}")

    for name, score in recomputed.items():
        stored = getattr(impacts, name).score
        if abs(score - stored) > SCORE_TOLERANCE:
            report.error(f"{name.capitalize()} score calculation mismatch: expected {stored}, got {score}")

    if not 0 <= overall.score <= 1:
        report.error(f"Overall impact score out of range: {overall.score}")
    for name, score in recomputed.items():
        if not 0 <= score <= 1:
            report.error(f"{name.capitalize()} score out of range: {score}")

    for name in OVERALL_WEIGHTS:
        confidence = getattr(impacts, name).confidence
        if not 0 <= confidence <= 1:
            report.warnings.append(f"{name.capitalize()} confidence out of range: {confidence}")

    report.metrics = {
        "overall_score": overall.score,
        "overall_level": overall.level.value,
        **{f"{name}_score": score for name, score in recomputed.items()},
    }
    return report
