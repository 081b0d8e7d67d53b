"""Rule-based recommendations derived from a finalized report."""

import logging

from servicepulse.models.report import AggregateReport, Priority, Recommendation

logger = logging.getLogger(__name__)


def derive_recommendations(report: AggregateReport) -> list[Recommendation]:
    """Build recommendations for a report.

    Every matching rule contributes, in a fixed order. The last entry is
    always the low-priority maintenance note, so the result is never empty.

    Args:
        report: Finalized report (not modified)

    Returns:
        Recommendations in generation order
    """
    recommendations = []

    if report.health_score < 50:
        recommendations.append(
            Recommendation(
                priority=Priority.HIGH,
                category="health",
                message="Multiple services are unhealthy. Investigate service configurations and connectivity.",
                action="Run a full diagnostic sweep with `servicepulse --debug` and inspect each failing endpoint",
            )
        )
    elif report.health_score < 80:
        recommendations.append(
            Recommendation(
                priority=Priority.MEDIUM,
                category="health",
                message="Some services need attention. Consider reviewing service configurations.",
                action="Check individual service logs and update configurations as needed",
            )
        )

    if report.config_performance == "needs_optimization":
        recommendations.append(
            Recommendation(
                priority=Priority.MEDIUM,
                category="performance",
                message="Service registry loading is slow. Consider optimizing service startup.",
                action="Review registry size and service initialization, and consider caching configurations",
            )
        )

    missing = report.missing_workflows()
    if missing:
        recommendations.append(
            Recommendation(
                priority=Priority.MEDIUM,
                category="workflows",
                message=f"Missing required workflows: {', '.join(missing)}",
                action="Ensure all service validation workflows are properly configured",
            )
        )

    recommendations.append(
        Recommendation(
            priority=Priority.LOW,
            category="maintenance",
            message="Regular service monitoring is active.",
            action="Continue scheduled health checks and keep dependencies updated",
        )
    )

    logger.info(f"Generated {len(recommendations)} recommendations")
    return recommendations
