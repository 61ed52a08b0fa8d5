"""
recommendations.py - Recommended actions from the overall picture.
"""

from __future__ import annotations

from collections.abc import Sequence

from guardrail_detect import Severity

from .compliance import COMPLIANCE_THRESHOLD
from .models import (
    AttackCorrelation,
    ComplianceAssessment,
    EnhancedViolation,
    RecommendedAction,
    ThreatCategory,
)


def generate_recommendations(
    violations: Sequence[EnhancedViolation],
    categories: Sequence[ThreatCategory],
    correlations: Sequence[AttackCorrelation],
    compliance: ComplianceAssessment,
) -> list[RecommendedAction]:
    actions = []

    critical = [v for v in violations if v.severity == Severity.CRITICAL]
    if critical:
        actions.append(RecommendedAction(
            type="immediate",
            description=f"Address {len(critical)} critical security violations immediately",
            priority="critical",
            effort="moderate",
            impact="Prevents potential security breaches",
        ))

    if correlations:
        actions.append(RecommendedAction(
            type="immediate",
            description="Investigate correlated attack patterns and implement monitoring",
            priority="high",
            effort="significant",
            impact="Detects and prevents coordinated attacks",
        ))

    if compliance.overall_score < COMPLIANCE_THRESHOLD:
        actions.append(RecommendedAction(
            type="short-term",
            description="Improve compliance posture to meet security standards",
            priority="medium",
            effort="extensive",
            impact="Ensures regulatory compliance and reduces audit risk",
        ))

    # Category mitigations are folded in for buckets that reached high/critical
    for category in categories:
        if category.level >= Severity.HIGH and category.mitigations:
            actions.append(RecommendedAction(
                type="long-term",
                description=f"{category.name}: {category.mitigations[0]}",
                priority="low",
                effort="moderate",
                impact=category.description,
            ))

    return actions
