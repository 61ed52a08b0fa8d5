"""
correlation.py - Link violations within a call, a session or a client.

Correlations are transient: recomputed on every call from the current
violations plus a ViolationHistory snapshot.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta

from guardrail_detect import Severity

from .history import HistoryKey, ViolationHistory
from .models import (
    AttackCorrelation,
    EnhancedViolation,
    RecommendedResponse,
    SophisticationLevel,
    ViolationContext,
)
from .scoring import RiskScoringConfig, calculate_combined_risk

MULTI_VECTOR = "multi-vector-attack"
SESSION_BASED = "session-based-attack"
PERSISTENT_CLIENT = "persistent-client-attack"


def new_correlation_id() -> str:
    return f"corr_{uuid.uuid4().hex[:16]}"


def assess_sophistication(violations: Sequence[EnhancedViolation]) -> SophisticationLevel:
    critical = sum(1 for v in violations if v.severity == Severity.CRITICAL)
    vector_types = len({v.type for v in violations})

    if critical >= 2 and vector_types >= 3:
        return SophisticationLevel.EXPERT
    if critical >= 1 and vector_types >= 2:
        return SophisticationLevel.ADVANCED
    if vector_types >= 2:
        return SophisticationLevel.INTERMEDIATE
    return SophisticationLevel.BASIC


def recommend_response(violations: Sequence[EnhancedViolation]) -> RecommendedResponse:
    """escalate > block > warn > monitor."""
    if any(v.severity == Severity.CRITICAL for v in violations):
        return RecommendedResponse.ESCALATE
    if sum(1 for v in violations if v.severity == Severity.HIGH) >= 2:
        return RecommendedResponse.BLOCK
    if len(violations) > 1:
        return RecommendedResponse.WARN
    return RecommendedResponse.MONITOR


def tag_multi_vector(
    violations: Sequence[EnhancedViolation],
    config: RiskScoringConfig,
) -> tuple[list[EnhancedViolation], AttackCorrelation | None]:
    """
    Build the in-call multi-vector correlation.

    Returns the violations stamped with the correlation id (or unchanged
    when fewer than two) and the correlation itself.
    """
    if len(violations) < 2:
        return list(violations), None

    correlation_id = new_correlation_id()
    tagged = [replace(v, correlation_id=correlation_id) for v in violations]
    return tagged, AttackCorrelation(
        correlation_id=correlation_id,
        violations=tuple(tagged),
        attack_pattern=MULTI_VECTOR,
        combined_risk_score=calculate_combined_risk(tagged, config),
        sophistication_level=assess_sophistication(tagged),
        recommended_response=recommend_response(tagged),
    )


def find_historical_correlations(
    violations: Sequence[EnhancedViolation],
    context: ViolationContext,
    history: ViolationHistory,
    config: RiskScoringConfig,
    now: datetime,
) -> list[AttackCorrelation]:
    correlations = []

    if context.session_id:
        prior = history.get(HistoryKey.session(context.session_id))
        if prior:
            group = (*prior, *violations)
            correlations.append(AttackCorrelation(
                correlation_id=new_correlation_id(),
                violations=group,
                attack_pattern=SESSION_BASED,
                combined_risk_score=calculate_combined_risk(group, config),
                sophistication_level=SophisticationLevel.INTERMEDIATE,
                recommended_response=RecommendedResponse.WARN,
            ))

    if context.client_id:
        window = timedelta(seconds=config.correlation_window_seconds)
        recent = history.within(HistoryKey.client(context.client_id), window, now)
        if recent:
            group = (*recent, *violations)
            correlations.append(AttackCorrelation(
                correlation_id=new_correlation_id(),
                violations=group,
                attack_pattern=PERSISTENT_CLIENT,
                combined_risk_score=calculate_combined_risk(group, config),
                sophistication_level=SophisticationLevel.ADVANCED,
                recommended_response=RecommendedResponse.BLOCK,
            ))

    return correlations


def correlate_violations(
    violations: Sequence[EnhancedViolation],
    context: ViolationContext,
    history: ViolationHistory,
    config: RiskScoringConfig,
    now: datetime,
) -> tuple[list[EnhancedViolation], list[AttackCorrelation]]:
    tagged, multi_vector = tag_multi_vector(violations, config)
    correlations = [multi_vector] if multi_vector else []
    correlations.extend(find_historical_correlations(tagged, context, history, config, now))
    return tagged, correlations
