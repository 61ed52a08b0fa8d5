"""
analyzer.py - Contextual violation analysis.

ViolationAnalyzer runs the pattern detector and turns its matches into a
ViolationAnalysisResult: escalated severities, risk scores, threat
categories, correlations against the supplied ViolationHistory, a
compliance assessment and recommended actions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from guardrail_detect import PatternDetector

from .compliance import assess_compliance
from .correlation import correlate_violations
from .enhancer import categorize_threats, enhance_violation
from .history import HistoryKey, ViolationHistory
from .models import ViolationAnalysisResult, ViolationContext
from .recommendations import generate_recommendations
from .scoring import RiskScoringConfig, calculate_overall_risk_score

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ViolationAnalyzer:
    """
    Analyze inputs against a shared, caller-owned violation history.

    Args:
        history: Correlation memory. Cleared by its owner, not here.
        scoring: Risk weights; defaults to RiskScoringConfig().
        detector: Pattern detector; defaults to PatternDetector().
        clock: Returns the current UTC time. Injected by tests.
    """

    def __init__(
        self,
        history: ViolationHistory,
        scoring: RiskScoringConfig | None = None,
        detector: PatternDetector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.history = history
        self.scoring = scoring or RiskScoringConfig()
        self.detector = detector or PatternDetector()
        self._clock = clock or _utcnow

    def analyze_violations(self, value: Any, context: ViolationContext) -> ViolationAnalysisResult:
        base = self.detector.analyze(value)
        now = self._clock()

        enhanced = [enhance_violation(v, context, now) for v in base.violations]
        enhanced, correlations = correlate_violations(
            enhanced, context, self.history, self.scoring, now
        )

        overall = calculate_overall_risk_score(enhanced, context, self.scoring)
        categories = categorize_threats(enhanced)
        compliance = assess_compliance(enhanced)

        if enhanced:
            if context.session_id:
                self.history.record(HistoryKey.session(context.session_id), enhanced)
            if context.client_id:
                self.history.record(HistoryKey.client(context.client_id), enhanced)

        actions = generate_recommendations(enhanced, categories, correlations, compliance)

        if enhanced:
            logger.debug(
                "Analyzed %s input: %d violations, risk %d, %d correlations",
                context.input_type.value, len(enhanced), overall, len(correlations),
            )

        return ViolationAnalysisResult(
            is_secure=base.is_secure,
            sanitized_input=base.sanitized_input,
            violations=enhanced,
            overall_risk_score=overall,
            threat_categories=categories,
            attack_correlations=correlations,
            compliance_assessment=compliance,
            recommended_actions=actions,
        )
