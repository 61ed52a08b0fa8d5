"""
guardrail_analysis - Contextual risk assessment of detector violations.
"""

from .analyzer import ViolationAnalyzer
from .compliance import assess_compliance, get_compliance_mapping
from .correlation import correlate_violations
from .enhancer import enhance_violation, escalate_severity
from .history import HistoryKey, HistoryKind, ViolationHistory
from .models import (
    AttackCorrelation,
    ComplianceAssessment,
    ComplianceMapping,
    EnhancedViolation,
    Environment,
    InputType,
    RecommendedAction,
    RecommendedResponse,
    RemediationSuggestion,
    RiskFactor,
    SophisticationLevel,
    ThreatCategory,
    UserRole,
    ViolationAnalysisResult,
    ViolationContext,
)
from .recommendations import generate_recommendations
from .scoring import (
    RiskScoringConfig,
    calculate_overall_risk_score,
    calculate_violation_risk_score,
)

__all__ = [
    "ViolationAnalyzer",
    "ViolationHistory",
    "HistoryKey",
    "HistoryKind",
    "RiskScoringConfig",
    "ViolationContext",
    "InputType",
    "Environment",
    "UserRole",
    "EnhancedViolation",
    "ComplianceMapping",
    "RiskFactor",
    "RemediationSuggestion",
    "AttackCorrelation",
    "SophisticationLevel",
    "RecommendedResponse",
    "ThreatCategory",
    "ComplianceAssessment",
    "RecommendedAction",
    "ViolationAnalysisResult",
    "enhance_violation",
    "escalate_severity",
    "calculate_violation_risk_score",
    "calculate_overall_risk_score",
    "correlate_violations",
    "assess_compliance",
    "get_compliance_mapping",
    "generate_recommendations",
]
