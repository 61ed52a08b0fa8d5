"""
models.py - Data transfer objects for violation analysis.

Everything here is an immutable value except ViolationAnalysisResult,
which is assembled once per analyze_violations() call and handed to the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from guardrail_detect import Severity


class InputType(str, Enum):
    PROJECT_NAME = "project-name"
    PACKAGE_MANAGER = "package-manager"
    FILE_PATH = "file-path"
    COMMAND_ARG = "command-arg"
    CONFIG_VALUE = "config-value"
    URL = "url"
    EMAIL = "email"


class Environment(str, Enum):
    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"
    TEST = "test"


class UserRole(str, Enum):
    ADMIN = "admin"
    SERVICE = "service"
    USER = "user"
    GUEST = "guest"


class SophisticationLevel(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class RecommendedResponse(str, Enum):
    MONITOR = "monitor"
    WARN = "warn"
    BLOCK = "block"
    ESCALATE = "escalate"


@dataclass(frozen=True)
class ViolationContext:
    """Caller-supplied context for one analysis. Read-only."""

    input_type: InputType
    environment: Environment = Environment.DEVELOPMENT
    user_role: UserRole | None = None
    session_id: str | None = None
    client_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_type": self.input_type.value,
            "environment": self.environment.value,
            "user_role": self.user_role.value if self.user_role else None,
            "session_id": self.session_id,
            "client_id": self.client_id,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ComplianceMapping:
    owasp: tuple[str, ...] = ()
    cwe: tuple[str, ...] = ()
    nist: tuple[str, ...] = ()
    mitre: tuple[str, ...] = ()
    iso27001: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.owasp or self.cwe or self.nist or self.mitre or self.iso27001)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "owasp": list(self.owasp),
            "cwe": list(self.cwe),
            "nist": list(self.nist),
            "mitre": list(self.mitre),
            "iso27001": list(self.iso27001),
        }


@dataclass(frozen=True)
class RiskFactor:
    type: str  # environmental | contextual | technical
    name: str
    impact: int  # 0-100
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "impact": self.impact,
            "description": self.description,
        }


@dataclass(frozen=True)
class RemediationSuggestion:
    type: str  # validation | sanitization | blocking | configuration | monitoring
    priority: str
    description: str
    example: str = ""
    auto_fix_available: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority,
            "description": self.description,
            "example": self.example,
            "auto_fix_available": self.auto_fix_available,
        }


@dataclass(frozen=True)
class EnhancedViolation:
    """
    A detector violation enriched with identity, context and remediation.

    severity is the escalated severity; original_severity keeps the
    detector's verdict so escalation can be audited.
    """

    id: str
    timestamp: datetime
    type: str
    pattern: str
    severity: Severity
    original_severity: Severity
    description: str
    recommendation: str
    context: ViolationContext
    compliance_mapping: ComplianceMapping
    risk_factors: tuple[RiskFactor, ...] = ()
    remediation: tuple[RemediationSuggestion, ...] = ()
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type,
            "pattern": self.pattern,
            "severity": self.severity.value,
            "original_severity": self.original_severity.value,
            "description": self.description,
            "recommendation": self.recommendation,
            "context": self.context.to_dict(),
            "compliance_mapping": self.compliance_mapping.to_dict(),
            "risk_factors": [f.to_dict() for f in self.risk_factors],
            "remediation": [r.to_dict() for r in self.remediation],
            "correlation_id": self.correlation_id,
        }


@dataclass(frozen=True)
class AttackCorrelation:
    correlation_id: str
    violations: tuple[EnhancedViolation, ...]
    attack_pattern: str
    combined_risk_score: int
    sophistication_level: SophisticationLevel
    recommended_response: RecommendedResponse

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "violation_ids": [v.id for v in self.violations],
            "attack_pattern": self.attack_pattern,
            "combined_risk_score": self.combined_risk_score,
            "sophistication_level": self.sophistication_level.value,
            "recommended_response": self.recommended_response.value,
        }


@dataclass(frozen=True)
class ThreatCategory:
    name: str
    description: str
    level: Severity
    violations: tuple[EnhancedViolation, ...]
    mitigations: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "level": self.level.value,
            "violation_ids": [v.id for v in self.violations],
            "mitigations": list(self.mitigations),
        }


@dataclass(frozen=True)
class ComplianceAssessment:
    framework_scores: dict[str, int]
    overall_score: float
    failed_requirements: tuple[str, ...]
    gaps: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework_scores": dict(self.framework_scores),
            "overall_score": self.overall_score,
            "failed_requirements": list(self.failed_requirements),
            "gaps": list(self.gaps),
        }


@dataclass(frozen=True)
class RecommendedAction:
    type: str  # immediate | short-term | long-term
    description: str
    priority: str
    effort: str
    impact: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "priority": self.priority,
            "effort": self.effort,
            "impact": self.impact,
        }


@dataclass
class ViolationAnalysisResult:
    is_secure: bool
    sanitized_input: str
    violations: list[EnhancedViolation]
    overall_risk_score: int
    threat_categories: list[ThreatCategory]
    attack_correlations: list[AttackCorrelation]
    compliance_assessment: ComplianceAssessment
    recommended_actions: list[RecommendedAction]

    @property
    def highest_severity(self) -> Severity | None:
        if not self.violations:
            return None
        return max(v.severity for v in self.violations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_secure": self.is_secure,
            "sanitized_input": self.sanitized_input,
            "violations": [v.to_dict() for v in self.violations],
            "overall_risk_score": self.overall_risk_score,
            "threat_categories": [c.to_dict() for c in self.threat_categories],
            "attack_correlations": [c.to_dict() for c in self.attack_correlations],
            "compliance_assessment": self.compliance_assessment.to_dict(),
            "recommended_actions": [a.to_dict() for a in self.recommended_actions],
        }
