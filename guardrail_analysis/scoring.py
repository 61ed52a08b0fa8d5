"""
scoring.py - Risk scoring configuration and arithmetic.

Magnitudes are configuration, not law: every weight below can be
overridden (see guardrail_audit.config.load_config, section
"risk_scoring"). Relative ordering and clamping to [0, 100] are fixed.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from guardrail_detect import Severity

from .models import Environment, EnhancedViolation, UserRole, ViolationContext

MAX_SCORE = 100


class RiskScoringConfig(BaseModel):
    """Weights used by the violation analyzer."""

    severity_weights: dict[str, int] = Field(
        default_factory=lambda: {"critical": 40, "high": 30, "medium": 20, "low": 10},
        description="Points per violation severity",
    )
    context_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "production": 2.0,
            "staging": 1.5,
            "development": 1.0,
            "test": 0.8,
        },
        description="Multiplier per deployment environment",
    )
    attack_vector_weights: dict[str, int] = Field(
        default_factory=lambda: {
            "path-traversal": 35,
            "command-injection": 40,
            "script-injection": 45,
            "privilege-escalation": 50,
            "deserialization": 45,
            "xxe": 35,
            "ssti": 40,
            "ldap-injection": 30,
            "xpath-injection": 30,
            "expression-injection": 40,
            "csv-injection": 25,
            "log-forging": 20,
        },
        description="Points per attack vector (violation type)",
    )
    default_vector_weight: int = Field(20, description="Points for unlisted vector types")
    role_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"admin": 1.8, "service": 1.5, "user": 1.0, "guest": 0.8},
        description="Multiplier per user role",
    )
    correlation_bonuses: dict[str, int] = Field(
        default_factory=lambda: {
            "chained-attack": 25,
            "multi-vector": 20,
            "persistent-attempt": 15,
            "sophisticated-pattern": 30,
        },
        description="Bonus points for correlated activity",
    )
    correlation_window_seconds: int = Field(300, description="Persistent-client window")

    def severity_weight(self, severity: Severity) -> int:
        return self.severity_weights.get(severity.value, 10)

    def vector_weight(self, violation_type: str) -> int:
        return self.attack_vector_weights.get(violation_type, self.default_vector_weight)

    def environment_multiplier(self, environment: Environment) -> float:
        return self.context_multipliers.get(environment.value, 1.0)

    def role_multiplier(self, role: UserRole | None) -> float:
        if role is None:
            return 1.0
        return self.role_multipliers.get(role.value, 1.0)

    @property
    def multi_vector_bonus(self) -> int:
        return self.correlation_bonuses.get("multi-vector", 0)


def clamp(score: float) -> int:
    return int(max(0, min(round(score), MAX_SCORE)))


def calculate_violation_risk_score(
    violation: EnhancedViolation,
    context: ViolationContext,
    config: RiskScoringConfig,
) -> int:
    """(severity + vector + sum(impact)) * environment * role, clamped to 100."""
    base = (
        config.severity_weight(violation.severity)
        + config.vector_weight(violation.type)
        + sum(f.impact for f in violation.risk_factors)
    )
    score = base * config.environment_multiplier(context.environment) * config.role_multiplier(context.user_role)
    return clamp(score)


def calculate_overall_risk_score(
    violations: Sequence[EnhancedViolation],
    context: ViolationContext,
    config: RiskScoringConfig,
) -> int:
    if not violations:
        return 0

    scores = [calculate_violation_risk_score(v, context, config) for v in violations]
    total = sum(scores)
    if len(violations) > 1:
        total += config.multi_vector_bonus
    return clamp(max(total, max(scores)))


def calculate_combined_risk(
    violations: Sequence[EnhancedViolation],
    config: RiskScoringConfig,
) -> int:
    """Severity points across a correlated group plus the multi-vector bonus."""
    base = sum(config.severity_weight(v.severity) for v in violations)
    if len(violations) > 1:
        base += config.multi_vector_bonus
    return clamp(base)
