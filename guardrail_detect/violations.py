"""
guardrail_detect/violations.py - Detection result types

A Violation is a single indicator that an input matches a known attack
category. Violations carry no identity; they are produced fresh on every
analysis call.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Dict, Any


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass(frozen=True)
class Violation:
    """Single detected indicator."""
    type: str
    pattern: str
    severity: Severity
    description: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "pattern": self.pattern,
            "severity": self.severity.value,
            "description": self.description,
            "recommendation": self.recommendation,
        }


@dataclass
class SecurityAnalysisResult:
    """Outcome of one detector pass over an input string."""
    is_secure: bool
    violations: List[Violation] = field(default_factory=list)
    risk_score: int = 0
    sanitized_input: str = ""

    def has_type(self, violation_type: str) -> bool:
        return any(v.type == violation_type for v in self.violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_secure": self.is_secure,
            "violations": [v.to_dict() for v in self.violations],
            "risk_score": self.risk_score,
            "sanitized_input": self.sanitized_input,
        }
