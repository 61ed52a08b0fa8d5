"""
guardrail_verify/errors.py - Verification Outcome Taxonomy

Machine-readable results of verifying an exported audit trail.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional


class VerificationStatus(str, Enum):
    """Final verification outcome."""
    PASS = "PASS"
    FAIL = "FAIL"
    DEGRADED = "DEGRADED"


class FindingType(str, Enum):
    """Classification of individual findings."""
    # Fatal (cause FAIL)
    CHECKSUM_MISMATCH = "CHECKSUM_MISMATCH"
    CHAIN_BREAK = "CHAIN_BREAK"
    DIGEST_MISMATCH = "DIGEST_MISMATCH"
    MALFORMED_EXPORT = "MALFORMED_EXPORT"

    # Degrading (cause DEGRADED)
    PARTIAL_EXPORT = "PARTIAL_EXPORT"

    # Informational
    UNSEALED_ENTRY = "UNSEALED_ENTRY"
    UNANCHORED_CHAIN = "UNANCHORED_CHAIN"


class FindingSeverity(str, Enum):
    FATAL = "FATAL"  # Causes FAIL
    WARNING = "WARNING"  # Causes DEGRADED
    INFO = "INFO"  # No status impact


@dataclass
class Finding:
    """Individual verification finding."""
    finding_type: FindingType
    severity: FindingSeverity
    message: str
    position: Optional[int] = None
    entry_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.finding_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "position": self.position,
            "entry_id": self.entry_id,
            "details": self.details or {},
        }


@dataclass
class VerificationReport:
    """Complete verification report for one export."""
    trail_name: str
    status: VerificationStatus
    entry_count: int
    algorithm: str
    digest: Optional[str]
    final_checksum: Optional[str]
    complete: bool
    findings: List[Finding] = field(default_factory=list)

    def findings_of(self, finding_type: FindingType) -> List[Finding]:
        return [f for f in self.findings if f.finding_type == finding_type]

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the report for JSON output.

        Returns:
            dict: trail_name, status, entry_count, algorithm, digest,
            final_checksum, complete, findings and exit_code.
        """
        return {
            "trail_name": self.trail_name,
            "status": self.status.value,
            "entry_count": self.entry_count,
            "algorithm": self.algorithm,
            "digest": self.digest,
            "final_checksum": self.final_checksum,
            "complete": self.complete,
            "findings": [f.to_dict() for f in self.findings],
            "exit_code": self.exit_code,
        }

    @property
    def exit_code(self) -> int:
        """0 = PASS, 1 = DEGRADED, 2 = any other status."""
        if self.status == VerificationStatus.PASS:
            return 0
        elif self.status == VerificationStatus.DEGRADED:
            return 1
        else:
            return 2
