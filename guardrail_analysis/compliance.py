"""
compliance.py - Static standards mapping and compliance posture.

The lookup is total: violation types without a mapping get an empty
ComplianceMapping, never an error.
"""

from __future__ import annotations

from collections.abc import Sequence

from guardrail_detect import Severity

from .models import ComplianceAssessment, ComplianceMapping, EnhancedViolation

_INJECTION_NIST = ("PR.DS-2", "DE.CM-1")
_INJECTION_ISO = ("A.14.2.1", "A.14.2.5")

COMPLIANCE_MAPPINGS: dict[str, ComplianceMapping] = {
    "path-traversal": ComplianceMapping(
        owasp=("A01:2021-Broken Access Control",),
        cwe=("CWE-22", "CWE-23", "CWE-36", "CWE-73"),
        nist=("PR.AC-4", "DE.AE-2"),
        mitre=("T1083", "T1005"),
        iso27001=("A.9.1.2", "A.9.4.1"),
    ),
    "command-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-77", "CWE-78", "CWE-88"),
        nist=_INJECTION_NIST,
        mitre=("T1059",),
        iso27001=_INJECTION_ISO,
    ),
    "script-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-79", "CWE-89", "CWE-94"),
        nist=_INJECTION_NIST,
        mitre=("T1055", "T1027"),
        iso27001=_INJECTION_ISO,
    ),
    "privilege-escalation": ComplianceMapping(
        owasp=("A01:2021-Broken Access Control",),
        cwe=("CWE-269", "CWE-270", "CWE-272"),
        nist=("PR.AC-1", "PR.AC-4"),
        mitre=("T1068", "T1078"),
        iso27001=("A.9.1.1", "A.9.2.3"),
    ),
    "deserialization": ComplianceMapping(
        owasp=("A08:2021-Software and Data Integrity Failures",),
        cwe=("CWE-502",),
        nist=("PR.DS-6", "DE.CM-4"),
        mitre=("T1203",),
        iso27001=("A.14.2.5",),
    ),
    "xxe": ComplianceMapping(
        owasp=("A05:2021-Security Misconfiguration",),
        cwe=("CWE-611", "CWE-776"),
        nist=("PR.IP-1", "DE.CM-4"),
        mitre=("T1190",),
        iso27001=("A.14.2.5",),
    ),
    "ssti": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-1336", "CWE-94"),
        nist=_INJECTION_NIST,
        mitre=("T1190", "T1059"),
        iso27001=_INJECTION_ISO,
    ),
    "ldap-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-90",),
        nist=_INJECTION_NIST,
        mitre=("T1190",),
        iso27001=("A.14.2.1",),
    ),
    "xpath-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-643",),
        nist=_INJECTION_NIST,
        mitre=("T1190",),
        iso27001=("A.14.2.1",),
    ),
    "expression-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-917",),
        nist=_INJECTION_NIST,
        mitre=("T1059",),
        iso27001=_INJECTION_ISO,
    ),
    "csv-injection": ComplianceMapping(
        owasp=("A03:2021-Injection",),
        cwe=("CWE-1236",),
        nist=("PR.DS-2",),
        mitre=("T1204",),
        iso27001=("A.14.2.1",),
    ),
}

FRAMEWORKS = ("OWASP", "CWE", "NIST", "MITRE", "ISO27001")

# Deduction per high/critical violation
FRAMEWORK_PENALTIES = {"OWASP": 20, "CWE": 15, "NIST": 10}

COMPLIANCE_THRESHOLD = 80


def get_compliance_mapping(violation_type: str) -> ComplianceMapping:
    return COMPLIANCE_MAPPINGS.get(violation_type, ComplianceMapping())


def assess_compliance(violations: Sequence[EnhancedViolation]) -> ComplianceAssessment:
    """
    Score each framework from 100 down, one penalty per high/critical violation.

    overall_score is the mean across all five frameworks. Frameworks that
    fall under the threshold are listed as gaps.
    """
    scores = {name: 100 for name in FRAMEWORKS}
    failed: list[str] = []

    for violation in violations:
        if violation.severity < Severity.HIGH:
            continue
        for name, penalty in FRAMEWORK_PENALTIES.items():
            scores[name] -= penalty
        for requirement in violation.compliance_mapping.owasp:
            if requirement not in failed:
                failed.append(requirement)

    scores = {name: max(0, score) for name, score in scores.items()}
    overall = sum(scores.values()) / len(scores)

    gaps = tuple(
        f"{name} score {score} below {COMPLIANCE_THRESHOLD}"
        for name, score in scores.items()
        if score < COMPLIANCE_THRESHOLD
    )

    return ComplianceAssessment(
        framework_scores=scores,
        overall_score=overall,
        failed_requirements=tuple(failed),
        gaps=gaps,
    )
