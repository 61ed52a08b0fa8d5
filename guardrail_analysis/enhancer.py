"""
enhancer.py - Turn detector violations into contextualized findings.

Escalation is monotonic: a violation's severity can be raised by context
(production, command-arg injection) but never lowered. User role feeds
the risk score only.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime

from guardrail_detect import Severity, Violation

from .compliance import get_compliance_mapping
from .models import (
    EnhancedViolation,
    Environment,
    InputType,
    RemediationSuggestion,
    RiskFactor,
    ThreatCategory,
    UserRole,
    ViolationContext,
)

REMEDIATION_BY_TYPE: dict[str, RemediationSuggestion] = {
    "path-traversal": RemediationSuggestion(
        type="validation",
        priority="high",
        description="Validate and sanitize file paths to prevent directory traversal",
        example="Resolve the path and check it stays under an allowed base directory",
        auto_fix_available=True,
    ),
    "command-injection": RemediationSuggestion(
        type="sanitization",
        priority="critical",
        description="Remove or escape shell metacharacters",
        example="Pass argv lists to subprocess and use shlex.quote for display",
        auto_fix_available=True,
    ),
    "script-injection": RemediationSuggestion(
        type="blocking",
        priority="critical",
        description="Block script execution patterns completely",
        example="Reject inputs containing eval(), Function(), or script tags",
    ),
    "privilege-escalation": RemediationSuggestion(
        type="blocking",
        priority="critical",
        description="Block privilege escalation attempts",
        example="Validate user permissions and reject unauthorized access",
    ),
    "deserialization": RemediationSuggestion(
        type="validation",
        priority="critical",
        description="Validate serialized data before deserialization",
        example="Use safe deserialization libraries with type checking",
    ),
    "xxe": RemediationSuggestion(
        type="configuration",
        priority="high",
        description="Disable external entity processing in XML parsers",
        example="Configure XML parsers to reject external entities",
    ),
    "ssti": RemediationSuggestion(
        type="sanitization",
        priority="critical",
        description="Sanitize template inputs to prevent server-side injection",
        example="Use template sandboxing and input escaping",
    ),
    "ldap-injection": RemediationSuggestion(
        type="sanitization",
        priority="high",
        description="Escape LDAP special characters in user input",
        example="Use LDAP escaping functions for filter inputs",
        auto_fix_available=True,
    ),
    "xpath-injection": RemediationSuggestion(
        type="sanitization",
        priority="high",
        description="Use parameterized XPath queries",
        example="Avoid string concatenation in XPath expressions",
    ),
    "expression-injection": RemediationSuggestion(
        type="blocking",
        priority="critical",
        description="Block expression language injection attempts",
        example="Validate and sanitize expression inputs, use safe evaluation",
    ),
    "csv-injection": RemediationSuggestion(
        type="sanitization",
        priority="medium",
        description="Escape CSV special characters and formulas",
        example="Prefix formula characters with apostrophe or quotes",
        auto_fix_available=True,
    ),
}

PRODUCTION_MONITORING = RemediationSuggestion(
    type="monitoring",
    priority="high",
    description="Implement enhanced monitoring for production environment",
    example="Set up alerting and logging for security violations",
)

# name -> (description, mitigations)
THREAT_CATEGORY_INFO: dict[str, tuple[str, tuple[str, ...]]] = {
    "Path Manipulation": (
        "Attempts to access unauthorized files or directories",
        (
            "Implement strict path validation",
            "Use allow-lists for permitted directories",
            "Sanitize user input paths",
        ),
    ),
    "Command Injection": (
        "Injection of malicious commands into system calls",
        (
            "Use parameterized commands",
            "Implement command allow-lists",
            "Escape shell metacharacters",
        ),
    ),
    "Script Injection": (
        "Injection of malicious scripts or code",
        (
            "Validate and sanitize all inputs",
            "Use Content Security Policy",
            "Implement input encoding",
        ),
    ),
    "Privilege Escalation": (
        "Attempts to gain elevated system privileges",
        ("Run with least privilege", "Reject privilege elevation requests from input"),
    ),
    "File System Abuse": (
        "Access to sensitive files or platform-specific filename tricks",
        ("Restrict access to application directories", "Normalize file names before use"),
    ),
    "Unicode and Object Abuse": (
        "Look-alike characters, bidirectional overrides or prototype pollution",
        ("Normalize unicode input", "Reject control and look-alike characters in identifiers"),
    ),
    "Unsafe Deserialization": (
        "Serialized object payloads or gadget class references",
        ("Never deserialize untrusted data", "Use data-only formats such as JSON"),
    ),
    "XML External Entities": (
        "External entity declarations or entity expansion bombs",
        ("Disable DTD processing", "Limit entity expansion"),
    ),
    "Template Injection": (
        "Server-side template expressions embedded in input",
        ("Render untrusted input as data, not template source", "Enable template sandboxing"),
    ),
    "Query Injection": (
        "LDAP or XPath query manipulation",
        ("Use parameterized queries", "Escape filter special characters"),
    ),
    "Expression Language Injection": (
        "Expression language evaluation or reflection",
        ("Disable expression evaluation on untrusted input",),
    ),
    "CSV Injection": (
        "Spreadsheet formulas or DDE payloads",
        ("Prefix formula characters before export",),
    ),
}

CATEGORY_BY_TYPE = {
    "path-traversal": "Path Manipulation",
    "command-injection": "Command Injection",
    "script-injection": "Script Injection",
    "privilege-escalation": "Privilege Escalation",
    "file-system": "File System Abuse",
    "advanced-attack": "Unicode and Object Abuse",
    "deserialization": "Unsafe Deserialization",
    "xxe": "XML External Entities",
    "ssti": "Template Injection",
    "ldap-injection": "Query Injection",
    "xpath-injection": "Query Injection",
    "expression-injection": "Expression Language Injection",
    "csv-injection": "CSV Injection",
}

UNKNOWN_CATEGORY = "Unknown Threat"


def new_violation_id() -> str:
    return f"viol_{uuid.uuid4().hex[:16]}"


def build_risk_factors(violation_type: str, context: ViolationContext) -> tuple[RiskFactor, ...]:
    factors = []
    if context.environment == Environment.PRODUCTION:
        factors.append(RiskFactor(
            type="environmental",
            name="production-environment",
            impact=20,
            description="Higher impact in production environment",
        ))
    if context.user_role == UserRole.ADMIN:
        factors.append(RiskFactor(
            type="contextual",
            name="administrative-privileges",
            impact=15,
            description="Administrative user context increases risk",
        ))
    if context.input_type == InputType.COMMAND_ARG and violation_type == "command-injection":
        factors.append(RiskFactor(
            type="technical",
            name="direct-command-execution",
            impact=25,
            description="Direct command execution capability",
        ))
    return tuple(factors)


def build_remediation(violation_type: str, context: ViolationContext) -> tuple[RemediationSuggestion, ...]:
    suggestions = []
    if violation_type in REMEDIATION_BY_TYPE:
        suggestions.append(REMEDIATION_BY_TYPE[violation_type])
    if context.environment == Environment.PRODUCTION:
        suggestions.append(PRODUCTION_MONITORING)
    return tuple(suggestions)


def escalate_severity(severity: Severity, violation_type: str, context: ViolationContext) -> Severity:
    """Raise severity for the given context. Never returns a lower severity."""
    escalated = severity

    if context.environment == Environment.PRODUCTION:
        if severity == Severity.MEDIUM:
            escalated = Severity.HIGH
        elif severity == Severity.HIGH:
            escalated = Severity.CRITICAL

    if context.input_type == InputType.COMMAND_ARG and violation_type == "command-injection":
        escalated = Severity.CRITICAL

    return max(escalated, severity)


def enhance_violation(
    violation: Violation,
    context: ViolationContext,
    timestamp: datetime,
) -> EnhancedViolation:
    return EnhancedViolation(
        id=new_violation_id(),
        timestamp=timestamp,
        type=violation.type,
        pattern=violation.pattern,
        severity=escalate_severity(violation.severity, violation.type, context),
        original_severity=violation.severity,
        description=violation.description,
        recommendation=violation.recommendation,
        context=context,
        compliance_mapping=get_compliance_mapping(violation.type),
        risk_factors=build_risk_factors(violation.type, context),
        remediation=build_remediation(violation.type, context),
    )


def categorize_threats(violations: Sequence[EnhancedViolation]) -> list[ThreatCategory]:
    """Bucket violations by category; each bucket's level is its worst member."""
    buckets: dict[str, list[EnhancedViolation]] = {}
    for violation in violations:
        name = CATEGORY_BY_TYPE.get(violation.type, UNKNOWN_CATEGORY)
        buckets.setdefault(name, []).append(violation)

    categories = []
    for name, members in buckets.items():
        description, mitigations = THREAT_CATEGORY_INFO.get(
            name,
            ("Unknown threat category", ("Implement appropriate security controls",)),
        )
        categories.append(ThreatCategory(
            name=name,
            description=description,
            level=max(v.severity for v in members),
            violations=tuple(members),
            mitigations=mitigations,
        ))
    return categories
