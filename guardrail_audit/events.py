"""
guardrail_audit/events.py - Audit event vocabulary.

Enumerations, context records and the mappings used to derive audit
event types and severities from detector violations and log records.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuditEventType(str, Enum):
    # Authentication
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    AUTH_TIMEOUT = "auth_timeout"
    AUTH_LOCKOUT = "auth_lockout"

    # Authorization
    AUTHZ_SUCCESS = "authz_success"
    AUTHZ_FAILURE = "authz_failure"
    PRIVILEGE_ESCALATION = "privilege_escalation"
    PERMISSION_DENIED = "permission_denied"

    # Configuration
    CONFIG_CHANGE = "config_change"
    POLICY_CHANGE = "policy_change"
    SETTING_CHANGE = "setting_change"

    # Security
    SECURITY_VIOLATION = "security_violation"
    ATTACK_DETECTED = "attack_detected"
    INTRUSION_ATTEMPT = "intrusion_attempt"
    MALICIOUS_INPUT = "malicious_input"

    # Data
    DATA_ACCESS = "data_access"
    DATA_MODIFICATION = "data_modification"
    DATA_DELETION = "data_deletion"
    DATA_EXPORT = "data_export"

    # System
    SYSTEM_START = "system_start"
    SYSTEM_STOP = "system_stop"
    SYSTEM_ERROR = "system_error"
    RESOURCE_EXHAUSTION = "resource_exhaustion"

    # Administration
    ADMIN_ACTION = "admin_action"
    USER_CREATION = "user_creation"
    USER_DELETION = "user_deletion"
    ROLE_ASSIGNMENT = "role_assignment"

    # Command line
    COMMAND_EXECUTION = "command_execution"
    COMMAND_FAILURE = "command_failure"
    COMMAND_TIMEOUT = "command_timeout"
    CLI_STARTUP = "cli_startup"
    CLI_SHUTDOWN = "cli_shutdown"


class AuditSeverity(str, Enum):
    INFORMATIONAL = "informational"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = list(AuditSeverity)


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"
    UNKNOWN = "unknown"


class ThreatLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityClassification(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class IntegrityStatus(str, Enum):
    VERIFIED = "verified"
    CORRUPTED = "corrupted"
    TAMPERED = "tampered"
    MISSING = "missing"
    UNKNOWN = "unknown"


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None


class AuditUserContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    roles: tuple[str, ...] = ()
    permissions: tuple[str, ...] = ()
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    location: Optional[Location] = None


class AuditSystemContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    hostname: Optional[str] = None
    process_id: Optional[int] = None
    parent_process_id: Optional[int] = None
    working_directory: Optional[str] = None
    environment_type: Optional[str] = None  # development | staging | production
    version: Optional[str] = None
    build_id: Optional[str] = None
    deployment_id: Optional[str] = None


class AuditResourceContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    resource_path: Optional[str] = None
    resource_name: Optional[str] = None
    resource_owner: Optional[str] = None
    resource_permissions: tuple[str, ...] = ()
    before_value: Any = None
    after_value: Any = None


def severity_at_least(severity: AuditSeverity, minimum: AuditSeverity) -> bool:
    return severity.rank >= minimum.rank


def severity_for_log_level(levelno: int) -> AuditSeverity:
    """
    Map a stdlib logging level to an audit severity.

    DEBUG and below are informational, INFO low, WARNING medium,
    ERROR high and CRITICAL critical.
    """
    if levelno >= logging.CRITICAL:
        return AuditSeverity.CRITICAL
    if levelno >= logging.ERROR:
        return AuditSeverity.HIGH
    if levelno >= logging.WARNING:
        return AuditSeverity.MEDIUM
    if levelno >= logging.INFO:
        return AuditSeverity.LOW
    return AuditSeverity.INFORMATIONAL


def severity_for_violation(severity: str) -> AuditSeverity:
    try:
        return AuditSeverity(str(severity).lower())
    except ValueError:
        return AuditSeverity.INFORMATIONAL


def threat_level_for_violation(severity: str) -> ThreatLevel:
    try:
        return ThreatLevel(str(severity).lower())
    except ValueError:
        return ThreatLevel.NONE


def event_type_for_violation(violation_type: str) -> AuditEventType:
    """Derive the audit event type from a detector violation type."""
    kind = violation_type.lower()
    if "auth" in kind:
        return AuditEventType.AUTH_FAILURE
    if "privilege" in kind:
        return AuditEventType.PRIVILEGE_ESCALATION
    if "injection" in kind or "xss" in kind or "sql" in kind:
        return AuditEventType.ATTACK_DETECTED
    if "malicious" in kind or "dangerous" in kind:
        return AuditEventType.MALICIOUS_INPUT
    if "access" in kind or "permission" in kind:
        return AuditEventType.PERMISSION_DENIED
    return AuditEventType.SECURITY_VIOLATION


def event_type_for_log_record(record: logging.LogRecord) -> AuditEventType:
    """
    Derive the audit event type from a log record.

    Records may carry ``audit_event``, ``security_flags``, ``component``
    and ``operation`` via the ``extra`` argument of the logging call.
    """
    if record.exc_info:
        return AuditEventType.SYSTEM_ERROR
    if getattr(record, "audit_event", False):
        return AuditEventType.ADMIN_ACTION
    if "violations_detected" in getattr(record, "security_flags", ()):
        return AuditEventType.SECURITY_VIOLATION
    if getattr(record, "component", None) == "cli" or "command" in (getattr(record, "operation", None) or ""):
        return AuditEventType.COMMAND_EXECUTION
    return AuditEventType.SYSTEM_START
