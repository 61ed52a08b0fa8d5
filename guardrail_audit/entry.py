"""
guardrail_audit/entry.py - Immutable audit entries and their builder.

An AuditEntry is frozen from construction. Storage never edits one; it
seals a copy carrying checksum and previous_entry_hash.
"""
from __future__ import annotations

import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import AuditError, AuditValidationError, invalid_entry, missing_fields
from .events import (
    AuditEventType,
    AuditResourceContext,
    AuditSeverity,
    AuditSystemContext,
    AuditUserContext,
    Outcome,
    SecurityClassification,
    ThreatLevel,
)

DEFAULT_RETENTION_DAYS = 365

REQUIRED_FIELDS = ("event_type", "severity", "message", "outcome")

# Fields that never enter the entry checksum
SEAL_FIELDS = frozenset({"checksum", "previous_entry_hash"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def new_audit_id() -> str:
    return f"audit_{int(time.time() * 1000):x}_{secrets.token_hex(8)}"


def parse_retention_days(policy: str, default: int = DEFAULT_RETENTION_DAYS) -> int:
    """``"90d"`` -> 90. Policies without digits fall back to default."""
    digits = re.sub(r"\D", "", policy)
    return int(digits) if digits and int(digits) > 0 else default


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    event_type: AuditEventType
    severity: AuditSeverity
    message: str
    description: Optional[str] = None
    outcome: Outcome

    user_context: Optional[AuditUserContext] = None
    system_context: Optional[AuditSystemContext] = None
    resource_context: Optional[AuditResourceContext] = None

    security_classification: SecurityClassification = SecurityClassification.INTERNAL
    security_violations: tuple[dict[str, Any], ...] = ()
    threat_level: Optional[ThreatLevel] = None

    trace_id: Optional[str] = None
    correlation_id: Optional[str] = None
    parent_event_id: Optional[str] = None
    related_event_ids: tuple[str, ...] = ()

    tags: tuple[str, ...] = ()
    category: Optional[str] = None
    source: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None

    compliance_flags: tuple[str, ...] = ()
    retention_policy: Optional[str] = None
    retention_until: Optional[datetime] = None

    checksum: Optional[str] = None
    previous_entry_hash: Optional[str] = None

    @field_validator("timestamp", "retention_until")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return None if value is None else as_utc(value)

    def canonical_fields(self) -> dict[str, Any]:
        """JSON-mode dump of every field covered by the checksum."""
        return self.model_dump(mode="json", exclude=set(SEAL_FIELDS))

    def sealed(self, checksum: Optional[str], previous_entry_hash: Optional[str]) -> AuditEntry:
        return self.model_copy(update={"checksum": checksum, "previous_entry_hash": previous_entry_hash})


@dataclass(frozen=True)
class BuildResult:
    entry: Optional[AuditEntry] = None
    error: Optional[AuditError] = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


class AuditEntryBuilder:
    """
    Fluent builder for AuditEntry.

    build() raises AuditValidationError naming every missing required
    field; try_build() returns the same outcome as a BuildResult.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._fields: dict[str, Any] = {
            "id": new_audit_id(),
            "timestamp": clock(),
            "security_classification": SecurityClassification.INTERNAL,
        }
        self._tags: list[str] = []
        self._related: list[str] = []
        self._compliance_flags: list[str] = []
        self._violations: list[dict[str, Any]] = []

    def _set(self, name: str, value: Any) -> AuditEntryBuilder:
        self._fields[name] = value
        return self

    def set_event_type(self, event_type: AuditEventType) -> AuditEntryBuilder:
        return self._set("event_type", event_type)

    def set_severity(self, severity: AuditSeverity) -> AuditEntryBuilder:
        return self._set("severity", severity)

    def set_message(self, message: str) -> AuditEntryBuilder:
        return self._set("message", message)

    def set_description(self, description: str) -> AuditEntryBuilder:
        return self._set("description", description)

    def set_outcome(self, outcome: Outcome) -> AuditEntryBuilder:
        return self._set("outcome", outcome)

    def set_timestamp(self, timestamp: datetime) -> AuditEntryBuilder:
        return self._set("timestamp", timestamp)

    def set_user_context(self, context: AuditUserContext) -> AuditEntryBuilder:
        return self._set("user_context", context)

    def set_system_context(self, context: AuditSystemContext) -> AuditEntryBuilder:
        return self._set("system_context", context)

    def set_resource_context(self, context: AuditResourceContext) -> AuditEntryBuilder:
        return self._set("resource_context", context)

    def set_security_classification(self, classification: SecurityClassification) -> AuditEntryBuilder:
        return self._set("security_classification", classification)

    def add_security_violation(self, violation: dict[str, Any]) -> AuditEntryBuilder:
        self._violations.append(dict(violation))
        return self

    def set_threat_level(self, level: ThreatLevel) -> AuditEntryBuilder:
        return self._set("threat_level", level)

    def set_trace_id(self, trace_id: str) -> AuditEntryBuilder:
        return self._set("trace_id", trace_id)

    def set_correlation_id(self, correlation_id: str) -> AuditEntryBuilder:
        return self._set("correlation_id", correlation_id)

    def set_parent_event_id(self, parent_id: str) -> AuditEntryBuilder:
        return self._set("parent_event_id", parent_id)

    def add_related_event(self, event_id: str) -> AuditEntryBuilder:
        self._related.append(event_id)
        return self

    def add_tag(self, tag: str) -> AuditEntryBuilder:
        self._tags.append(tag)
        return self

    def set_category(self, category: str) -> AuditEntryBuilder:
        return self._set("category", category)

    def set_source(self, source: str) -> AuditEntryBuilder:
        return self._set("source", source)

    def set_component(self, component: str) -> AuditEntryBuilder:
        return self._set("component", component)

    def set_operation(self, operation: str) -> AuditEntryBuilder:
        return self._set("operation", operation)

    def add_compliance_flag(self, flag: str) -> AuditEntryBuilder:
        self._compliance_flags.append(flag)
        return self

    def set_retention_policy(self, policy: str) -> AuditEntryBuilder:
        return self._set("retention_policy", policy)

    def build(self) -> AuditEntry:
        missing = [name for name in REQUIRED_FIELDS if not self._fields.get(name)]
        if missing:
            raise AuditValidationError(missing_fields(missing))

        fields = dict(self._fields)
        fields["tags"] = tuple(self._tags)
        fields["related_event_ids"] = tuple(self._related)
        fields["compliance_flags"] = tuple(self._compliance_flags)
        fields["security_violations"] = tuple(self._violations)

        policy = fields.get("retention_policy")
        if policy:
            timestamp = fields["timestamp"]
            fields["retention_until"] = timestamp + timedelta(days=parse_retention_days(policy))

        try:
            return AuditEntry(**fields)
        except ValidationError as e:
            raise AuditValidationError(invalid_entry(
                [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
            )) from e

    def try_build(self) -> BuildResult:
        try:
            return BuildResult(entry=self.build())
        except AuditValidationError as e:
            return BuildResult(error=e.error)
