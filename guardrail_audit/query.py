"""
guardrail_audit/query.py - Query filters and export options.

A filter that matches nothing is an empty result, never an error.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .entry import AuditEntry, as_utc
from .events import (
    AuditEventType,
    AuditSeverity,
    Outcome,
    SecurityClassification,
    ThreatLevel,
)

SORTABLE_FIELDS = frozenset({
    "id",
    "timestamp",
    "event_type",
    "severity",
    "message",
    "outcome",
    "security_classification",
    "threat_level",
    "trace_id",
    "correlation_id",
    "category",
    "source",
    "component",
    "operation",
    "retention_until",
})

# Enum fields sorted by rank rather than by their string value
RANKED_FIELDS = {
    "severity": list(AuditSeverity),
    "threat_level": list(ThreatLevel),
}


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class AuditQueryFilter(BaseModel):
    # Time range (inclusive)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # Event
    event_types: list[AuditEventType] = Field(default_factory=list)
    severities: list[AuditSeverity] = Field(default_factory=list)
    outcomes: list[Outcome] = Field(default_factory=list)

    # Context
    user_ids: list[str] = Field(default_factory=list)
    session_ids: list[str] = Field(default_factory=list)
    ip_addresses: list[str] = Field(default_factory=list)
    components: list[str] = Field(default_factory=list)
    operations: list[str] = Field(default_factory=list)

    # Security
    threat_levels: list[ThreatLevel] = Field(default_factory=list)
    has_violations: Optional[bool] = None
    classifications: list[SecurityClassification] = Field(default_factory=list)

    # Text
    message_contains: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    # Pagination; limit=None returns every match
    limit: Optional[int] = Field(100, gt=0)
    offset: int = Field(0, ge=0)
    sort_by: Optional[str] = None
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("sort_by")
    @classmethod
    def _sortable(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort audit entries by {value!r}")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return None if value is None else as_utc(value)

    def matches(self, entry: AuditEntry) -> bool:
        if self.start_time and entry.timestamp < self.start_time:
            return False
        if self.end_time and entry.timestamp > self.end_time:
            return False
        if self.event_types and entry.event_type not in self.event_types:
            return False
        if self.severities and entry.severity not in self.severities:
            return False
        if self.outcomes and entry.outcome not in self.outcomes:
            return False

        user = entry.user_context
        if self.user_ids and not (user and user.user_id in self.user_ids):
            return False
        if self.session_ids and not (user and user.session_id in self.session_ids):
            return False
        if self.ip_addresses and not (user and user.ip_address in self.ip_addresses):
            return False
        if self.components and entry.component not in self.components:
            return False
        if self.operations and entry.operation not in self.operations:
            return False

        if self.threat_levels and entry.threat_level not in self.threat_levels:
            return False
        if self.has_violations is not None and bool(entry.security_violations) != self.has_violations:
            return False
        if self.classifications and entry.security_classification not in self.classifications:
            return False

        if self.message_contains:
            term = self.message_contains.lower()
            if term not in entry.message.lower() and term not in (entry.description or "").lower():
                return False
        if self.tags and not set(self.tags) <= set(entry.tags):
            return False
        return True

    def apply(self, entries: Iterable[AuditEntry]) -> tuple[list[AuditEntry], int]:
        """Filter, sort and paginate. Returns (page, total matches)."""
        matched = [e for e in entries if self.matches(e)]

        if self.sort_by:
            matched.sort(
                key=lambda e: _sort_key(e, self.sort_by),
                reverse=self.sort_order == SortOrder.DESC,
            )

        end = None if self.limit is None else self.offset + self.limit
        return matched[self.offset:end], len(matched)


def _sort_key(entry: AuditEntry, field: str) -> tuple[bool, Any]:
    # Entries lacking the field sort first ascending, last descending
    value = getattr(entry, field)
    if value is None:
        return False, ""
    ranked = RANKED_FIELDS.get(field)
    return True, ranked.index(value) if ranked else value


@dataclass(frozen=True)
class AuditQueryResult:
    entries: Sequence[AuditEntry]
    total_count: int
    filtered_count: int
    query_time: float  # milliseconds
    has_more: bool
    next_offset: Optional[int] = None


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    XML = "xml"
    PDF = "pdf"


class ExportOptions(BaseModel):
    format: ExportFormat = ExportFormat.JSON
    include_metadata: bool = True
    include_integrity_data: bool = True
    filter: Optional[AuditQueryFilter] = None
