"""
guardrail_audit/test_entry.py - Entry builder and error contracts

Tests:
- build() names every missing required field
- try_build() reports the same outcome as a value
- Retention policies set retention_until
- Built entries are immutable
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from .entry import AuditEntryBuilder, new_audit_id, parse_retention_days
from .errors import AuditErrorCode, AuditValidationError
from .events import AuditEventType, AuditSeverity, Outcome, SecurityClassification

T0 = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def complete_builder():
    return (
        AuditEntryBuilder(clock=lambda: T0)
        .set_event_type(AuditEventType.DATA_ACCESS)
        .set_severity(AuditSeverity.LOW)
        .set_message("read customer record")
        .set_outcome(Outcome.SUCCESS)
    )


class TestBuild:

    def test_complete_entry(self):
        """A builder with all required fields produces an unsealed entry."""
        entry = complete_builder().add_tag("pii").set_component("crm").build()

        assert entry.id.startswith("audit_")
        assert entry.timestamp == T0
        assert entry.tags == ("pii",)
        assert entry.component == "crm"
        assert entry.security_classification == SecurityClassification.INTERNAL
        assert entry.checksum is None
        assert entry.previous_entry_hash is None

    def test_missing_fields_all_reported(self):
        """Every missing required field is named, not just the first."""
        builder = AuditEntryBuilder().set_severity(AuditSeverity.HIGH)

        with pytest.raises(AuditValidationError) as exc_info:
            builder.build()

        error = exc_info.value.error
        assert error.code == AuditErrorCode.MISSING_FIELDS
        assert error.details["missing"] == ["event_type", "message", "outcome"]
        assert error.to_dict()["code"] == "AUDIT_MISSING_FIELDS"

    def test_invalid_value_wrapped(self):
        """Values pydantic rejects surface as INVALID_ENTRY."""
        builder = complete_builder().set_event_type("not-an-event")

        with pytest.raises(AuditValidationError) as exc_info:
            builder.build()

        assert exc_info.value.error.code == AuditErrorCode.INVALID_ENTRY
        assert exc_info.value.error.details["errors"][0]["field"] == "event_type"

    def test_try_build(self):
        ok = complete_builder().try_build()
        failed = AuditEntryBuilder().try_build()

        assert ok.ok and ok.error is None
        assert not failed.ok
        assert failed.error.code == AuditErrorCode.MISSING_FIELDS

    def test_entry_is_frozen(self):
        entry = complete_builder().build()

        with pytest.raises(ValidationError):
            entry.message = "rewritten"

    def test_collections_accumulate(self):
        entry = (
            complete_builder()
            .add_related_event("audit_a")
            .add_related_event("audit_b")
            .add_compliance_flag("soc2")
            .add_security_violation({"type": "xss", "severity": "high"})
            .build()
        )

        assert entry.related_event_ids == ("audit_a", "audit_b")
        assert entry.compliance_flags == ("soc2",)
        assert entry.security_violations == ({"type": "xss", "severity": "high"},)


class TestRetention:

    def test_policy_sets_retention_until(self):
        entry = complete_builder().set_retention_policy("90d").build()

        assert entry.retention_until == T0 + timedelta(days=90)

    def test_parse_retention_days(self):
        assert parse_retention_days("30d") == 30
        assert parse_retention_days("7 days") == 7
        assert parse_retention_days("forever") == 365
        assert parse_retention_days("0d", default=10) == 10

    def test_naive_timestamp_is_utc(self):
        entry = complete_builder().set_timestamp(datetime(2026, 3, 1, 9, 30)).set_retention_policy("1d").build()

        assert entry.timestamp == T0
        assert entry.retention_until == T0 + timedelta(days=1)


def test_audit_ids_unique():
    assert len({new_audit_id() for _ in range(500)}) == 500
