"""
guardrail_audit/test_manager.py - Recording, buffering and convenience recorders

Tests:
- Sync mode persists in call order, also under concurrent writers
- Async mode buffers until batch_size or flush()
- The periodic flush thread drains the buffer; its failures resurface
- Filters drop silently; enrichment adds system context and retention
- update_config rejects immutable settings
- Log records map component, operation and classification extras
"""
import logging
import os
import sys
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from guardrail_analysis import InputType, ViolationContext, enhance_violation
from guardrail_detect import Severity, Violation

from .config import AuditTrailConfig, StorageBackend
from .entry import AuditEntryBuilder
from .errors import AuditErrorCode, AuditStorageError, AuditValidationError
from .events import (
    AuditEventType,
    AuditSeverity,
    AuditUserContext,
    Outcome,
    SecurityClassification,
    ThreatLevel,
)
from .log import LOG_FORMAT, configure_logging
from .manager import AuditTrailManager
from .query import AuditQueryFilter
from .storage import MemoryAuditStorage

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_entry(
    message="event",
    severity=AuditSeverity.LOW,
    event_type=AuditEventType.DATA_ACCESS,
    component=None,
):
    builder = (
        AuditEntryBuilder(clock=lambda: T0)
        .set_event_type(event_type)
        .set_severity(severity)
        .set_message(message)
        .set_outcome(Outcome.SUCCESS)
    )
    if component:
        builder.set_component(component)
    return builder.build()


def all_entries(manager):
    return manager.query_entries(AuditQueryFilter(limit=None)).entries


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class FailingStorage(MemoryAuditStorage):
    def add_entries(self, entries):
        raise RuntimeError("disk full")


@pytest.fixture
def manager():
    m = AuditTrailManager(AuditTrailConfig(async_processing=False))
    yield m
    m.close()


class TestSyncRecording:

    def test_call_order_preserved(self, manager):
        for i in range(5):
            assert manager.record_event(make_entry(f"event-{i}"))

        assert [e.message for e in all_entries(manager)] == [f"event-{i}" for i in range(5)]
        assert manager.verify_integrity().is_verified

    def test_concurrent_writers(self, manager):
        """Each writer's entries land in its call order and the chain stays intact."""
        def writer(name):
            for i in range(25):
                manager.record_event(make_entry(f"{name}-{i:02d}", component=name))

        threads = [threading.Thread(target=writer, args=(f"w{n}",)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = all_entries(manager)
        assert len(entries) == 100
        for n in range(4):
            mine = [e.message for e in entries if e.component == f"w{n}"]
            assert mine == [f"w{n}-{i:02d}" for i in range(25)]
        assert manager.verify_integrity().is_verified

    def test_record_events_batch(self, manager):
        accepted = manager.record_events([make_entry("a"), make_entry("b")])

        assert accepted == 2
        assert manager.get_metadata().total_entries == 2


class TestFilteringAndEnrichment:

    def test_minimum_severity_drops_silently(self):
        with AuditTrailManager(AuditTrailConfig(async_processing=False, minimum_severity="high")) as m:
            assert not m.record_event(make_entry(severity=AuditSeverity.LOW))
            assert m.record_event(make_entry(severity=AuditSeverity.CRITICAL))
            assert m.get_metadata().total_entries == 1

    def test_event_type_filter(self):
        config = AuditTrailConfig(async_processing=False, enabled_event_types=["security_violation"])
        with AuditTrailManager(config) as m:
            assert not m.record_event(make_entry(event_type=AuditEventType.DATA_ACCESS))
            assert m.record_event(make_entry(event_type=AuditEventType.SECURITY_VIOLATION))

    def test_disabled_trail(self):
        with AuditTrailManager(AuditTrailConfig(async_processing=False, enabled=False)) as m:
            assert not m.record_event(make_entry())
            assert m.get_metadata().total_entries == 0

    def test_enrichment(self, manager):
        manager.record_event(make_entry())
        entry = all_entries(manager)[0]

        assert entry.system_context.process_id == os.getpid()
        assert entry.system_context.environment_type in ("development", "staging", "production")
        assert entry.retention_policy == "365d"
        assert entry.retention_until == T0 + timedelta(days=365)

    def test_system_context_optional(self):
        with AuditTrailManager(AuditTrailConfig(async_processing=False, include_system_context=False)) as m:
            m.record_event(make_entry())
            assert all_entries(m)[0].system_context is None

    def test_compliance_flags(self):
        config = AuditTrailConfig(
            async_processing=False,
            compliance_mode=True,
            compliance_frameworks=["SOC2", "GDPR"],
        )
        with AuditTrailManager(config) as m:
            m.record_event(make_entry())
            assert all_entries(m)[0].compliance_flags == ("soc2", "gdpr")


class TestAsyncBuffering:

    def test_batch_size_triggers_flush(self):
        with AuditTrailManager(AuditTrailConfig(batch_size=5, flush_interval_ms=0)) as m:
            for i in range(4):
                m.record_event(make_entry(f"event-{i}"))
            assert m.get_metadata().total_entries == 0

            m.record_event(make_entry("event-4"))
            assert m.get_metadata().total_entries == 5

    def test_explicit_flush(self):
        with AuditTrailManager(AuditTrailConfig(batch_size=100, flush_interval_ms=0)) as m:
            m.record_events([make_entry("a"), make_entry("b")])

            assert m.flush() == 2
            assert m.flush() == 0
            assert [e.message for e in all_entries(m)] == ["a", "b"]

    def test_close_drains_buffer(self):
        storage = MemoryAuditStorage(AuditTrailConfig())
        m = AuditTrailManager(AuditTrailConfig(flush_interval_ms=0), storage=storage)
        m.record_event(make_entry())
        written = []
        storage.close = lambda: written.append(storage.get_metadata().total_entries)

        m.close()

        assert written == [1]

    def test_periodic_flush(self):
        with AuditTrailManager(AuditTrailConfig(batch_size=1000, flush_interval_ms=10)) as m:
            m.record_event(make_entry())
            assert wait_for(lambda: m.get_metadata().total_entries == 1)

    def test_scheduled_flush_failure_resurfaces(self, caplog):
        config = AuditTrailConfig(batch_size=1000, flush_interval_ms=10)
        m = AuditTrailManager(config, storage=FailingStorage(config))
        m.record_event(make_entry())

        assert wait_for(lambda: m._flush_error is not None)
        with pytest.raises(AuditStorageError) as exc_info:
            m.flush()

        assert exc_info.value.error.code == AuditErrorCode.STORAGE_FAILURE
        assert "Scheduled flush" in caplog.text
        m.close()

    def test_sync_storage_failure_raises(self):
        config = AuditTrailConfig(async_processing=False)
        with AuditTrailManager(config, storage=FailingStorage(config)) as m:
            with pytest.raises(AuditStorageError):
                m.record_event(make_entry())


class TestLifecycle:

    def test_closed_trail_rejects_events(self):
        m = AuditTrailManager(AuditTrailConfig(async_processing=False))
        m.close()
        m.close()

        with pytest.raises(AuditStorageError) as exc_info:
            m.record_event(make_entry())
        assert exc_info.value.error.code == AuditErrorCode.TRAIL_CLOSED

    def test_update_config_immutable(self, manager):
        with pytest.raises(AuditValidationError) as exc_info:
            manager.update_config(checksum_algorithm="sha512", storage_backend=StorageBackend.FILE)

        error = exc_info.value.error
        assert error.code == AuditErrorCode.IMMUTABLE_SETTING
        assert error.details["settings"] == ["checksum_algorithm", "storage_backend"]

    def test_update_config_same_value_allowed(self, manager):
        manager.update_config(checksum_algorithm="sha256")

    def test_update_config_applies_caps(self, manager):
        for i in range(5):
            manager.record_event(make_entry(f"event-{i}"))

        manager.update_config(max_entries=2)

        assert manager.get_config().max_entries == 2
        assert [e.message for e in all_entries(manager)] == ["event-3", "event-4"]
        assert manager.verify_integrity().is_verified

    def test_update_config_switches_to_async(self, manager):
        manager.update_config(async_processing=True, flush_interval_ms=0, batch_size=10)
        manager.record_event(make_entry())

        assert manager.get_metadata().total_entries == 0
        assert manager.flush() == 1

    def test_update_config_validates(self, manager):
        with pytest.raises(ValueError):
            manager.update_config(max_entries=0)


class TestRecorders:

    def test_security_violation(self, manager):
        violation = enhance_violation(
            Violation("command-injection", "shell-metacharacters", Severity.HIGH, "Shell chars", "Escape input"),
            ViolationContext(input_type=InputType.URL),
            T0,
        )
        user = AuditUserContext(user_id="u-1", session_id="s-1")

        assert manager.record_security_violation(violation, user_context=user)
        entry = all_entries(manager)[0]

        assert entry.event_type == AuditEventType.ATTACK_DETECTED
        assert entry.severity == AuditSeverity.HIGH
        assert entry.threat_level == ThreatLevel.HIGH
        assert entry.outcome == Outcome.FAILURE
        assert entry.security_classification == SecurityClassification.CONFIDENTIAL
        assert entry.tags == ("security", "violation")
        assert entry.compliance_flags == ("security-monitoring",)
        assert entry.security_violations[0]["id"] == violation.id
        assert entry.user_context.session_id == "s-1"
        assert manager.query_entries(AuditQueryFilter(has_violations=True)).filtered_count == 1

    def test_structured_log_event(self, manager):
        record = logging.LogRecord("app.storage", logging.ERROR, __file__, 10, "disk %s failed", ("sda",), None)
        record.component = "storage"
        record.trace_id = "trace-1"
        record.audit_event = True

        manager.record_structured_log_event(record)
        entry = all_entries(manager)[0]

        assert entry.message == "disk sda failed"
        assert entry.severity == AuditSeverity.HIGH
        assert entry.event_type == AuditEventType.ADMIN_ACTION
        assert entry.outcome == Outcome.SUCCESS
        assert entry.component == "storage"
        assert entry.trace_id == "trace-1"
        assert "audit-event" in entry.tags
        assert entry.source == "structured-logger"

    def test_structured_log_event_with_exception(self, manager):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord("app", logging.CRITICAL, __file__, 1, "crashed", None, exc_info)

        manager.record_structured_log_event(record)
        entry = all_entries(manager)[0]

        assert entry.event_type == AuditEventType.SYSTEM_ERROR
        assert entry.severity == AuditSeverity.CRITICAL
        assert entry.outcome == Outcome.FAILURE

    @pytest.mark.parametrize("component, operation", [
        ("cli", None),
        ("scheduler", "run-command"),
        ("cli", "run-command"),
    ])
    def test_structured_log_event_command(self, manager, component, operation):
        """component "cli" or an operation naming a command is a command execution."""
        record = logging.LogRecord("app", logging.INFO, __file__, 1, "ran", None, None)
        record.component = component
        if operation:
            record.operation = operation

        manager.record_structured_log_event(record)
        entry = all_entries(manager)[0]

        assert entry.event_type == AuditEventType.COMMAND_EXECUTION
        assert entry.component == component

    def test_structured_log_event_plain(self, manager):
        """Logger and function names do not make a record a command execution."""
        record = logging.LogRecord("cli", logging.INFO, __file__, 1, "started", None, None, func="run_command")

        manager.record_structured_log_event(record)

        assert all_entries(manager)[0].event_type == AuditEventType.SYSTEM_START

    def test_structured_log_event_classification(self, manager):
        record = logging.LogRecord("app", logging.INFO, __file__, 1, "read", None, None)
        record.classification = "restricted"

        manager.record_structured_log_event(record)

        assert all_entries(manager)[0].security_classification == SecurityClassification.RESTRICTED

    def test_structured_log_event_unknown_classification(self, manager, caplog):
        record = logging.LogRecord("app", logging.INFO, __file__, 1, "read", None, None)
        record.classification = "top-secret"

        with caplog.at_level(logging.WARNING, logger="guardrail_audit.manager"):
            assert manager.record_structured_log_event(record)

        assert all_entries(manager)[0].security_classification == SecurityClassification.INTERNAL
        assert "Unknown classification 'top-secret'" in caplog.text

    def test_command_execution(self, manager):
        manager.record_command_execution("init", ["--force"], Outcome.FAILURE, duration_ms=12, exit_code=2)
        entry = all_entries(manager)[0]

        assert entry.event_type == AuditEventType.COMMAND_FAILURE
        assert entry.severity == AuditSeverity.MEDIUM
        assert entry.message == "Command execution: init --force"
        assert entry.description == "Command completed in 12ms"
        assert entry.operation == "init"
        assert entry.tags == ("cli", "command", "exit-code-2")

    def test_command_success(self, manager):
        manager.record_command_execution("status", [], Outcome.SUCCESS)
        entry = all_entries(manager)[0]

        assert entry.event_type == AuditEventType.COMMAND_EXECUTION
        assert entry.severity == AuditSeverity.LOW
        assert entry.message == "Command execution: status"


def test_configure_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(logging.DEBUG)

    assert calls == [{"level": logging.DEBUG, "format": LOG_FORMAT}]
