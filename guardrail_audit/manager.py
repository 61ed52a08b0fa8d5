"""
guardrail_audit/manager.py - Audit trail manager.

Responsibilities:
- Filter, enrich and persist audit entries
- Sync mode: one write lock, persisted order == call order
- Async mode: batch buffer with a size trigger and a periodic flush thread

Invariants:
- A flush runs to completion; the buffer is swapped under its lock
- A failed scheduled flush is logged and re-raised by the next flush()/close()
- Filtered-out entries are dropped silently
"""
from __future__ import annotations

import logging
import os
import platform
import socket
import threading
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from typing import Any, Optional

from guardrail_analysis.models import EnhancedViolation

from .config import AuditTrailConfig
from .entry import AuditEntry, AuditEntryBuilder
from .errors import (
    AuditStorageError,
    AuditTrailException,
    AuditValidationError,
    immutable_setting,
    storage_failure,
    trail_closed,
)
from .events import (
    AuditEventType,
    AuditSeverity,
    AuditSystemContext,
    AuditUserContext,
    Outcome,
    SecurityClassification,
    event_type_for_log_record,
    event_type_for_violation,
    severity_at_least,
    severity_for_log_level,
    severity_for_violation,
    threat_level_for_violation,
)
from .integrity import IntegrityResult
from .query import AuditQueryFilter, AuditQueryResult, ExportOptions
from .storage import AuditStorage, AuditTrailMetadata, create_storage

logger = logging.getLogger(__name__)

# Settings that would invalidate the existing chain or storage
IMMUTABLE_SETTINGS = frozenset({"checksum_algorithm", "storage_backend"})

ENVIRONMENT_VARIABLE = "GUARDRAIL_ENV"


def detect_environment_type() -> str:
    env = os.environ.get(ENVIRONMENT_VARIABLE, "").lower()
    if env in ("production", "prod"):
        return "production"
    if env in ("staging", "stage"):
        return "staging"
    return "development"


def current_system_context() -> AuditSystemContext:
    return AuditSystemContext(
        hostname=socket.gethostname(),
        process_id=os.getpid(),
        parent_process_id=os.getppid(),
        working_directory=os.getcwd(),
        environment_type=detect_environment_type(),
        version=platform.python_version(),
    )


def _log_record_classification(record: logging.LogRecord) -> SecurityClassification:
    value = getattr(record, "classification", SecurityClassification.INTERNAL)
    try:
        return SecurityClassification(value)
    except ValueError:
        logger.warning(
            "Unknown classification %r on log record %s, using %s",
            value, record.name, SecurityClassification.INTERNAL.value,
        )
        return SecurityClassification.INTERNAL


class AuditTrailManager:
    """
    Records audit entries into a hash-chained storage backend.

    Use as a context manager, or call close() to stop the flush thread
    and drain the buffer.
    """

    def __init__(
        self,
        config: Optional[AuditTrailConfig] = None,
        storage: Optional[AuditStorage] = None,
    ) -> None:
        self.config = config or AuditTrailConfig()
        self.storage = storage or create_storage(self.config)
        self.storage.initialize()

        self._buffer: list[AuditEntry] = []
        self._buffer_lock = threading.Lock()
        self._write_lock = threading.Lock()

        self._flush_error: Optional[BaseException] = None
        self._stop_event: Optional[threading.Event] = None
        self._flush_thread: Optional[threading.Thread] = None
        self._closed = False

        self._start_flush_thread()
        logger.info(
            "Audit trail %s started (backend=%s, async=%s)",
            self.config.trail_name,
            self.config.storage_backend.value,
            self.config.async_processing,
        )

    def __enter__(self) -> AuditTrailManager:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- recording --------------------------------------------------------

    def create_event(self) -> AuditEntryBuilder:
        return AuditEntryBuilder()

    def record_event(self, entry: AuditEntry) -> bool:
        """
        Record one entry.

        Returns False when the entry was filtered out (trail disabled,
        event type not enabled, or severity below minimum_severity).

        Raises:
            AuditStorageError: If the trail is closed or storage fails
        """
        return self.record_events([entry]) == 1

    def record_events(self, entries: Iterable[AuditEntry]) -> int:
        """Record entries in order; returns how many passed the filters."""
        self._ensure_open()
        if not self.config.enabled:
            return 0

        accepted = [self._enrich(e) for e in entries if self._should_record(e)]
        if not accepted:
            return 0

        if not self.config.async_processing:
            self._write(accepted)
            return len(accepted)

        with self._buffer_lock:
            self._buffer.extend(accepted)
            full = len(self._buffer) >= self.config.batch_size
        if full:
            self.flush()
        return len(accepted)

    def _should_record(self, entry: AuditEntry) -> bool:
        if entry.event_type not in self.config.enabled_event_types:
            return False
        return severity_at_least(entry.severity, self.config.minimum_severity)

    def _enrich(self, entry: AuditEntry) -> AuditEntry:
        updates: dict[str, Any] = {}

        if self.config.include_system_context and entry.system_context is None:
            updates["system_context"] = current_system_context()

        if not entry.retention_policy:
            days = self.config.default_retention_days
            updates["retention_policy"] = f"{days}d"
            updates["retention_until"] = entry.timestamp + timedelta(days=days)

        if self.config.compliance_mode and self.config.compliance_frameworks:
            flags = list(entry.compliance_flags)
            for framework in self.config.compliance_frameworks:
                if framework.lower() not in flags:
                    flags.append(framework.lower())
            updates["compliance_flags"] = tuple(flags)

        return entry.model_copy(update=updates) if updates else entry

    def _write(self, entries: Sequence[AuditEntry]) -> None:
        with self._write_lock:
            try:
                self.storage.add_entries(entries)
            except AuditTrailException:
                raise
            except Exception as e:
                raise AuditStorageError(storage_failure("write", str(e))) from e

    # --- buffering --------------------------------------------------------

    def flush(self) -> int:
        """
        Persist every buffered entry; returns the number written.

        Raises:
            AuditStorageError: If storage fails, or a scheduled flush
                failed since the last call
        """
        self._raise_flush_error()
        return self._flush_buffer()

    def _flush_buffer(self) -> int:
        with self._write_lock:
            with self._buffer_lock:
                batch, self._buffer = self._buffer, []
            if not batch:
                return 0
            try:
                self.storage.add_entries(batch)
            except AuditTrailException:
                raise
            except Exception as e:
                raise AuditStorageError(storage_failure("flush", str(e))) from e
            logger.debug("Audit trail %s flushed %d entries", self.config.trail_name, len(batch))
            return len(batch)

    def _raise_flush_error(self) -> None:
        error, self._flush_error = self._flush_error, None
        if error is not None:
            raise error

    def _start_flush_thread(self) -> None:
        if not self.config.async_processing or self.config.flush_interval_ms <= 0:
            return
        self._stop_event = threading.Event()
        self._flush_thread = threading.Thread(
            target=self._flush_loop,
            args=(self._stop_event, self.config.flush_interval_ms / 1000),
            name=f"audit-flush-{self.config.trail_name}",
            daemon=True,
        )
        self._flush_thread.start()

    def _stop_flush_thread(self) -> None:
        if self._flush_thread is None:
            return
        self._stop_event.set()
        self._flush_thread.join()
        self._flush_thread = None
        self._stop_event = None

    def _flush_loop(self, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.wait(interval):
            try:
                self._flush_buffer()
            except Exception as e:
                logger.exception("Scheduled flush of audit trail %s failed", self.config.trail_name)
                self._flush_error = e

    # --- reads and maintenance --------------------------------------------

    def get_entry(self, entry_id: str) -> Optional[AuditEntry]:
        return self.storage.get_entry(entry_id)

    def query_entries(self, query: Optional[AuditQueryFilter] = None) -> AuditQueryResult:
        return self.storage.get_entries(query or AuditQueryFilter())

    def get_metadata(self) -> AuditTrailMetadata:
        return self.storage.get_metadata()

    def verify_integrity(self) -> IntegrityResult:
        return self.storage.verify_integrity()

    def export(self, options: Optional[ExportOptions] = None) -> bytes:
        return self.storage.export(options or ExportOptions())

    def rotate(self) -> int:
        with self._write_lock:
            return self.storage.rotate()

    def cleanup(self, older_than: datetime) -> int:
        with self._write_lock:
            return self.storage.cleanup(older_than)

    def get_config(self) -> AuditTrailConfig:
        return self.config.model_copy()

    def update_config(self, **updates: Any) -> AuditTrailConfig:
        """
        Apply setting changes to a live trail and restart the flush thread.

        Raises:
            AuditValidationError: If an immutable setting would change
            pydantic.ValidationError: If a value fails validation
        """
        changed = sorted(
            name for name in IMMUTABLE_SETTINGS & set(updates)
            if updates[name] != getattr(self.config, name)
        )
        if changed:
            raise AuditValidationError(immutable_setting(changed))

        new_config = AuditTrailConfig.model_validate({**self.config.model_dump(), **updates})

        self._stop_flush_thread()
        self._flush_buffer()
        with self._write_lock:
            self.config = new_config
            self.storage.reconfigure(new_config)
        self._start_flush_thread()

        logger.info("Audit trail %s reconfigured: %s", new_config.trail_name, ", ".join(sorted(updates)))
        return new_config

    def close(self) -> None:
        """Stop the flush thread, drain the buffer and close storage. Idempotent."""
        if self._closed:
            return
        self._stop_flush_thread()
        try:
            self._flush_buffer()
            self._raise_flush_error()
        finally:
            self._closed = True
            self.storage.close()
            logger.info("Audit trail %s closed", self.config.trail_name)

    def _ensure_open(self) -> None:
        if self._closed:
            raise AuditStorageError(trail_closed(self.config.trail_name))

    # --- convenience recorders --------------------------------------------

    def record_security_violation(
        self,
        violation: EnhancedViolation,
        user_context: Optional[AuditUserContext] = None,
        system_context: Optional[AuditSystemContext] = None,
    ) -> bool:
        severity = violation.severity.value
        builder = (
            self.create_event()
            .set_event_type(event_type_for_violation(violation.type))
            .set_severity(severity_for_violation(severity))
            .set_message(f"Security violation detected: {violation.type}")
            .set_description(violation.description)
            .set_outcome(Outcome.FAILURE)
            .set_security_classification(SecurityClassification.CONFIDENTIAL)
            .add_security_violation(violation.to_dict())
            .set_threat_level(threat_level_for_violation(severity))
            .set_source("security-violation-detector")
            .add_tag("security")
            .add_tag("violation")
            .add_compliance_flag("security-monitoring")
        )
        if violation.correlation_id:
            builder.set_correlation_id(violation.correlation_id)
        if user_context:
            builder.set_user_context(user_context)
        if system_context:
            builder.set_system_context(system_context)
        return self.record_event(builder.build())

    def record_structured_log_event(
        self,
        record: logging.LogRecord,
        user_context: Optional[AuditUserContext] = None,
        system_context: Optional[AuditSystemContext] = None,
    ) -> bool:
        """
        Record a stdlib log record.

        component, operation, trace_id, correlation_id, classification
        and audit_event are read from attributes set via ``extra``.
        """
        builder = (
            self.create_event()
            .set_event_type(event_type_for_log_record(record))
            .set_severity(severity_for_log_level(record.levelno))
            .set_message(record.getMessage())
            .set_outcome(Outcome.FAILURE if record.exc_info else Outcome.SUCCESS)
            .set_security_classification(_log_record_classification(record))
            .set_source("structured-logger")
        )
        for attr, setter in (
            ("component", builder.set_component),
            ("operation", builder.set_operation),
            ("trace_id", builder.set_trace_id),
            ("correlation_id", builder.set_correlation_id),
        ):
            value = getattr(record, attr, None)
            if value:
                setter(value)
        if getattr(record, "audit_event", False):
            builder.add_tag("audit-event")
        if user_context:
            builder.set_user_context(user_context)
        if system_context:
            builder.set_system_context(system_context)
        return self.record_event(builder.build())

    def record_command_execution(
        self,
        command: str,
        args: Sequence[str],
        outcome: Outcome,
        user_context: Optional[AuditUserContext] = None,
        duration_ms: Optional[float] = None,
        exit_code: Optional[int] = None,
    ) -> bool:
        failed = outcome == Outcome.FAILURE
        builder = (
            self.create_event()
            .set_event_type(AuditEventType.COMMAND_FAILURE if failed else AuditEventType.COMMAND_EXECUTION)
            .set_severity(AuditSeverity.MEDIUM if failed else AuditSeverity.LOW)
            .set_message(f"Command execution: {' '.join([command, *args])}")
            .set_outcome(outcome)
            .set_security_classification(SecurityClassification.INTERNAL)
            .set_source("cli-command")
            .set_component("command-executor")
            .set_operation(command)
            .add_tag("cli")
            .add_tag("command")
        )
        if user_context:
            builder.set_user_context(user_context)
        if duration_ms is not None:
            builder.set_description(f"Command completed in {duration_ms}ms")
        if exit_code is not None:
            builder.add_tag(f"exit-code-{exit_code}")
        return self.record_event(builder.build())
