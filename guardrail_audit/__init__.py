"""
guardrail_audit - Tamper-evident audit trail for security events.
"""
from .config import (
    AuditTrailConfig,
    ChecksumAlgorithm,
    GuardrailConfig,
    StorageBackend,
    load_config,
)
from .entry import AuditEntry, AuditEntryBuilder, BuildResult
from .errors import (
    AuditError,
    AuditErrorCode,
    AuditStorageError,
    AuditTrailException,
    AuditValidationError,
    UnsupportedExportFormat,
    UnsupportedStorageBackend,
)
from .events import (
    AuditEventType,
    AuditResourceContext,
    AuditSeverity,
    AuditSystemContext,
    AuditUserContext,
    IntegrityStatus,
    Outcome,
    SecurityClassification,
    ThreatLevel,
)
from .integrity import IntegrityResult, compute_checksum, compute_digest, verify_chain
from .log import configure_logging
from .manager import AuditTrailManager
from .query import (
    AuditQueryFilter,
    AuditQueryResult,
    ExportFormat,
    ExportOptions,
    SortOrder,
)
from .storage import AuditStorage, AuditTrailMetadata, MemoryAuditStorage, create_storage

__all__ = [
    "AuditTrailManager",
    "AuditTrailConfig",
    "GuardrailConfig",
    "StorageBackend",
    "ChecksumAlgorithm",
    "load_config",
    "AuditEntry",
    "AuditEntryBuilder",
    "BuildResult",
    "AuditError",
    "AuditErrorCode",
    "AuditTrailException",
    "AuditValidationError",
    "AuditStorageError",
    "UnsupportedExportFormat",
    "UnsupportedStorageBackend",
    "AuditEventType",
    "AuditSeverity",
    "Outcome",
    "ThreatLevel",
    "SecurityClassification",
    "IntegrityStatus",
    "AuditUserContext",
    "AuditSystemContext",
    "AuditResourceContext",
    "IntegrityResult",
    "compute_checksum",
    "compute_digest",
    "verify_chain",
    "AuditQueryFilter",
    "AuditQueryResult",
    "ExportFormat",
    "ExportOptions",
    "SortOrder",
    "AuditStorage",
    "AuditTrailMetadata",
    "MemoryAuditStorage",
    "create_storage",
    "configure_logging",
]
