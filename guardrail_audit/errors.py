"""
guardrail_audit/errors.py - Audit Trail Error Taxonomy

Errors are contracts, not strings. Integrity problems are never raised:
they are data in IntegrityResult.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any, List


class AuditErrorCode(str, Enum):
    # Entry construction
    MISSING_FIELDS = "AUDIT_MISSING_FIELDS"
    INVALID_ENTRY = "AUDIT_INVALID_ENTRY"

    # Storage
    STORAGE_FAILURE = "AUDIT_STORAGE_FAILURE"
    TRAIL_CLOSED = "AUDIT_TRAIL_CLOSED"
    UNSUPPORTED_BACKEND = "AUDIT_UNSUPPORTED_BACKEND"

    # Export
    UNSUPPORTED_FORMAT = "AUDIT_UNSUPPORTED_FORMAT"

    # Configuration
    IMMUTABLE_SETTING = "AUDIT_IMMUTABLE_SETTING"


@dataclass(frozen=True)
class AuditError:
    """Immutable error object."""
    code: AuditErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the AuditError into a plain dictionary.

        Returns:
            dict: ``code`` (str value), ``message`` and ``details``
            (empty dict when no details were set).
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details or {},
        }


class AuditTrailException(Exception):
    """Base exception for audit trail failures; carries an AuditError."""
    def __init__(self, error: AuditError):
        self.error = error
        super().__init__(error.message)


class AuditValidationError(AuditTrailException):
    """An entry could not be constructed."""


class AuditStorageError(AuditTrailException):
    """The storage backend could not complete an operation."""


class UnsupportedExportFormat(AuditTrailException):
    """Export was requested in a format the backend does not produce."""


class UnsupportedStorageBackend(AuditTrailException):
    """The configured backend is a declared extension point with no implementation."""


# Pre-defined error factories for consistency
def missing_fields(fields: List[str]) -> AuditError:
    """
    Create an AuditError listing every required field the builder lacks.

    Parameters:
        fields: Names of the missing required fields, in declaration order.
    """
    return AuditError(
        code=AuditErrorCode.MISSING_FIELDS,
        message=f"Audit entry is missing required fields: {', '.join(fields)}",
        details={"missing": list(fields)},
    )


def invalid_entry(errors: List[Dict[str, Any]]) -> AuditError:
    return AuditError(
        code=AuditErrorCode.INVALID_ENTRY,
        message="Audit entry failed validation",
        details={"errors": errors},
    )


def storage_failure(operation: str, reason: str) -> AuditError:
    return AuditError(
        code=AuditErrorCode.STORAGE_FAILURE,
        message=f"Audit storage {operation} failed: {reason}",
        details={"operation": operation, "reason": reason},
    )


def trail_closed(trail_name: str) -> AuditError:
    return AuditError(
        code=AuditErrorCode.TRAIL_CLOSED,
        message=f"Audit trail {trail_name} is closed",
        details={"trail_name": trail_name},
    )


def unsupported_backend(backend: str) -> AuditError:
    """
    Create an AuditError for a storage backend without an implementation.

    Parameters:
        backend: The configured backend name (file, database, external).
    """
    return AuditError(
        code=AuditErrorCode.UNSUPPORTED_BACKEND,
        message=f"Unsupported storage backend: {backend}",
        details={"backend": backend},
    )


def unsupported_format(export_format: str) -> AuditError:
    return AuditError(
        code=AuditErrorCode.UNSUPPORTED_FORMAT,
        message=f"Unsupported export format: {export_format}",
        details={"format": export_format},
    )


def immutable_setting(names: List[str]) -> AuditError:
    return AuditError(
        code=AuditErrorCode.IMMUTABLE_SETTING,
        message=f"Settings cannot change on a live trail: {', '.join(names)}",
        details={"settings": list(names)},
    )
