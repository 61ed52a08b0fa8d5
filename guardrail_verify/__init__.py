"""
guardrail_verify - Offline verifier for exported audit trails
"""
from .errors import (
    VerificationStatus,
    FindingType,
    FindingSeverity,
    Finding,
    VerificationReport,
)
from .verifier import verify_export, verify_file

__all__ = [
    "VerificationStatus",
    "FindingType",
    "FindingSeverity",
    "Finding",
    "VerificationReport",
    "verify_export",
    "verify_file",
]
