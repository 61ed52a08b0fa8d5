"""
guardrail_verify/verifier.py - Offline Audit Export Verifier

Guarantees:
- Recompute every entry checksum from the exported fields
- Re-walk the previous_entry_hash chain from the recorded anchor
- Recompute the export digest

Properties:
- Runs offline, without access to the live trail
- Deterministic
- Stateless
"""
import hashlib
import json
from typing import List, Dict, Any, Optional

from guardrail_audit.entry import SEAL_FIELDS
from guardrail_audit.integrity import compute_checksum, compute_digest

from .errors import (
    VerificationStatus,
    VerificationReport,
    Finding,
    FindingType,
    FindingSeverity,
)

DEFAULT_ALGORITHM = "sha256"


def _malformed(message: str, trail_name: str = "UNKNOWN", algorithm: str = DEFAULT_ALGORITHM) -> VerificationReport:
    return VerificationReport(
        trail_name=trail_name,
        status=VerificationStatus.FAIL,
        entry_count=0,
        algorithm=algorithm,
        digest=None,
        final_checksum=None,
        complete=False,
        findings=[Finding(
            finding_type=FindingType.MALFORMED_EXPORT,
            severity=FindingSeverity.FATAL,
            message=message,
        )],
    )


def verify_export(data: Dict[str, Any]) -> VerificationReport:
    """
    Verify an exported audit trail (the JSON export document).

    Chain links are only checked when integrity.complete is true: a
    filtered export legitimately skips entries, so its links point
    outside the document. The first link is checked against
    metadata.chain_anchor when metadata was exported.

    Args:
        data: Parsed JSON export

    Returns:
        VerificationReport with PASS/FAIL/DEGRADED status
    """
    if not isinstance(data, dict):
        return _malformed("Export is not a JSON object")

    metadata = data.get("metadata")
    trail_name = (metadata or {}).get("trail_name", "UNKNOWN")
    integrity = data.get("integrity")
    entries = data.get("entries")

    if not isinstance(integrity, dict) or not isinstance(entries, list):
        return _malformed("Export lacks an entries list or integrity section", trail_name)

    algorithm = integrity.get("algorithm", DEFAULT_ALGORITHM)
    if algorithm not in hashlib.algorithms_available:
        return _malformed(f"Unsupported checksum algorithm: {algorithm}", trail_name, algorithm)

    complete = bool(integrity.get("complete", True))
    findings: List[Finding] = []

    if not complete:
        findings.append(Finding(
            finding_type=FindingType.PARTIAL_EXPORT,
            severity=FindingSeverity.WARNING,
            message="Filtered export: chain links not verifiable, checksums only",
        ))

    if metadata is not None:
        prev_expected: Optional[str] = metadata.get("chain_anchor")
    else:
        prev_expected = entries[0].get("previous_entry_hash") if entries else None
        if complete and prev_expected is not None:
            findings.append(Finding(
                finding_type=FindingType.UNANCHORED_CHAIN,
                severity=FindingSeverity.INFO,
                message="No metadata exported: first link accepted as recorded",
                position=0,
            ))

    final_checksum: Optional[str] = None

    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            findings.append(Finding(
                finding_type=FindingType.MALFORMED_EXPORT,
                severity=FindingSeverity.FATAL,
                message=f"Entry at position {i} is not an object",
                position=i,
            ))
            prev_expected = None
            continue

        entry_id = entry.get("id", "UNKNOWN")
        recorded = entry.get("checksum")

        if recorded is None:
            findings.append(Finding(
                finding_type=FindingType.UNSEALED_ENTRY,
                severity=FindingSeverity.INFO,
                message=f"Entry {entry_id} carries no checksum",
                position=i,
                entry_id=entry_id,
            ))
            prev_expected = None
            continue

        # 1. Recompute entry checksum
        fields = {k: v for k, v in entry.items() if k not in SEAL_FIELDS}
        computed = compute_checksum(fields, algorithm)
        if computed != recorded:
            findings.append(Finding(
                finding_type=FindingType.CHECKSUM_MISMATCH,
                severity=FindingSeverity.FATAL,
                message=f"Checksum mismatch at position {i}",
                position=i,
                entry_id=entry_id,
                details={"computed": computed, "recorded": recorded},
            ))

        # 2. Verify previous_entry_hash linkage
        recorded_prev = entry.get("previous_entry_hash")
        if complete and recorded_prev != prev_expected:
            findings.append(Finding(
                finding_type=FindingType.CHAIN_BREAK,
                severity=FindingSeverity.FATAL,
                message=f"Chain break at position {i}: previous_entry_hash mismatch",
                position=i,
                entry_id=entry_id,
                details={"expected": prev_expected, "recorded": recorded_prev},
            ))

        # CRITICAL: Use computed checksum to prevent tamper propagation
        prev_expected = computed
        final_checksum = computed

    # 3. Recompute digest over the exported checksums
    digest = compute_digest([e.get("checksum") if isinstance(e, dict) else None for e in entries], algorithm)
    if digest != integrity.get("checksum"):
        findings.append(Finding(
            finding_type=FindingType.DIGEST_MISMATCH,
            severity=FindingSeverity.FATAL,
            message="Export digest does not match the exported checksums",
            details={"computed": digest, "recorded": integrity.get("checksum")},
        ))

    fatal_count = sum(1 for f in findings if f.severity == FindingSeverity.FATAL)
    warning_count = sum(1 for f in findings if f.severity == FindingSeverity.WARNING)

    if fatal_count > 0:
        status = VerificationStatus.FAIL
    elif warning_count > 0:
        status = VerificationStatus.DEGRADED
    else:
        status = VerificationStatus.PASS

    return VerificationReport(
        trail_name=trail_name,
        status=status,
        entry_count=len(entries),
        algorithm=algorithm,
        digest=digest,
        final_checksum=final_checksum,
        complete=complete,
        findings=findings,
    )


def verify_file(filepath: str) -> VerificationReport:
    """
    Verify an export from a JSON file.

    Convenience wrapper for verify_export.
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return verify_export(data)
