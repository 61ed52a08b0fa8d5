"""
guardrail_audit/integrity.py - Hash chain sealing and verification.

Guarantees:
- checksum = H(JCS(entry minus checksum/previous_entry_hash))
- previous_entry_hash = checksum of the entry inserted before it
- digest = H(JCS([checksum, ...])) over a trail, for external anchoring

The next link is always checked against the predecessor's recomputed
checksum, so a tampered entry cannot vouch for its successor.
"""
from __future__ import annotations

import hashlib
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from jcs import canonicalize

from .entry import AuditEntry
from .events import IntegrityStatus


def compute_checksum(fields: dict[str, Any], algorithm: str) -> str:
    """Hex digest of the RFC 8785 canonical form of fields."""
    return hashlib.new(algorithm, canonicalize(fields)).hexdigest()


def entry_checksum(entry: AuditEntry, algorithm: str) -> str:
    return compute_checksum(entry.canonical_fields(), algorithm)


def compute_digest(checksums: Sequence[Optional[str]], algorithm: str) -> str:
    return hashlib.new(algorithm, canonicalize(list(checksums))).hexdigest()


@dataclass(frozen=True)
class IntegrityResult:
    status: IntegrityStatus
    verified_entries: int
    total_entries: int
    corrupted_entries: tuple[AuditEntry, ...] = ()
    checksum_failures: tuple[str, ...] = ()
    chain_breaks: tuple[str, ...] = ()
    missing_entries: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    verification_time: float = 0.0  # milliseconds
    last_verified_hash: Optional[str] = None
    digest: Optional[str] = None
    verified_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.status == IntegrityStatus.VERIFIED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "verified_entries": self.verified_entries,
            "total_entries": self.total_entries,
            "corrupted_entries": [e.id for e in self.corrupted_entries],
            "checksum_failures": list(self.checksum_failures),
            "chain_breaks": list(self.chain_breaks),
            "missing_entries": list(self.missing_entries),
            "errors": list(self.errors),
            "verification_time": self.verification_time,
            "last_verified_hash": self.last_verified_hash,
            "digest": self.digest,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
        }


def verify_chain(
    entries: Sequence[AuditEntry],
    algorithm: str,
    anchor: Optional[str] = None,
    verified_at: Optional[datetime] = None,
) -> IntegrityResult:
    """
    Walk entries in insertion order.

    Args:
        entries: Snapshot of the trail, oldest first
        algorithm: hashlib algorithm name the trail was sealed with
        anchor: Checksum of the last entry evicted before entries[0],
            or None when nothing was evicted
    """
    started = time.perf_counter()

    corrupted: list[AuditEntry] = []
    checksum_failures: list[str] = []
    chain_breaks: list[str] = []
    errors: list[str] = []
    verified = 0
    last_verified: Optional[str] = None

    expected_prev = anchor
    for entry in entries:
        computed = entry_checksum(entry, algorithm) if entry.checksum is not None else None
        ok = True

        if entry.checksum is not None and entry.checksum != computed:
            ok = False
            checksum_failures.append(entry.id)
            errors.append(f"Entry {entry.id} has invalid checksum")

        if entry.checksum is not None and entry.previous_entry_hash != expected_prev:
            ok = False
            chain_breaks.append(entry.id)
            errors.append(f"Entry {entry.id} has broken hash chain")

        if ok:
            verified += 1
            if computed is not None:
                last_verified = computed
        else:
            corrupted.append(entry)

        # Use computed checksum to prevent tamper propagation
        expected_prev = computed

    status = IntegrityStatus.CORRUPTED if corrupted else IntegrityStatus.VERIFIED
    digest = compute_digest([e.checksum for e in entries], algorithm)

    return IntegrityResult(
        status=status,
        verified_entries=verified,
        total_entries=len(entries),
        corrupted_entries=tuple(corrupted),
        checksum_failures=tuple(checksum_failures),
        chain_breaks=tuple(chain_breaks),
        errors=tuple(errors),
        verification_time=(time.perf_counter() - started) * 1000,
        last_verified_hash=last_verified,
        digest=digest,
        verified_at=verified_at,
    )
