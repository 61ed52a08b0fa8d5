"""
guardrail_audit/storage.py - Append-only audit storage.

Responsibilities:
- Seal entries into the hash chain on insert
- Enforce count and size caps by evicting oldest entries
- Filtered query, rotation, retention cleanup and export

Invariants:
- Entries are never edited after sealing
- Eviction is oldest-first, logged, and remembered as the chain anchor
- Export and verification never mutate stored entries

MemoryAuditStorage is the reference backend. file, database and external
are declared backends without an implementation.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .config import AuditTrailConfig, StorageBackend
from .entry import AuditEntry, as_utc, utcnow
from .errors import (
    UnsupportedExportFormat,
    UnsupportedStorageBackend,
    unsupported_backend,
    unsupported_format,
)
from .events import IntegrityStatus
from .export import build_export_document, render_csv, render_json
from .integrity import IntegrityResult, compute_digest, entry_checksum, verify_chain
from .pdf_export import render_pdf
from .query import AuditQueryFilter, AuditQueryResult, ExportFormat, ExportOptions

logger = logging.getLogger(__name__)

# Share of entries kept by rotate()
ROTATION_KEEP_RATIO = 0.7


class AuditTrailMetadata(BaseModel):
    id: str
    trail_name: str
    description: Optional[str] = None
    created_at: datetime
    modified_at: datetime
    version: str = "1.0.0"

    total_entries: int = 0
    size_bytes: int = 0
    evicted_entries: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None

    integrity_status: IntegrityStatus = IntegrityStatus.VERIFIED
    last_verified: Optional[datetime] = None
    checksum_algorithm: str
    chain_anchor: Optional[str] = None

    max_entries: int
    max_size_bytes: int
    retention_days: int
    auto_rotate: bool


class AuditStorage(ABC):
    """Storage backend contract for an audit trail."""

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def reconfigure(self, config: AuditTrailConfig) -> None:
        """Apply new caps; immutable settings are checked by the caller."""

    @abstractmethod
    def add_entry(self, entry: AuditEntry) -> AuditEntry:
        """Seal and persist entry; returns the sealed copy."""

    @abstractmethod
    def add_entries(self, entries: Iterable[AuditEntry]) -> list[AuditEntry]: ...

    @abstractmethod
    def get_entry(self, entry_id: str) -> Optional[AuditEntry]: ...

    @abstractmethod
    def get_entries(self, query: AuditQueryFilter) -> AuditQueryResult: ...

    @abstractmethod
    def get_metadata(self) -> AuditTrailMetadata: ...

    @abstractmethod
    def calculate_checksum(self) -> str:
        """Digest over every stored entry checksum, oldest first."""

    @abstractmethod
    def verify_integrity(self) -> IntegrityResult: ...

    @abstractmethod
    def rotate(self) -> int: ...

    @abstractmethod
    def cleanup(self, older_than: datetime) -> int: ...

    @abstractmethod
    def export(self, options: ExportOptions) -> bytes: ...


class MemoryAuditStorage(AuditStorage):
    """
    In-memory hash-chained trail.

    Entries live in an append-only deque; an entry's predecessor is the
    one before it. Thread-safe: every operation holds one lock, and reads
    work on snapshots.
    """

    def __init__(self, config: AuditTrailConfig) -> None:
        self.config = config
        self._lock = threading.RLock()
        self._entries: deque[AuditEntry] = deque()
        self._sizes: deque[int] = deque()
        self._by_id: dict[str, AuditEntry] = {}
        self._last_checksum: Optional[str] = None
        now = utcnow()
        self._metadata = AuditTrailMetadata(
            id=f"audit-trail-{uuid.uuid4().hex[:12]}",
            trail_name=config.trail_name,
            description=config.description,
            created_at=now,
            modified_at=now,
            checksum_algorithm=config.checksum_algorithm.value,
            max_entries=config.max_entries,
            max_size_bytes=config.max_size_bytes,
            retention_days=config.default_retention_days,
            auto_rotate=config.auto_rotate,
        )

    @property
    def algorithm(self) -> str:
        return self.config.checksum_algorithm.value

    def initialize(self) -> None:
        logger.debug("Memory audit storage ready: %s", self.config.trail_name)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
            self._sizes.clear()
            self._by_id.clear()
            self._metadata.total_entries = 0
            self._metadata.size_bytes = 0

    def reconfigure(self, config: AuditTrailConfig) -> None:
        with self._lock:
            self.config = config
            self._metadata.trail_name = config.trail_name
            self._metadata.description = config.description
            self._metadata.max_entries = config.max_entries
            self._metadata.max_size_bytes = config.max_size_bytes
            self._metadata.retention_days = config.default_retention_days
            self._metadata.auto_rotate = config.auto_rotate
            self._enforce_caps()

    # --- writes -----------------------------------------------------------

    def add_entry(self, entry: AuditEntry) -> AuditEntry:
        with self._lock:
            sealed = self._seal(entry)
            size = len(sealed.model_dump_json())

            self._entries.append(sealed)
            self._sizes.append(size)
            self._by_id[sealed.id] = sealed
            self._last_checksum = sealed.checksum

            self._metadata.size_bytes += size
            self._metadata.total_entries = len(self._entries)
            self._metadata.modified_at = utcnow()

            self._enforce_caps()
            return sealed

    def add_entries(self, entries: Iterable[AuditEntry]) -> list[AuditEntry]:
        with self._lock:
            return [self.add_entry(e) for e in entries]

    def _seal(self, entry: AuditEntry) -> AuditEntry:
        if not self.config.enable_integrity_protection:
            return entry.sealed(checksum=None, previous_entry_hash=None)
        return entry.sealed(
            checksum=entry_checksum(entry, self.algorithm),
            previous_entry_hash=self._last_checksum,
        )

    def _enforce_caps(self) -> None:
        over_count = len(self._entries) - self.config.max_entries
        if over_count > 0:
            self._evict_oldest(over_count)
            logger.warning(
                "Audit trail %s evicted %d oldest entries (max_entries=%d)",
                self.config.trail_name, over_count, self.config.max_entries,
            )

        excess = self._metadata.size_bytes - self.config.max_size_bytes
        dropped = 0
        # The newest entry always stays, even when it alone exceeds the cap
        while excess > 0 and dropped < len(self._sizes) - 1:
            excess -= self._sizes[dropped]
            dropped += 1
        if dropped:
            self._evict_oldest(dropped)
            logger.warning(
                "Audit trail %s evicted %d oldest entries (max_size_bytes=%d)",
                self.config.trail_name, dropped, self.config.max_size_bytes,
            )

    def _evict_oldest(self, count: int) -> int:
        removed = 0
        while removed < count and self._entries:
            entry = self._entries.popleft()
            self._metadata.size_bytes -= self._sizes.popleft()
            self._by_id.pop(entry.id, None)
            self._metadata.chain_anchor = entry.checksum
            removed += 1

        self._metadata.evicted_entries += removed
        self._metadata.total_entries = len(self._entries)
        self._metadata.modified_at = utcnow()

        return removed

    def rotate(self) -> int:
        """Keep the newest 70% when auto_rotate is on and size exceeds rotation_size."""
        with self._lock:
            if not self.config.auto_rotate or self._metadata.size_bytes <= self.config.rotation_size:
                return 0
            keep = int(len(self._entries) * ROTATION_KEEP_RATIO)
            removed = self._evict_oldest(len(self._entries) - keep)
            logger.info("Audit trail %s rotated: %d entries removed", self.config.trail_name, removed)
            return removed

    def cleanup(self, older_than: datetime) -> int:
        """
        Remove entries timestamped before older_than (naive means UTC).

        Removal stops at the first entry, in insertion order, that is not
        older than the cutoff, so the remaining chain stays verifiable.
        An expired entry recorded after a newer one (an explicit timestamp,
        or builders racing each other) is therefore kept until everything
        before it has expired too. Retention is not a hard guarantee for
        out-of-order timestamps.
        """
        older_than = as_utc(older_than)
        with self._lock:
            count = 0
            for entry in self._entries:
                if entry.timestamp >= older_than:
                    break
                count += 1
            removed = self._evict_oldest(count)
            if removed:
                logger.info(
                    "Audit trail %s cleanup removed %d entries older than %s",
                    self.config.trail_name, removed, older_than.isoformat(),
                )
            return removed

    # --- reads ------------------------------------------------------------

    def _snapshot(self) -> tuple[list[AuditEntry], Optional[str]]:
        with self._lock:
            return list(self._entries), self._metadata.chain_anchor

    def get_entry(self, entry_id: str) -> Optional[AuditEntry]:
        with self._lock:
            return self._by_id.get(entry_id)

    def get_entries(self, query: AuditQueryFilter) -> AuditQueryResult:
        started = time.perf_counter()
        entries, _ = self._snapshot()
        page, matched = query.apply(entries)

        end = query.offset + len(page)
        has_more = end < matched
        return AuditQueryResult(
            entries=page,
            total_count=len(entries),
            filtered_count=matched,
            query_time=(time.perf_counter() - started) * 1000,
            has_more=has_more,
            next_offset=end if has_more else None,
        )

    def get_metadata(self) -> AuditTrailMetadata:
        with self._lock:
            timestamps = [e.timestamp for e in self._entries]
            return self._metadata.model_copy(update={
                "oldest_entry": min(timestamps, default=None),
                "newest_entry": max(timestamps, default=None),
            })

    def calculate_checksum(self) -> str:
        entries, _ = self._snapshot()
        return compute_digest([e.checksum for e in entries], self.algorithm)

    def verify_integrity(self) -> IntegrityResult:
        entries, anchor = self._snapshot()
        now = utcnow()
        result = verify_chain(entries, self.algorithm, anchor=anchor, verified_at=now)

        with self._lock:
            self._metadata.integrity_status = result.status
            self._metadata.last_verified = now

        if not result.is_verified:
            logger.warning(
                "Audit trail %s failed verification: %d checksum failures, %d chain breaks",
                self.config.trail_name, len(result.checksum_failures), len(result.chain_breaks),
            )
        return result

    def export(self, options: ExportOptions) -> bytes:
        if options.format not in (ExportFormat.JSON, ExportFormat.CSV, ExportFormat.PDF):
            raise UnsupportedExportFormat(unsupported_format(options.format.value))

        trail, anchor = self._snapshot()
        complete = options.filter is None
        entries = trail if complete else options.filter.apply(trail)[0]

        if options.format == ExportFormat.CSV:
            return render_csv(entries)

        document = build_export_document(
            entries,
            algorithm=self.algorithm,
            metadata=self.get_metadata().model_dump(mode="json") if options.include_metadata else None,
            verification=(
                verify_chain(trail, self.algorithm, anchor=anchor, verified_at=utcnow())
                if options.include_integrity_data else None
            ),
            complete=complete,
        )
        if options.format == ExportFormat.PDF:
            return render_pdf(document)
        return render_json(document)


def create_storage(config: AuditTrailConfig) -> AuditStorage:
    if config.storage_backend == StorageBackend.MEMORY:
        return MemoryAuditStorage(config)
    raise UnsupportedStorageBackend(unsupported_backend(config.storage_backend.value))
