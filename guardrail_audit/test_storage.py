"""
guardrail_audit/test_storage.py - Hash chain, caps, queries and export

Tests:
- Sealing links each entry to its predecessor's checksum
- Tampering with entry k flags k (checksum) and k+1 (chain)
- Eviction past max_entries / max_size_bytes keeps the chain verifiable
- Filters and pagination; severity sorts by rank, naive datetimes are UTC
- JSON, CSV and PDF export; xml is rejected
"""
import csv
import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from .config import AuditTrailConfig, ChecksumAlgorithm, StorageBackend
from .entry import AuditEntryBuilder
from .errors import AuditErrorCode, UnsupportedExportFormat, UnsupportedStorageBackend
from .events import AuditEventType, AuditSeverity, AuditUserContext, IntegrityStatus, Outcome
from .integrity import entry_checksum
from .query import AuditQueryFilter, ExportFormat, ExportOptions, SortOrder
from .storage import MemoryAuditStorage, create_storage

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_entry(
    message="event",
    severity=AuditSeverity.LOW,
    event_type=AuditEventType.DATA_ACCESS,
    timestamp=T0,
    user_id=None,
):
    builder = (
        AuditEntryBuilder(clock=lambda: timestamp)
        .set_event_type(event_type)
        .set_severity(severity)
        .set_message(message)
        .set_outcome(Outcome.SUCCESS)
    )
    if user_id:
        builder.set_user_context(AuditUserContext(user_id=user_id))
    return builder.build()


def make_storage(**overrides):
    storage = MemoryAuditStorage(AuditTrailConfig(**overrides))
    storage.initialize()
    return storage


def fill(storage, count):
    return [storage.add_entry(make_entry(f"event-{i}")) for i in range(count)]


class TestSealing:

    def test_chain_links(self):
        """previous_entry_hash is the checksum of the entry before it."""
        storage = make_storage()
        sealed = fill(storage, 3)

        assert sealed[0].previous_entry_hash is None
        assert sealed[1].previous_entry_hash == sealed[0].checksum
        assert sealed[2].previous_entry_hash == sealed[1].checksum
        assert sealed[0].checksum == entry_checksum(sealed[0], "sha256")

    def test_checksum_excludes_seal_fields(self):
        """Resealing an entry with another predecessor keeps its checksum."""
        entry = make_entry()
        a = entry.sealed(checksum=None, previous_entry_hash="a" * 64)
        b = entry.sealed(checksum="ff", previous_entry_hash=None)

        assert entry_checksum(a, "sha256") == entry_checksum(b, "sha256")

    @pytest.mark.parametrize("algorithm", list(ChecksumAlgorithm))
    def test_algorithms(self, algorithm):
        storage = make_storage(checksum_algorithm=algorithm)
        fill(storage, 4)

        result = storage.verify_integrity()
        assert result.is_verified
        assert result.verified_entries == 4

    def test_integrity_protection_disabled(self):
        storage = make_storage(enable_integrity_protection=False)
        sealed = fill(storage, 3)

        assert all(e.checksum is None for e in sealed)
        assert storage.verify_integrity().is_verified


class TestVerification:

    def test_clean_trail(self):
        storage = make_storage()
        sealed = fill(storage, 10)

        result = storage.verify_integrity()

        assert result.status == IntegrityStatus.VERIFIED
        assert result.verified_entries == result.total_entries == 10
        assert result.last_verified_hash == sealed[-1].checksum
        assert result.digest == storage.calculate_checksum()
        assert storage.get_metadata().last_verified is not None

    @pytest.mark.parametrize("k", [0, 4, 8])
    def test_tampered_entry_flags_k_and_successor(self, k):
        """Corrupting entry k flags k as checksum failure and k+1 as chain break."""
        storage = make_storage()
        sealed = fill(storage, 10)
        storage._entries[k] = storage._entries[k].model_copy(update={"message": "tampered"})

        result = storage.verify_integrity()

        assert result.status == IntegrityStatus.CORRUPTED
        assert result.checksum_failures == (sealed[k].id,)
        assert result.chain_breaks == (sealed[k + 1].id,)
        assert [e.id for e in result.corrupted_entries] == [sealed[k].id, sealed[k + 1].id]
        assert result.verified_entries == 8
        assert storage.get_metadata().integrity_status == IntegrityStatus.CORRUPTED

    def test_tampered_last_entry(self):
        storage = make_storage()
        sealed = fill(storage, 5)
        storage._entries[4] = storage._entries[4].model_copy(update={"severity": AuditSeverity.CRITICAL})

        result = storage.verify_integrity()

        assert result.checksum_failures == (sealed[4].id,)
        assert result.chain_breaks == ()

    def test_verification_does_not_mutate_entries(self):
        storage = make_storage()
        fill(storage, 5)
        before = list(storage._entries)

        storage.verify_integrity()

        assert list(storage._entries) == before


class TestCaps:

    def test_max_entries_eviction(self, caplog):
        """150 events into max_entries=100 keeps the newest 100, still verifiable."""
        storage = make_storage(max_entries=100)
        sealed = fill(storage, 150)

        metadata = storage.get_metadata()
        assert metadata.total_entries == 100
        assert metadata.evicted_entries == 50
        assert metadata.chain_anchor == sealed[49].checksum
        assert storage.get_entry(sealed[0].id) is None
        assert storage.get_entry(sealed[50].id) is not None
        assert storage.verify_integrity().is_verified
        assert "evicted" in caplog.text

    def test_size_cap(self):
        storage = make_storage(max_size_bytes=3000)
        fill(storage, 20)

        metadata = storage.get_metadata()
        assert metadata.size_bytes <= 3000
        assert 0 < metadata.total_entries < 20
        assert storage.verify_integrity().is_verified

    def test_oversized_entry_kept(self):
        """The newest entry stays even when it alone exceeds the size cap."""
        storage = make_storage(max_size_bytes=10)
        sealed = fill(storage, 3)

        assert storage.get_metadata().total_entries == 1
        assert storage.get_entry(sealed[-1].id) is not None

    def test_rotate(self):
        storage = make_storage(rotation_size=1000)
        fill(storage, 10)

        assert storage.rotate() == 3
        assert storage.get_metadata().total_entries == 7
        assert storage.verify_integrity().is_verified

    def test_rotate_disabled(self):
        storage = make_storage(rotation_size=1000, auto_rotate=False)
        fill(storage, 10)

        assert storage.rotate() == 0

    def test_cleanup(self):
        storage = make_storage()
        for day in range(10):
            storage.add_entry(make_entry(timestamp=T0 + timedelta(days=day)))

        removed = storage.cleanup(T0 + timedelta(days=5))

        assert removed == 5
        assert storage.get_metadata().oldest_entry == T0 + timedelta(days=5)
        assert storage.verify_integrity().is_verified

    def test_cleanup_stops_at_newer_entry(self):
        """Only the leading run of old entries is removed; later expired entries wait."""
        storage = make_storage()
        for day in (0, 9, 1, 2):
            storage.add_entry(make_entry(message=f"day-{day}", timestamp=T0 + timedelta(days=day)))

        assert storage.cleanup(T0 + timedelta(days=5)) == 1

        remaining = storage.get_entries(AuditQueryFilter(limit=None)).entries
        assert sorted(e.message for e in remaining) == ["day-1", "day-2", "day-9"]
        assert storage.verify_integrity().is_verified

        assert storage.cleanup(T0 + timedelta(days=10)) == 3
        assert storage.get_metadata().total_entries == 0

    def test_cleanup_naive_cutoff_is_utc(self):
        storage = make_storage()
        for day in range(4):
            storage.add_entry(make_entry(timestamp=T0 + timedelta(days=day)))

        assert storage.cleanup(datetime(2026, 1, 3)) == 2


class TestQuery:

    @pytest.fixture
    def storage(self):
        storage = make_storage()
        for i in range(10):
            storage.add_entry(make_entry(
                message=f"event-{i}",
                severity=AuditSeverity.HIGH if i % 2 else AuditSeverity.LOW,
                user_id="alice" if i < 3 else "bob",
            ))
        return storage

    def test_filter_by_severity(self, storage):
        result = storage.get_entries(AuditQueryFilter(severities=[AuditSeverity.HIGH]))

        assert result.filtered_count == 5
        assert result.total_count == 10
        assert all(e.severity == AuditSeverity.HIGH for e in result.entries)

    def test_filter_by_user(self, storage):
        result = storage.get_entries(AuditQueryFilter(user_ids=["alice"]))

        assert [e.message for e in result.entries] == ["event-0", "event-1", "event-2"]

    def test_no_match_is_empty(self, storage):
        result = storage.get_entries(AuditQueryFilter(message_contains="nothing-like-this"))

        assert result.entries == []
        assert result.filtered_count == 0
        assert not result.has_more

    def test_pagination(self, storage):
        first = storage.get_entries(AuditQueryFilter(limit=4))
        second = storage.get_entries(AuditQueryFilter(limit=4, offset=first.next_offset))
        last = storage.get_entries(AuditQueryFilter(limit=4, offset=second.next_offset))

        assert first.has_more and first.next_offset == 4
        assert second.has_more and second.next_offset == 8
        assert not last.has_more and last.next_offset is None
        assert len(last.entries) == 2

    def test_sort(self, storage):
        result = storage.get_entries(AuditQueryFilter(sort_by="message", sort_order=SortOrder.ASC, limit=None))
        messages = [e.message for e in result.entries]

        assert messages == sorted(messages)

    def test_sort_by_severity_rank(self):
        storage = make_storage()
        for severity in (AuditSeverity.MEDIUM, AuditSeverity.CRITICAL, AuditSeverity.INFORMATIONAL,
                         AuditSeverity.HIGH, AuditSeverity.LOW):
            storage.add_entry(make_entry(severity=severity))

        result = storage.get_entries(AuditQueryFilter(sort_by="severity", limit=None))

        assert [e.severity for e in result.entries] == [
            AuditSeverity.CRITICAL,
            AuditSeverity.HIGH,
            AuditSeverity.MEDIUM,
            AuditSeverity.LOW,
            AuditSeverity.INFORMATIONAL,
        ]

    def test_naive_time_range_is_utc(self):
        storage = make_storage()
        for day in range(5):
            storage.add_entry(make_entry(message=f"day-{day}", timestamp=T0 + timedelta(days=day)))

        query = AuditQueryFilter(start_time=datetime(2026, 1, 2), end_time=datetime(2026, 1, 3), limit=None)
        result = storage.get_entries(query)

        assert query.start_time.tzinfo is not None
        assert sorted(e.message for e in result.entries) == ["day-1", "day-2"]

    def test_unknown_sort_field_rejected(self):
        with pytest.raises(ValueError):
            AuditQueryFilter(sort_by="checksum_of_everything")


class TestExport:

    def test_json_export(self):
        storage = make_storage()
        sealed = fill(storage, 5)

        document = json.loads(storage.export(ExportOptions()))

        assert document["metadata"]["trail_name"] == "default-audit-trail"
        assert [e["id"] for e in document["entries"]] == [e.id for e in sealed]
        assert document["entries"][1]["previous_entry_hash"] == sealed[0].checksum
        assert document["integrity"]["checksum"] == storage.calculate_checksum()
        assert document["integrity"]["complete"] is True
        assert document["integrity"]["verification"]["status"] == "verified"

    def test_filtered_export_incomplete(self):
        storage = make_storage()
        fill(storage, 5)
        options = ExportOptions(
            filter=AuditQueryFilter(message_contains="event-3"),
            include_metadata=False,
            include_integrity_data=False,
        )

        document = json.loads(storage.export(options))

        assert "metadata" not in document
        assert len(document["entries"]) == 1
        assert document["integrity"]["complete"] is False
        assert "verification" not in document["integrity"]

    def test_export_does_not_touch_metadata(self):
        storage = make_storage()
        fill(storage, 3)

        storage.export(ExportOptions())

        assert storage.get_metadata().last_verified is None

    def test_csv_export(self):
        storage = make_storage()
        storage.add_entry(make_entry("=HYPERLINK(\"http://evil\")"))
        storage.add_entry(make_entry("plain"))

        rows = list(csv.reader(io.StringIO(storage.export(ExportOptions(format=ExportFormat.CSV)).decode())))

        assert rows[0] == ["id", "timestamp", "event_type", "severity", "message", "outcome"]
        assert rows[1][4].startswith("'=")
        assert rows[2][4] == "plain"

    def test_pdf_export(self):
        storage = make_storage()
        fill(storage, 60)

        pdf = storage.export(ExportOptions(format=ExportFormat.PDF))

        assert pdf.startswith(b"%PDF")

    def test_xml_unsupported(self):
        storage = make_storage()

        with pytest.raises(UnsupportedExportFormat) as exc_info:
            storage.export(ExportOptions(format=ExportFormat.XML))

        assert exc_info.value.error.code == AuditErrorCode.UNSUPPORTED_FORMAT


@pytest.mark.parametrize("backend", [StorageBackend.FILE, StorageBackend.DATABASE, StorageBackend.EXTERNAL])
def test_unsupported_backends(backend):
    with pytest.raises(UnsupportedStorageBackend) as exc_info:
        create_storage(AuditTrailConfig(storage_backend=backend))

    assert exc_info.value.error.details == {"backend": backend.value}
