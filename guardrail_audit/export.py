"""
export.py - JSON and CSV rendering of an audit trail.

JSON is the verifiable artifact: every entry is dumped in full, so
guardrail_verify can recompute each checksum offline. CSV and PDF are
readable renderings only.
"""
from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from typing import Any, Optional

from .entry import AuditEntry, utcnow
from .integrity import IntegrityResult, compute_digest

EXPORT_VERSION = "1.0"

CSV_COLUMNS = ("id", "timestamp", "event_type", "severity", "message", "outcome")

# Leading characters a spreadsheet would evaluate as a formula
_FORMULA_PREFIXES = ("=", "+", "-", "@")


def build_export_document(
    entries: Sequence[AuditEntry],
    algorithm: str,
    metadata: Optional[dict[str, Any]] = None,
    verification: Optional[IntegrityResult] = None,
    complete: bool = True,
) -> dict[str, Any]:
    """
    Assemble the export dict.

    integrity.checksum is the digest over the exported entries only.
    complete is False when a filter narrowed the trail, in which case
    previous_entry_hash links may point at entries outside the export.
    """
    document: dict[str, Any] = {
        "export_version": EXPORT_VERSION,
        "export_timestamp": utcnow().isoformat(),
    }
    if metadata is not None:
        document["metadata"] = metadata

    document["entries"] = [e.model_dump(mode="json") for e in entries]

    integrity: dict[str, Any] = {
        "checksum": compute_digest([e.checksum for e in entries], algorithm),
        "algorithm": algorithm,
        "complete": complete,
    }
    if verification is not None:
        integrity["verification"] = verification.to_dict()
    document["integrity"] = integrity

    return document


def render_json(document: dict[str, Any]) -> bytes:
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if text.startswith(_FORMULA_PREFIXES):
        return "'" + text
    return text


def render_csv(entries: Sequence[AuditEntry]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow([
            _csv_cell(entry.id),
            _csv_cell(entry.timestamp.isoformat()),
            _csv_cell(entry.event_type.value),
            _csv_cell(entry.severity.value),
            _csv_cell(entry.message),
            _csv_cell(entry.outcome.value),
        ])
    return buffer.getvalue().encode("utf-8")
