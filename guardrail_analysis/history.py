"""
history.py - Bounded violation history used for correlation.

ViolationHistory is an explicit collaborator: create one, hand it to a
ViolationAnalyzer, call clear() to tear it down. There is no module-level
instance. It is never the audit record.

Bounds:
- at most max_per_key violations per session/client key (oldest dropped)
- at most max_keys keys (least recently written key dropped)

Writers are expected to be a single logical thread; callers analysing in
parallel must serialize access themselves.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .models import EnhancedViolation

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_KEY = 1000
DEFAULT_MAX_KEYS = 10_000


class HistoryKind(str, Enum):
    SESSION = "session"
    CLIENT = "client"


@dataclass(frozen=True)
class HistoryKey:
    kind: HistoryKind
    value: str

    @classmethod
    def session(cls, session_id: str) -> HistoryKey:
        return cls(HistoryKind.SESSION, session_id)

    @classmethod
    def client(cls, client_id: str) -> HistoryKey:
        return cls(HistoryKind.CLIENT, client_id)


class ViolationHistory:
    def __init__(
        self,
        max_per_key: int = DEFAULT_MAX_PER_KEY,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> None:
        if max_per_key <= 0 or max_keys <= 0:
            raise ValueError("History bounds must be positive")

        self.max_per_key = max_per_key
        self.max_keys = max_keys
        self._by_key: OrderedDict[HistoryKey, deque[EnhancedViolation]] = OrderedDict()
        self.evicted_count = 0

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: HistoryKey) -> bool:
        return key in self._by_key

    def record(self, key: HistoryKey, violations: Iterable[EnhancedViolation]) -> None:
        """Append violations under key, evicting oldest entries past the caps."""
        violations = list(violations)
        if not violations:
            return

        bucket = self._by_key.get(key)
        if bucket is None:
            bucket = deque()
            self._by_key[key] = bucket
        self._by_key.move_to_end(key)

        bucket.extend(violations)
        dropped = 0
        while len(bucket) > self.max_per_key:
            bucket.popleft()
            dropped += 1
        if dropped:
            self.evicted_count += dropped
            logger.info(
                "Violation history evicted %d oldest entries for %s=%s",
                dropped, key.kind.value, key.value,
            )

        while len(self._by_key) > self.max_keys:
            old_key, old_bucket = self._by_key.popitem(last=False)
            self.evicted_count += len(old_bucket)
            logger.info(
                "Violation history evicted key %s=%s (%d entries)",
                old_key.kind.value, old_key.value, len(old_bucket),
            )

    def get(self, key: HistoryKey) -> list[EnhancedViolation]:
        return list(self._by_key.get(key, ()))

    def within(self, key: HistoryKey, window: timedelta, now: datetime) -> list[EnhancedViolation]:
        """Entries for key whose timestamp is less than window before now."""
        return [v for v in self._by_key.get(key, ()) if now - v.timestamp < window]

    def clear(self) -> None:
        self._by_key.clear()
        self.evicted_count = 0
