"""
Scan log: one-time-use registry for finished-product unit ids.

The first scan of a unit id is recorded with its timestamp; every later scan
of the same id reports the original timestamp so the caller can flag a
copied code. Entries never expire and are never rewritten; presence alone
is the replay guard.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from herbchain.core import LogicalClock


@dataclass(frozen=True)
class ScanResult:
    unit_id: str
    first_seen: bool
    first_scan_timestamp: int

    @property
    def counterfeit_suspected(self) -> bool:
        return not self.first_seen


class ScanLog:
    """
    Thread-safe registry of scanned unit ids.

    ``record_scan`` performs check-and-insert under one lock so two
    concurrent scans of the same code cannot both be reported as first.
    """

    def __init__(
        self,
        entries: Optional[Dict[str, int]] = None,
        clock: Optional[LogicalClock] = None,
    ):
        self._entries: Dict[str, int] = dict(entries or {})
        self._clock = clock or LogicalClock()
        self._lock = threading.Lock()

    def record_scan(self, unit_id: str) -> ScanResult:
        """
        Register a scan of ``unit_id``.

        Returns first_seen=True on the first scan. Returns first_seen=False
        with the stored timestamp on any repeat, without mutating the log.
        """
        with self._lock:
            existing = self._entries.get(unit_id)
            if existing is not None:
                return ScanResult(unit_id, False, existing)
            now = self._clock.now()
            self._entries[unit_id] = now
            return ScanResult(unit_id, True, now)

    def first_scan(self, unit_id: str) -> Optional[int]:
        with self._lock:
            return self._entries.get(unit_id)

    def __contains__(self, unit_id: object) -> bool:
        with self._lock:
            return unit_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def to_dict(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._entries)
