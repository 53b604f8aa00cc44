"""
In-memory store backends.

Used in development and tests. InMemoryRecordStore keeps a version number per
key and swaps records in with a compare-and-swap loop, so the mutator runs
outside the lock and concurrent writers to different keys never wait on each
other beyond the swap itself.
"""

import copy
import logging
import threading
from typing import Optional

from chatguard.stores.base import (
    Mutator,
    Record,
    RecordStore,
    ReportStore,
    StoreConflictError,
    StoreError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 10


class InMemoryRecordStore(RecordStore):
    """Versioned dict with compare-and-swap transactional updates."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        self._records: dict[str, tuple[int, Record]] = {}
        self._swap_lock = threading.Lock()
        self._max_retries = max_retries

    def get(self, key: str) -> Optional[Record]:
        entry = self._records.get(key)
        if entry is None:
            return None
        return copy.deepcopy(entry[1])

    def transactional_update(self, key: str, mutator: Mutator) -> Record:
        for _ in range(self._max_retries):
            entry = self._records.get(key)
            version = entry[0] if entry else 0
            current = copy.deepcopy(entry[1]) if entry else None

            updated = mutator(current)

            with self._swap_lock:
                latest = self._records.get(key)
                latest_version = latest[0] if latest else 0
                if latest_version == version:
                    self._records[key] = (version + 1, copy.deepcopy(updated))
                    return copy.deepcopy(updated)

            logger.debug("CAS conflict on key=%s at version=%d, retrying", key, version)

        raise StoreConflictError(key, self._max_retries)


class InMemoryReportStore(ReportStore):
    """Dict-backed report store (insertion ordered)."""

    def __init__(self) -> None:
        self._reports: dict[str, Record] = {}
        self._lock = threading.Lock()

    def create(self, report: Record) -> Record:
        report_id = report.get("id")
        if not report_id:
            raise StoreError("Report record is missing an id")
        with self._lock:
            if report_id in self._reports:
                raise StoreError(f"Report {report_id} already exists")
            self._reports[report_id] = copy.deepcopy(report)
        return copy.deepcopy(report)

    def update(self, report_id: str, fields: Record) -> Record:
        with self._lock:
            existing = self._reports.get(report_id)
            if existing is None:
                raise StoreError(f"Report {report_id} not found")
            existing.update(copy.deepcopy(fields))
            return copy.deepcopy(existing)

    def get(self, report_id: str) -> Optional[Record]:
        report = self._reports.get(report_id)
        return copy.deepcopy(report) if report is not None else None

    def list(self, status: Optional[str] = None) -> list[Record]:
        with self._lock:
            reports = [copy.deepcopy(r) for r in self._reports.values()]
        if status is not None:
            reports = [r for r in reports if r.get("status") == status]
        reports.reverse()
        return reports
