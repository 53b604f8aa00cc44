"""Persistence backends for the reputation ledger and report records."""

from chatguard.stores.base import (
    RecordStore,
    ReportStore,
    StoreConflictError,
    StoreError,
)
from chatguard.stores.memory import InMemoryRecordStore, InMemoryReportStore

__all__ = [
    "RecordStore",
    "ReportStore",
    "StoreError",
    "StoreConflictError",
    "InMemoryRecordStore",
    "InMemoryReportStore",
]
