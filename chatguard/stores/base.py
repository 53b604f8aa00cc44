"""
Persistence boundary for the moderation engine.

The engine only needs two narrow store shapes:
- RecordStore: keyed reputation records with an atomic read-modify-write
- ReportStore: create/update/list for report records

Records cross this boundary as plain JSON-compatible dicts; the services own
the conversion to and from pydantic models.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

Record = dict[str, Any]
Mutator = Callable[[Optional[Record]], Record]


class StoreError(Exception):
    """Base exception for store backend failures."""

    pass


class StoreConflictError(StoreError):
    """A transactional update kept losing to concurrent writers."""

    def __init__(self, key: str, attempts: int):
        self.key = key
        self.attempts = attempts
        super().__init__(f"Gave up updating {key} after {attempts} conflicting attempts")


class RecordStore(ABC):
    """Per-key record store with compare-and-swap updates."""

    @abstractmethod
    def get(self, key: str) -> Optional[Record]:
        """Return the stored record, or None if the key was never written."""

    @abstractmethod
    def transactional_update(self, key: str, mutator: Mutator) -> Record:
        """
        Atomically replace the record at key with mutator(current).

        The mutator must be a pure function of its argument: backends call it
        again when a concurrent writer wins the race. Returns the stored record.
        """


class ReportStore(ABC):
    """Report record store."""

    @abstractmethod
    def create(self, report: Record) -> Record:
        """Insert a new report."""

    @abstractmethod
    def update(self, report_id: str, fields: Record) -> Record:
        """Patch fields on an existing report and return the full record."""

    @abstractmethod
    def get(self, report_id: str) -> Optional[Record]:
        """Return one report, or None."""

    @abstractmethod
    def list(self, status: Optional[str] = None) -> list[Record]:
        """Return reports, newest first, optionally filtered by status."""
