"""
Supabase-backed stores.

Tables:
- moderation_user_status(user_id text primary key, version int, data jsonb)
- moderation_reports(id text primary key, message_id, reporter_id,
  reported_user_id, reason, category, description, status, created_at,
  reviewed_at, reviewed_by, resolution)

The ledger uses optimistic concurrency on the version column: an update only
lands if the row still carries the version that was read, otherwise the
mutator is re-run against the fresh row.
"""

import logging
from typing import Any, Optional

from supabase import Client

from chatguard.core.database import get_supabase
from chatguard.stores.base import (
    Mutator,
    Record,
    RecordStore,
    ReportStore,
    StoreConflictError,
    StoreError,
)

logger = logging.getLogger(__name__)

USER_STATUS_TABLE = "moderation_user_status"
REPORTS_TABLE = "moderation_reports"


def _is_unique_violation(error: Exception) -> bool:
    error_msg = str(error)
    return "23505" in error_msg or "duplicate key" in error_msg


class SupabaseRecordStore(RecordStore):
    """Reputation records in Postgres via Supabase, version-checked updates."""

    def __init__(self, supabase: Optional[Client] = None, max_retries: int = 10) -> None:
        self._supabase = supabase
        self._max_retries = max_retries

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def _fetch(self, key: str) -> Optional[dict[str, Any]]:
        try:
            result = (
                self.supabase.table(USER_STATUS_TABLE)
                .select("data, version")
                .eq("user_id", key)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to read status for {key}: {e}") from e
        return result.data[0] if result.data else None

    def get(self, key: str) -> Optional[Record]:
        row = self._fetch(key)
        return dict(row["data"]) if row else None

    def transactional_update(self, key: str, mutator: Mutator) -> Record:
        for attempt in range(self._max_retries):
            row = self._fetch(key)
            current = dict(row["data"]) if row else None
            updated = mutator(current)

            if row is None:
                try:
                    self.supabase.table(USER_STATUS_TABLE).insert(
                        {"user_id": key, "version": 1, "data": updated}
                    ).execute()
                    return updated
                except Exception as e:
                    if _is_unique_violation(e):
                        logger.debug("Concurrent insert for %s, retrying", key)
                        continue
                    raise StoreError(f"Failed to create status for {key}: {e}") from e

            version = row["version"]
            try:
                result = (
                    self.supabase.table(USER_STATUS_TABLE)
                    .update({"data": updated, "version": version + 1})
                    .eq("user_id", key)
                    .eq("version", version)
                    .execute()
                )
            except Exception as e:
                raise StoreError(f"Failed to update status for {key}: {e}") from e

            if result.data:
                return updated

            logger.debug(
                "Version conflict on %s at version=%d (attempt %d/%d)",
                key,
                version,
                attempt + 1,
                self._max_retries,
            )

        raise StoreConflictError(key, self._max_retries)


class SupabaseReportStore(ReportStore):
    """Report records in the moderation_reports table."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def create(self, report: Record) -> Record:
        try:
            result = self.supabase.table(REPORTS_TABLE).insert(report).execute()
        except Exception as e:
            raise StoreError(f"Failed to create report: {e}") from e
        return dict(result.data[0]) if result.data else report

    def update(self, report_id: str, fields: Record) -> Record:
        try:
            result = (
                self.supabase.table(REPORTS_TABLE).update(fields).eq("id", report_id).execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to update report {report_id}: {e}") from e
        if not result.data:
            raise StoreError(f"Report {report_id} not found")
        return dict(result.data[0])

    def get(self, report_id: str) -> Optional[Record]:
        try:
            result = self.supabase.table(REPORTS_TABLE).select("*").eq("id", report_id).execute()
        except Exception as e:
            raise StoreError(f"Failed to read report {report_id}: {e}") from e
        return dict(result.data[0]) if result.data else None

    def list(self, status: Optional[str] = None) -> list[Record]:
        try:
            query = self.supabase.table(REPORTS_TABLE).select("*")
            if status is not None:
                query = query.eq("status", status)
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise StoreError(f"Failed to list reports: {e}") from e
        return [dict(r) for r in result.data or []]
