"""
Report processor for user-submitted message reports.

Handles:
- Report intake (pending record in the report store)
- Self-report and reporting-disabled checks
- Synchronous auto-resolution of spam reports with a ledger warning
- Listing and per-status/per-category counts

A failure to store a new report propagates as ReportStoreError so the caller
can retry. Once the report is stored, later failures (the spam warning, the
resolve write) are logged and the report id is still returned, so a retry
never files or penalises the same message twice.
"""

import logging
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from chatguard.core.constants import SPAM_REPORT_RESOLUTION
from chatguard.core.logging_config import moderation_extra
from chatguard.models.moderation import (
    ModerationReport,
    ReportCategory,
    ReportingDisabledError,
    ReportNotFoundError,
    ReportStatsResponse,
    ReportStatus,
    ReportStoreError,
    SelfReportError,
)
from chatguard.services.config_store import ConfigStore
from chatguard.services.reputation import ReputationLedger
from chatguard.stores.base import ReportStore, StoreError

logger = logging.getLogger(__name__)

AUTO_REVIEWER = "auto-moderation"


class ReportProcessor:
    """Intake and auto-resolution of user reports."""

    def __init__(
        self,
        store: ReportStore,
        ledger: ReputationLedger,
        config_store: ConfigStore,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._config_store = config_store

    def report(
        self,
        message_id: str,
        reporter_id: str,
        reported_user_id: str,
        reason: str,
        category: ReportCategory,
        description: Optional[str] = None,
    ) -> str:
        """
        Create a report and auto-resolve it if it qualifies.

        Returns:
            The new report id

        Raises:
            ReportingDisabledError: If reporting is switched off
            SelfReportError: If reporter and reported user are the same
            ReportStoreError: If the report could not be stored (nothing was
                recorded; safe to retry)
        """
        config = self._config_store.get()
        if not config.reporting_enabled:
            raise ReportingDisabledError("Reporting is currently disabled")
        if reporter_id == reported_user_id:
            raise SelfReportError("Cannot report yourself")

        report = ModerationReport(
            id=f"report_{uuid.uuid4().hex}",
            message_id=message_id,
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=reason,
            category=category,
            description=description,
            status=ReportStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )

        try:
            self._store.create(report.model_dump(mode="json"))
        except StoreError as e:
            logger.error(
                "Report store failed on create: message=%s error=%s",
                message_id,
                e,
                extra=moderation_extra(user_id=reported_user_id),
            )
            raise ReportStoreError(f"Failed to store report: {e}") from e

        logger.info(
            "Report received: id=%s reporter=%s reported=%s category=%s",
            report.id,
            reporter_id,
            reported_user_id,
            category.value,
            extra=moderation_extra(report_id=report.id, user_id=reported_user_id),
        )

        if config.auto_moderation_enabled and category == ReportCategory.SPAM:
            self._auto_resolve(report)

        return report.id

    def _auto_resolve(self, report: ModerationReport) -> None:
        # Only resolve once the warning has landed; otherwise leave it for review
        try:
            self._ledger.apply_report_warning(report.reported_user_id)
        except Exception as e:
            logger.warning(
                "missed-penalty: report=%s user=%s left pending: %s",
                report.id,
                report.reported_user_id,
                e,
                extra=moderation_extra(report_id=report.id, user_id=report.reported_user_id),
            )
            return

        try:
            self._store.update(
                report.id,
                {
                    "status": ReportStatus.RESOLVED.value,
                    "reviewed_at": datetime.now(timezone.utc).isoformat(),
                    "reviewed_by": AUTO_REVIEWER,
                    "resolution": SPAM_REPORT_RESOLUTION,
                },
            )
        except StoreError as e:
            # The warning already landed; the report stays pending for a reviewer
            logger.error(
                "missed-resolution: report=%s user=%s warned but left pending: %s",
                report.id,
                report.reported_user_id,
                e,
                extra=moderation_extra(report_id=report.id, user_id=report.reported_user_id),
            )
            return

        logger.info(
            "Report auto-resolved: id=%s", report.id, extra=moderation_extra(report_id=report.id)
        )

    def get_reports(self, status: Optional[ReportStatus] = None) -> list[ModerationReport]:
        """
        List reports, newest first.

        Raises:
            StoreError: If the backend read fails
        """
        records = self._store.list(status.value if status else None)
        return [ModerationReport.model_validate(r) for r in records]

    def get_report(self, report_id: str) -> ModerationReport:
        """
        Get one report.

        Raises:
            ReportNotFoundError: If no report has this id
            StoreError: If the backend read fails
        """
        record = self._store.get(report_id)
        if record is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return ModerationReport.model_validate(record)

    def get_report_stats(self) -> ReportStatsResponse:
        """Counts per status and per category across all reports."""
        reports = self.get_reports()
        by_status = Counter(r.status.value for r in reports)
        by_category = Counter(r.category.value for r in reports)
        return ReportStatsResponse(
            total=len(reports),
            by_status={s.value: by_status.get(s.value, 0) for s in ReportStatus},
            by_category={c.value: by_category.get(c.value, 0) for c in ReportCategory},
        )
