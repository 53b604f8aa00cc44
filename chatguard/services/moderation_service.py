"""
Moderation service: the engine's public entry point.

Handles:
- Inline message checks (moderate_message) for the send path
- Report intake (report_message) for the report path
- Reputation lookups and appeal overrides
- Config toggles and the custom rule catalog

Detection fails open: any internal error while checking a message degrades to
"allow" so that moderation never takes message delivery down with it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from chatguard.core.config import Settings, get_settings
from chatguard.core.logging_config import moderation_extra
from chatguard.models.moderation import (
    AppealsDisabledError,
    ChatMessage,
    InvalidConfigError,
    MessageContext,
    ModerationAction,
    ModerationConfig,
    ModerationReport,
    ModerationResult,
    ModerationRule,
    ReportCategory,
    ReportStatsResponse,
    ReportStatus,
    RuleCreate,
    RuleType,
    Sender,
    Severity,
    UserModerationStatus,
)
from chatguard.services.action_policy import ActionPolicy
from chatguard.services.aggregator import SeverityAggregator
from chatguard.services.config_store import ConfigStore
from chatguard.services.content_filter import ContentFilter
from chatguard.services.detection import DetectionPipeline
from chatguard.services.report_service import ReportProcessor
from chatguard.services.reputation import ReputationLedger, default_status
from chatguard.services.rule_catalog import RuleCatalog
from chatguard.stores.base import RecordStore, ReportStore
from chatguard.stores.memory import InMemoryRecordStore, InMemoryReportStore

logger = logging.getLogger(__name__)

CHECK_FAILED_REASON = "Moderation check failed"
BANNED_REASON = "User is currently banned"
MUTED_REASON = "User is currently muted"


def build_reason(violation_types: list[str], severity: Severity) -> str:
    """Human-readable summary of what fired."""
    if not violation_types:
        return "No violations detected"
    return f"{severity.value.capitalize()} severity violation: {', '.join(violation_types)}"


class ModerationService:
    """Content moderation and user reputation engine."""

    def __init__(
        self,
        ledger_store: Optional[RecordStore] = None,
        report_store: Optional[ReportStore] = None,
        config: Optional[ModerationConfig] = None,
        catalog: Optional[RuleCatalog] = None,
        rule_timeout_ms: int = 50,
    ) -> None:
        self.config_store = ConfigStore(config)
        self.catalog = catalog or RuleCatalog()
        self.ledger = ReputationLedger(ledger_store or InMemoryRecordStore())
        self.pipeline = DetectionPipeline(self.catalog, rule_timeout_ms=rule_timeout_ms)
        self.aggregator = SeverityAggregator()
        self.policy = ActionPolicy(self.ledger)
        self.content_filter = ContentFilter()
        self.reports = ReportProcessor(
            report_store or InMemoryReportStore(), self.ledger, self.config_store
        )

    # =========================================================================
    # Send path
    # =========================================================================

    def moderate_message(
        self,
        message: Union[ChatMessage, str],
        sender: Union[Sender, str],
        context: Optional[MessageContext] = None,
    ) -> ModerationResult:
        """
        Check one outgoing message and record any violation on the sender.

        Never raises: on internal failure returns an allow result with reason
        "Moderation check failed".
        """
        try:
            return self._moderate(message, sender, context)
        except Exception:
            logger.exception("Moderation check failed, allowing message")
            return ModerationResult(
                is_violation=False,
                action=ModerationAction.ALLOW,
                reason=CHECK_FAILED_REASON,
            )

    def _moderate(
        self,
        message: Union[ChatMessage, str],
        sender: Union[Sender, str],
        context: Optional[MessageContext],
    ) -> ModerationResult:
        text = message.text if isinstance(message, ChatMessage) else message
        sender_id = sender.uid if isinstance(sender, Sender) else sender
        now = datetime.now(timezone.utc)

        status = self.get_user_status(sender_id)

        if status.is_ban_active(now):
            return ModerationResult(
                is_violation=True,
                severity=Severity.CRITICAL,
                violation_type=["banned_user"],
                confidence=1.0,
                action=ModerationAction.BLOCK,
                reason=BANNED_REASON,
            )

        if status.is_mute_active(now):
            return ModerationResult(
                is_violation=True,
                severity=Severity.HIGH,
                violation_type=["muted_user"],
                confidence=1.0,
                action=ModerationAction.BLOCK,
                reason=MUTED_REASON,
            )

        config = self.config_store.get()
        findings = self.pipeline.evaluate(text, status, config, context)
        overall = self.aggregator.merge(findings.values())
        violation_types = sorted(overall.violation_types)

        if not overall.is_violation:
            return ModerationResult(
                is_violation=False,
                severity=overall.severity,
                confidence=overall.confidence,
                action=ModerationAction.ALLOW,
                reason=build_reason([], overall.severity),
            )

        action = self.policy.decide(
            overall.severity, status, violation_types, strict_mode=config.strict_mode
        )

        filtered_content = None
        if action == ModerationAction.FILTER and RuleType.PROFANITY.value in violation_types:
            filtered_content = self.content_filter.redact(text)

        result = ModerationResult(
            is_violation=True,
            severity=overall.severity,
            violation_type=violation_types,
            confidence=overall.confidence,
            action=action,
            filtered_content=filtered_content,
            reason=build_reason(violation_types, overall.severity),
            rule_ids=sorted(overall.rule_ids),
        )

        self.policy.record_violation(sender_id, overall.severity, action, now)
        return result

    # =========================================================================
    # Report path
    # =========================================================================

    def report_message(
        self,
        message_id: str,
        reporter_id: str,
        reported_user_id: str,
        reason: str,
        category: ReportCategory,
        description: Optional[str] = None,
    ) -> str:
        """Submit a report. Store failures propagate (see ReportProcessor.report)."""
        return self.reports.report(
            message_id=message_id,
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=reason,
            category=category,
            description=description,
        )

    def get_reports(self, status: Optional[ReportStatus] = None) -> list[ModerationReport]:
        """List reports; returns an empty list if the store is unavailable."""
        try:
            return self.reports.get_reports(status)
        except Exception:
            logger.exception("Failed to list reports")
            return []

    def get_report(self, report_id: str) -> ModerationReport:
        return self.reports.get_report(report_id)

    def get_report_stats(self) -> ReportStatsResponse:
        return self.reports.get_report_stats()

    # =========================================================================
    # Reputation
    # =========================================================================

    def get_user_status(self, user_id: str) -> UserModerationStatus:
        """Get a user's reputation record; default-safe status on failure."""
        try:
            return self.ledger.get(user_id)
        except Exception:
            logger.exception(
                "Failed to read moderation status for user=%s",
                user_id,
                extra=moderation_extra(user_id=user_id),
            )
            return default_status(user_id)

    def lift_restrictions(self, user_id: str) -> UserModerationStatus:
        """
        Clear a user's mute and ban (upheld appeal).

        Raises:
            AppealsDisabledError: If the appeal process is switched off
            StoreError: If the ledger write fails
        """
        if not self.config_store.get().appeal_process_enabled:
            raise AppealsDisabledError("Appeal process is currently disabled")
        return self.ledger.lift_restrictions(user_id)

    # =========================================================================
    # Config
    # =========================================================================

    def get_config(self) -> ModerationConfig:
        return self.config_store.get()

    def update_config(self, **changes: Any) -> bool:
        """Apply a partial config update. Returns False (and logs) if rejected."""
        try:
            self.config_store.update(changes)
        except InvalidConfigError as e:
            logger.warning("Rejected moderation config update %s: %s", sorted(changes), e)
            return False
        return True

    # =========================================================================
    # Rules
    # =========================================================================

    def add_custom_rule(self, rule: RuleCreate) -> str:
        """
        Add an operator rule. Returns the new rule id.

        Raises:
            InvalidRuleError: If the pattern is unsafe or does not compile
        """
        return self.catalog.add(rule).id

    def remove_custom_rule(self, rule_id: str) -> bool:
        """
        Remove an operator rule. Returns False if no such rule.

        Raises:
            BuiltinRuleError: If the rule is built-in
        """
        return self.catalog.remove(rule_id)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> ModerationRule:
        return self.catalog.set_enabled(rule_id, enabled)

    def list_rules(self, include_disabled: bool = True) -> list[ModerationRule]:
        return self.catalog.list_rules(include_disabled)


def create_moderation_service(settings: Optional[Settings] = None) -> ModerationService:
    """Build the service with the store backends selected in settings."""
    settings = settings or get_settings()

    ledger_store: RecordStore
    if settings.ledger_backend == "redis":
        from chatguard.stores.redis_store import RedisRecordStore

        ledger_store = RedisRecordStore(max_retries=settings.store_max_retries)
    elif settings.ledger_backend == "supabase":
        from chatguard.stores.supabase_store import SupabaseRecordStore

        ledger_store = SupabaseRecordStore(max_retries=settings.store_max_retries)
    else:
        ledger_store = InMemoryRecordStore(max_retries=settings.store_max_retries)

    report_store: ReportStore
    if settings.report_backend == "supabase":
        from chatguard.stores.supabase_store import SupabaseReportStore

        report_store = SupabaseReportStore()
    else:
        report_store = InMemoryReportStore()

    logger.info(
        "Moderation service using ledger=%s reports=%s",
        settings.ledger_backend,
        settings.report_backend,
    )
    return ModerationService(
        ledger_store=ledger_store,
        report_store=report_store,
        config=ModerationConfig(**settings.moderation_defaults()),
        rule_timeout_ms=settings.custom_rule_timeout_ms,
    )
