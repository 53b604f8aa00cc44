"""Unit tests for ModerationService.

Tests:
- moderate_message() - end-to-end decisions, ledger updates, fail-open
- ban/mute short-circuit and expiry handling
- report_message() - spam auto-resolution through the facade
- lift_restrictions(), update_config(), custom rules
- create_moderation_service() backend selection
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from chatguard.models.moderation import (
    AppealsDisabledError,
    ChatMessage,
    MessageContext,
    ModerationAction,
    ModerationConfig,
    ReportCategory,
    ReportStatus,
    RuleCreate,
    Sender,
    Severity,
    UserModerationStatus,
)
from chatguard.services.moderation_service import (
    ModerationService,
    build_reason,
    create_moderation_service,
)
from chatguard.stores.base import StoreError
from chatguard.stores.memory import InMemoryRecordStore, InMemoryReportStore

ALL_OFF = ModerationConfig(
    enable_profanity_filter=False,
    enable_spam_detection=False,
    enable_harassment_detection=False,
    auto_moderation_enabled=False,
    custom_rules_enabled=False,
)


# =============================================================================
# TestModerateMessage
# =============================================================================


class TestModerateMessage:
    @pytest.mark.unit
    def test_clean_message_allowed_without_ledger_write(self, service, ledger_store) -> None:
        result = service.moderate_message("hello there", "user-1")

        assert not result.is_violation
        assert result.action == ModerationAction.ALLOW
        assert result.violation_type == []
        assert result.filtered_content is None
        assert ledger_store.get("user-1") is None

    @pytest.mark.unit
    def test_first_offense_profanity_is_filtered(self, service) -> None:
        result = service.moderate_message("STUPID STUPID STUPID!!!!", "user-1")

        assert result.is_violation
        assert result.severity == Severity.MEDIUM
        assert result.violation_type == ["profanity"]
        assert result.action == ModerationAction.FILTER
        assert result.filtered_content == "****** ****** ******!!!!"
        assert result.rule_ids == ["profanity_filter"]
        assert result.reason == "Medium severity violation: profanity"

        status = service.get_user_status("user-1")
        assert status.violation_count == 1
        assert status.trust_score == 90

    @pytest.mark.unit
    def test_accepts_message_and_sender_models(self, service) -> None:
        result = service.moderate_message(
            ChatMessage(id="msg-1", text="what a moron"),
            Sender(uid="user-1", display_name="Sam"),
            MessageContext(conversation_id="conv-1"),
        )

        assert result.is_violation
        assert service.get_user_status("user-1").violation_count == 1

    @pytest.mark.unit
    def test_repeat_offender_high_severity_blocks_and_mutes(
        self, service, ledger_store, seed
    ) -> None:
        seed(ledger_store, UserModerationStatus(user_id="user-1", violation_count=6))

        result = service.moderate_message("stupid idiot moron damn crap", "user-1")

        assert result.severity == Severity.HIGH
        assert result.action == ModerationAction.BLOCK
        assert result.filtered_content is None

        status = service.get_user_status("user-1")
        assert status.violation_count == 7
        assert status.trust_score == 85
        assert status.is_muted
        assert status.mute_expiry - status.last_violation == timedelta(hours=24)
        assert not status.is_banned

    @pytest.mark.unit
    def test_critical_harassment_blocks_and_bans(self, service) -> None:
        result = service.moderate_message("I hate you, I will kill you and find you", "user-1")

        assert result.severity == Severity.CRITICAL
        assert result.action == ModerationAction.BLOCK
        assert result.violation_type == ["harassment"]

        status = service.get_user_status("user-1")
        assert status.is_banned
        assert status.trust_score == 80

    @pytest.mark.unit
    def test_first_offense_spam_is_warned(self, service) -> None:
        text = "AMAZING deal!!!!! http://a.com http://b.com http://c.com call 12345678901"
        result = service.moderate_message(text, "user-1")

        assert result.severity == Severity.HIGH
        assert result.violation_type == ["spam"]
        assert result.action == ModerationAction.WARN
        assert service.get_user_status("user-1").trust_score == 85

    @pytest.mark.unit
    def test_multiple_detectors_merge_sorted(self, service) -> None:
        result = service.moderate_message("STUPID idiot!!!!! 12345678901", "user-1")

        assert result.violation_type == ["profanity", "spam"]
        assert result.rule_ids == ["profanity_filter", "spam_detection"]

    @pytest.mark.unit
    def test_all_toggles_off_allows_everything(self, make_service) -> None:
        service = make_service(ALL_OFF)

        result = service.moderate_message("stupid idiot moron damn crap", "user-1")

        assert not result.is_violation
        assert result.action == ModerationAction.ALLOW

    @pytest.mark.unit
    def test_custom_rule_fires(self, service) -> None:
        rule_id = service.add_custom_rule(
            RuleCreate(
                name="Caps lock",
                severity=Severity.MEDIUM,
                action=ModerationAction.FILTER,
                pattern="^[A-Z]{10,}$",
            )
        )

        result = service.moderate_message("ABCDEFGHIJKLMNO", "user-1")

        assert result.is_violation
        assert rule_id in result.rule_ids
        assert "custom" in result.violation_type

    @pytest.mark.unit
    def test_removed_custom_rule_stops_firing(self, service) -> None:
        rule_id = service.add_custom_rule(
            RuleCreate(
                name="Scam",
                severity=Severity.HIGH,
                action=ModerationAction.BLOCK,
                keywords=["free crypto"],
            )
        )
        assert service.remove_custom_rule(rule_id)

        result = service.moderate_message("free crypto here", "user-1")

        assert not result.is_violation

    @pytest.mark.unit
    def test_strict_mode_applies_to_first_offense(self, make_service) -> None:
        service = make_service(ModerationConfig(strict_mode=True))
        text = "AMAZING deal!!!!! http://a.com http://b.com http://c.com call 12345678901"

        result = service.moderate_message(text, "user-1")

        assert result.action == ModerationAction.FILTER


# =============================================================================
# TestRestrictions
# =============================================================================


class TestRestrictions:
    @pytest.mark.unit
    def test_indefinite_ban_blocks(self, service, ledger_store, seed) -> None:
        seed(ledger_store, UserModerationStatus(user_id="user-1", is_banned=True))

        result = service.moderate_message("hello there", "user-1")

        assert result.action == ModerationAction.BLOCK
        assert result.severity == Severity.CRITICAL
        assert result.violation_type == ["banned_user"]
        assert result.reason == "User is currently banned"
        # Short-circuit: no new violation recorded
        assert service.get_user_status("user-1").violation_count == 0

    @pytest.mark.unit
    def test_expired_ban_does_not_block(self, service, ledger_store, seed) -> None:
        seed(
            ledger_store,
            UserModerationStatus(
                user_id="user-1",
                is_banned=True,
                ban_expiry=datetime.now(timezone.utc) - timedelta(days=1),
            ),
        )

        result = service.moderate_message("hello there", "user-1")

        assert not result.is_violation
        assert result.action == ModerationAction.ALLOW

    @pytest.mark.unit
    def test_active_mute_blocks(self, service, ledger_store, seed) -> None:
        seed(
            ledger_store,
            UserModerationStatus(
                user_id="user-1",
                is_muted=True,
                mute_expiry=datetime.now(timezone.utc) + timedelta(hours=1),
            ),
        )

        result = service.moderate_message("hello there", "user-1")

        assert result.action == ModerationAction.BLOCK
        assert result.severity == Severity.HIGH
        assert result.violation_type == ["muted_user"]

    @pytest.mark.unit
    def test_lift_restrictions(self, service, ledger_store, seed) -> None:
        seed(ledger_store, UserModerationStatus(user_id="user-1", is_banned=True, is_muted=True))

        status = service.lift_restrictions("user-1")

        assert not status.is_banned
        assert not status.is_muted
        assert service.moderate_message("hello there", "user-1").action == ModerationAction.ALLOW

    @pytest.mark.unit
    def test_lift_restrictions_requires_appeals(self, make_service) -> None:
        service = make_service(ModerationConfig(appeal_process_enabled=False))

        with pytest.raises(AppealsDisabledError):
            service.lift_restrictions("user-1")


# =============================================================================
# TestFailOpen
# =============================================================================


class TestFailOpen:
    @pytest.mark.unit
    def test_detection_failure_allows(self, service, caplog) -> None:
        service.pipeline = MagicMock()
        service.pipeline.evaluate.side_effect = RuntimeError("boom")

        result = service.moderate_message("stupid", "user-1")

        assert not result.is_violation
        assert result.action == ModerationAction.ALLOW
        assert result.reason == "Moderation check failed"
        assert "Moderation check failed" in caplog.text

    @pytest.mark.unit
    def test_ledger_read_failure_uses_default_status(self) -> None:
        store = MagicMock()
        store.get.side_effect = StoreError("down")
        store.transactional_update.side_effect = StoreError("down")
        service = ModerationService(ledger_store=store)

        result = service.moderate_message("STUPID STUPID STUPID!!!!", "user-1")

        # Decided as a first offense; the failed penalty write does not change the result
        assert result.action == ModerationAction.FILTER
        assert result.is_violation

    @pytest.mark.unit
    def test_unreadable_ledger_record_keeps_result(self, caplog) -> None:
        store = MagicMock()
        store.get.return_value = None
        store.transactional_update.side_effect = ValueError("corrupt stored record")
        service = ModerationService(ledger_store=store)

        result = service.moderate_message("STUPID STUPID STUPID!!!!", "user-1")

        assert result.action == ModerationAction.FILTER
        assert result.reason != "Moderation check failed"
        assert "missed-penalty" in caplog.text

    @pytest.mark.unit
    def test_get_reports_failure_returns_empty(self) -> None:
        report_store = MagicMock()
        report_store.list.side_effect = StoreError("down")
        service = ModerationService(report_store=report_store)

        assert service.get_reports() == []


# =============================================================================
# TestReportsAndConfig
# =============================================================================


class TestReportsAndConfig:
    @pytest.mark.unit
    def test_spam_report_warns_user(self, service) -> None:
        report_id = service.report_message(
            message_id="msg-1",
            reporter_id="user-1",
            reported_user_id="user-2",
            reason="Ads",
            category=ReportCategory.SPAM,
        )

        reports = service.get_reports(ReportStatus.RESOLVED)
        assert [r.id for r in reports] == [report_id]

        status = service.get_user_status("user-2")
        assert status.warning_count == 1
        assert status.trust_score == 95

    @pytest.mark.unit
    def test_update_config(self, service) -> None:
        assert service.update_config(enable_profanity_filter=False) is True
        assert not service.get_config().enable_profanity_filter

        result = service.moderate_message("what a moron", "user-1")
        assert not result.is_violation

    @pytest.mark.unit
    def test_update_config_rejects_unknown_keys(self, service) -> None:
        assert service.update_config(enable_magic=True) is False
        assert service.get_config() == ModerationConfig()

    @pytest.mark.unit
    def test_list_rules(self, service) -> None:
        service.add_custom_rule(
            RuleCreate(
                name="Scam", severity=Severity.LOW, action=ModerationAction.WARN, keywords=["x"]
            )
        )

        assert len(service.list_rules()) == 4
        service.set_rule_enabled("spam_detection", False)
        assert len(service.list_rules(include_disabled=False)) == 3


class TestBuildReason:
    @pytest.mark.unit
    def test_no_violations(self) -> None:
        assert build_reason([], Severity.LOW) == "No violations detected"

    @pytest.mark.unit
    def test_lists_types(self) -> None:
        assert (
            build_reason(["profanity", "spam"], Severity.HIGH)
            == "High severity violation: profanity, spam"
        )


# =============================================================================
# TestCreateModerationService
# =============================================================================


class TestCreateModerationService:
    @pytest.mark.unit
    def test_memory_backends_and_toggle_defaults(self) -> None:
        settings = MagicMock(
            ledger_backend="memory",
            report_backend="memory",
            store_max_retries=3,
            custom_rule_timeout_ms=20,
        )
        settings.moderation_defaults.return_value = {"strict_mode": True}

        service = create_moderation_service(settings)

        assert isinstance(service.ledger._store, InMemoryRecordStore)
        assert isinstance(service.reports._store, InMemoryReportStore)
        assert service.get_config().strict_mode

    @pytest.mark.unit
    def test_redis_and_supabase_backends(self) -> None:
        settings = MagicMock(
            ledger_backend="redis",
            report_backend="supabase",
            store_max_retries=3,
            custom_rule_timeout_ms=20,
        )
        settings.moderation_defaults.return_value = {}

        with patch("chatguard.stores.supabase_store.get_supabase") as mock_get_supabase:
            service = create_moderation_service(settings)

        from chatguard.stores.redis_store import RedisRecordStore
        from chatguard.stores.supabase_store import SupabaseReportStore

        assert isinstance(service.ledger._store, RedisRecordStore)
        assert isinstance(service.reports._store, SupabaseReportStore)
        # Clients are created lazily
        mock_get_supabase.assert_not_called()
