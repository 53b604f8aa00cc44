"""Pydantic models for the moderation engine."""

from chatguard.models.moderation import (
    ChatMessage,
    MessageContext,
    ModerationAction,
    ModerationConfig,
    ModerationError,
    ModerationReport,
    ModerationResult,
    ModerationRule,
    ReportCategory,
    ReportStatus,
    RuleCreate,
    RuleType,
    Sender,
    Severity,
    UserModerationStatus,
)

__all__ = [
    "ChatMessage",
    "MessageContext",
    "ModerationAction",
    "ModerationConfig",
    "ModerationError",
    "ModerationReport",
    "ModerationResult",
    "ModerationRule",
    "ReportCategory",
    "ReportStatus",
    "RuleCreate",
    "RuleType",
    "Sender",
    "Severity",
    "UserModerationStatus",
]
