"""
Content moderation and user reputation models.

Inline path: message -> detectors -> aggregated severity -> action + ledger update.
Out-of-band path: user report -> optional auto-resolution -> ledger update.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chatguard.core.constants import (
    DEFAULT_TRUST_SCORE,
    MAX_RULE_KEYWORDS,
    MAX_TRUST_SCORE,
    MIN_TRUST_SCORE,
    REPORT_DESCRIPTION_MAX_LENGTH,
    REPORT_REASON_MAX_LENGTH,
    RULE_NAME_MAX_LENGTH,
)

# ===========================================
# Enums
# ===========================================


class Severity(str, Enum):
    """Ordinal violation severity (low < medium < high < critical)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class ModerationAction(str, Enum):
    """Enforcement outcome of a moderation decision."""

    ALLOW = "allow"
    WARN = "warn"
    FILTER = "filter"
    BLOCK = "block"
    REPORT = "report"  # Rule action hint only, never decided by the policy


class RuleType(str, Enum):
    """Detector family a rule belongs to."""

    PROFANITY = "profanity"
    SPAM = "spam"
    HARASSMENT = "harassment"
    CUSTOM = "custom"


class ReportCategory(str, Enum):
    """Categories for user-submitted reports."""

    SPAM = "spam"
    HARASSMENT = "harassment"
    INAPPROPRIATE = "inappropriate"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Report lifecycle: pending -> reviewed | resolved | dismissed."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# ===========================================
# Message inputs
# ===========================================


class ChatMessage(BaseModel):
    """Outgoing chat message as handed over by the delivery service."""

    id: Optional[str] = None
    text: str


class Sender(BaseModel):
    """Message author."""

    uid: str
    display_name: Optional[str] = None


class MessageContext(BaseModel):
    """Where the message is going. Accepted but not used by any detector."""

    conversation_id: Optional[str] = None
    recipient_id: Optional[str] = None


# ===========================================
# Rules
# ===========================================


class ModerationRule(BaseModel):
    """A named detector unit (built-in or operator-added)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: RuleType
    severity: Severity
    action: ModerationAction
    pattern: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    enabled: bool = True
    builtin: bool = False
    created_at: datetime
    updated_at: datetime


class RuleCreate(BaseModel):
    """Fields an operator supplies when adding a custom rule."""

    name: str = Field(..., min_length=1, max_length=RULE_NAME_MAX_LENGTH)
    type: RuleType = RuleType.CUSTOM
    severity: Severity
    action: ModerationAction
    pattern: Optional[str] = None
    keywords: list[str] = Field(default_factory=list, max_length=MAX_RULE_KEYWORDS)
    enabled: bool = True

    @model_validator(mode="after")
    def require_pattern_or_keywords(self) -> "RuleCreate":
        """A custom rule must be able to match something."""
        self.keywords = [k.strip() for k in self.keywords if k and k.strip()]
        if not self.pattern and not self.keywords:
            raise ValueError("A custom rule needs a pattern or at least one keyword")
        return self


class RuleUpdate(BaseModel):
    """Enable or disable a rule."""

    enabled: bool


# ===========================================
# Detection
# ===========================================


class DetectorFinding(BaseModel):
    """Partial result from one detector, or the merge of several."""

    model_config = ConfigDict(frozen=True)

    is_violation: bool = False
    severity: Severity = Severity.LOW
    confidence: float = 0.0
    violation_types: frozenset[str] = frozenset()
    rule_ids: frozenset[str] = frozenset()


class ModerationResult(BaseModel):
    """Outcome of one moderate_message() call. Never persisted."""

    is_violation: bool
    severity: Severity = Severity.LOW
    violation_type: list[str] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    action: ModerationAction = ModerationAction.ALLOW
    filtered_content: Optional[str] = None
    reason: str
    rule_ids: list[str] = Field(default_factory=list)


# ===========================================
# Reputation ledger
# ===========================================


class UserModerationStatus(BaseModel):
    """Per-user reputation record."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    warning_count: int = Field(0, ge=0)
    violation_count: int = Field(0, ge=0)
    last_violation: Optional[datetime] = None
    is_muted: bool = False
    mute_expiry: Optional[datetime] = None  # None while muted = indefinite
    is_banned: bool = False
    ban_expiry: Optional[datetime] = None  # None while banned = indefinite
    trust_score: int = Field(DEFAULT_TRUST_SCORE, ge=MIN_TRUST_SCORE, le=MAX_TRUST_SCORE)

    def is_mute_active(self, now: Optional[datetime] = None) -> bool:
        """Muted and the mute has not expired. The flag alone is not enough."""
        now = now or datetime.now(timezone.utc)
        return self.is_muted and (self.mute_expiry is None or self.mute_expiry > now)

    def is_ban_active(self, now: Optional[datetime] = None) -> bool:
        """Banned and the ban has not expired."""
        now = now or datetime.now(timezone.utc)
        return self.is_banned and (self.ban_expiry is None or self.ban_expiry > now)


# ===========================================
# Reports
# ===========================================


class ModerationReport(BaseModel):
    """A user-submitted flag against a specific message."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    message_id: str
    reporter_id: str
    reported_user_id: str
    reason: str
    category: ReportCategory
    description: Optional[str] = None
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    resolution: Optional[str] = None


# ===========================================
# Config
# ===========================================


class ModerationConfig(BaseModel):
    """Feature toggles. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    enable_profanity_filter: bool = True  # Run the profanity detector
    enable_spam_detection: bool = True  # Run the spam detector
    enable_harassment_detection: bool = True  # Run the harassment detector
    auto_moderation_enabled: bool = True  # Auto-resolve spam reports at intake
    strict_mode: bool = False  # No first-offense leniency
    custom_rules_enabled: bool = True  # Run the custom-rule detector
    reporting_enabled: bool = True  # Accept new reports
    appeal_process_enabled: bool = True  # Allow lift_restrictions()


# ===========================================
# Request Models
# ===========================================


class CheckMessageRequest(BaseModel):
    """Message handed over by the send path for an inline check."""

    sender_id: str
    text: str
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    recipient_id: Optional[str] = None


class SubmitReportRequest(BaseModel):
    """User report against a message."""

    message_id: str
    reporter_id: str
    reported_user_id: str
    reason: str = Field(..., min_length=1, max_length=REPORT_REASON_MAX_LENGTH)
    category: ReportCategory
    description: Optional[str] = Field(None, max_length=REPORT_DESCRIPTION_MAX_LENGTH)


# ===========================================
# Response Models
# ===========================================


class ReportCreatedResponse(BaseModel):
    """Acknowledgement for a submitted report."""

    report_id: str


class ReportsResponse(BaseModel):
    """List of reports."""

    reports: list[ModerationReport]
    total: int


class ReportStatsResponse(BaseModel):
    """Report counts per status and per category."""

    total: int
    by_status: dict[str, int]
    by_category: dict[str, int]


class RulesResponse(BaseModel):
    """Rule catalog listing."""

    rules: list[ModerationRule]
    total: int


class RuleCreatedResponse(BaseModel):
    """Acknowledgement for an added rule."""

    rule_id: str


# ===========================================
# Exception Classes
# ===========================================


class ModerationError(Exception):
    """Base exception for moderation errors."""

    pass


class InvalidRuleError(ModerationError):
    """Rule definition is malformed or its pattern is unsafe."""

    pass


class RuleNotFoundError(ModerationError):
    """No rule with this id."""

    pass


class BuiltinRuleError(ModerationError):
    """Built-in rules cannot be removed through the custom-rule path."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} is built-in and cannot be removed")


class ReportingDisabledError(ModerationError):
    """Report intake is switched off."""

    pass


class SelfReportError(ModerationError):
    """Cannot report yourself."""

    pass


class ReportNotFoundError(ModerationError):
    """No report with this id."""

    pass


class ReportStoreError(ModerationError):
    """The report store failed; the report was not recorded."""

    pass


class AppealsDisabledError(ModerationError):
    """Restrictions cannot be lifted while the appeal process is off."""

    pass


class InvalidConfigError(ModerationError):
    """Config update carried unknown keys or non-boolean values."""

    pass
