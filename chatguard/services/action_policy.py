"""
Action policy: turns an aggregated severity into an enforcement action.

Rules, first match wins:
1. critical                          -> block
2. high and trust score < 30         -> block
3. more than 5 prior violations      -> block if high, else filter
4. first offense (unless strict)     -> warn if high, filter if profanity, else allow
5. by severity                       -> high: filter, medium: filter if profanity
                                        else warn, low: allow
"""

import logging
from collections.abc import Collection
from datetime import datetime
from typing import Optional

from chatguard.core.constants import LOW_TRUST_BLOCK_THRESHOLD, REPEAT_OFFENDER_THRESHOLD
from chatguard.core.logging_config import moderation_extra
from chatguard.models.moderation import (
    ModerationAction,
    RuleType,
    Severity,
    UserModerationStatus,
)
from chatguard.services.reputation import ReputationLedger

logger = logging.getLogger(__name__)

PROFANITY = RuleType.PROFANITY.value


class ActionPolicy:
    """Decides the action and records the penalty on the sender's ledger."""

    def __init__(self, ledger: ReputationLedger) -> None:
        self._ledger = ledger

    def decide(
        self,
        severity: Severity,
        status: UserModerationStatus,
        violation_types: Collection[str],
        strict_mode: bool = False,
    ) -> ModerationAction:
        if severity == Severity.CRITICAL:
            return ModerationAction.BLOCK

        if severity == Severity.HIGH and status.trust_score < LOW_TRUST_BLOCK_THRESHOLD:
            return ModerationAction.BLOCK

        if status.violation_count > REPEAT_OFFENDER_THRESHOLD:
            return ModerationAction.BLOCK if severity == Severity.HIGH else ModerationAction.FILTER

        if status.violation_count == 0 and not strict_mode:
            if severity == Severity.HIGH:
                return ModerationAction.WARN
            if PROFANITY in violation_types:
                return ModerationAction.FILTER
            return ModerationAction.ALLOW

        if severity == Severity.HIGH:
            return ModerationAction.FILTER
        if severity == Severity.MEDIUM:
            return ModerationAction.FILTER if PROFANITY in violation_types else ModerationAction.WARN
        return ModerationAction.ALLOW

    def record_violation(
        self,
        user_id: str,
        severity: Severity,
        action: ModerationAction,
        now: Optional[datetime] = None,
    ) -> Optional[UserModerationStatus]:
        """
        Apply the violation penalty. Best-effort: any failure (store outage,
        unreadable stored record) is logged as a missed penalty and not
        retried; the caller's result stands.
        """
        try:
            return self._ledger.apply_violation_penalty(user_id, severity, action, now)
        except Exception as e:
            logger.warning(
                "missed-penalty: user=%s severity=%s action=%s error=%s",
                user_id,
                severity.value,
                action.value,
                e,
                extra=moderation_extra(user_id=user_id, severity=severity, action=action),
            )
            return None
