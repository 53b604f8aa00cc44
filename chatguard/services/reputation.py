"""
Reputation ledger: per-user trust score, counters and mute/ban state.

The ledger is the only persistent, mutable state in the engine. Every write
goes through RecordStore.transactional_update with a pure mutator, so two
messages from the same sender racing each other cannot lose a penalty, while
different users never contend.

Expired mute/ban flags are left in place on read (callers check expiry via
is_mute_active/is_ban_active) and cleared on the user's next write.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from chatguard.core.constants import (
    BAN_DURATION_DAYS,
    BAN_VIOLATION_THRESHOLD,
    MAX_TRUST_SCORE,
    MIN_TRUST_SCORE,
    MUTE_DURATION_HOURS,
    MUTE_VIOLATION_THRESHOLD,
    REPORT_TRUST_PENALTY,
    TRUST_PENALTY_CRITICAL,
    TRUST_PENALTY_HIGH,
    TRUST_PENALTY_LOW,
    TRUST_PENALTY_MEDIUM,
)
from chatguard.core.logging_config import moderation_extra
from chatguard.models.moderation import ModerationAction, Severity, UserModerationStatus
from chatguard.stores.base import Record, RecordStore

logger = logging.getLogger(__name__)

TRUST_PENALTIES = {
    Severity.CRITICAL: TRUST_PENALTY_CRITICAL,
    Severity.HIGH: TRUST_PENALTY_HIGH,
    Severity.MEDIUM: TRUST_PENALTY_MEDIUM,
    Severity.LOW: TRUST_PENALTY_LOW,
}


def clamp_trust(score: int) -> int:
    return max(MIN_TRUST_SCORE, min(MAX_TRUST_SCORE, score))


def default_status(user_id: str) -> UserModerationStatus:
    return UserModerationStatus(user_id=user_id)


def _clear_expired_restrictions(status: UserModerationStatus, now: datetime) -> None:
    if status.is_muted and status.mute_expiry is not None and status.mute_expiry <= now:
        status.is_muted = False
        status.mute_expiry = None
    if status.is_banned and status.ban_expiry is not None and status.ban_expiry <= now:
        status.is_banned = False
        status.ban_expiry = None


def apply_violation(
    status: UserModerationStatus,
    severity: Severity,
    action: Optional[ModerationAction],
    now: datetime,
) -> UserModerationStatus:
    """
    Apply a confirmed violation to a status record in place.

    - trust score drops by the severity tier (clamped at 0)
    - violation count +1, last violation = now
    - block with more than 3 violations -> 24h mute
    - more than 10 violations, or critical severity -> 7 day ban
    """
    status.trust_score = clamp_trust(status.trust_score - TRUST_PENALTIES[severity])
    status.violation_count += 1
    status.last_violation = now

    if action == ModerationAction.BLOCK and status.violation_count > MUTE_VIOLATION_THRESHOLD:
        status.is_muted = True
        status.mute_expiry = now + timedelta(hours=MUTE_DURATION_HOURS)

    if status.violation_count > BAN_VIOLATION_THRESHOLD or severity == Severity.CRITICAL:
        status.is_banned = True
        status.ban_expiry = now + timedelta(days=BAN_DURATION_DAYS)

    return status


def apply_report_warning(status: UserModerationStatus) -> UserModerationStatus:
    """Warning from an auto-resolved report: warning count +1, trust -5."""
    status.warning_count += 1
    status.trust_score = clamp_trust(status.trust_score - REPORT_TRUST_PENALTY)
    return status


class ReputationLedger:
    """Reads and atomically updates UserModerationStatus records."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def get(self, user_id: str) -> UserModerationStatus:
        """
        Get a user's status, or a default record if none exists.

        Does not write: the record is only persisted on its first mutation.

        Raises:
            StoreError: If the backend read fails
        """
        record = self._store.get(user_id)
        if record is None:
            return default_status(user_id)
        return UserModerationStatus.model_validate(record)

    def _update(
        self,
        user_id: str,
        change: Callable[[UserModerationStatus, datetime], UserModerationStatus],
        now: Optional[datetime] = None,
    ) -> UserModerationStatus:
        now = now or datetime.now(timezone.utc)

        def mutator(current: Optional[Record]) -> Record:
            status = (
                UserModerationStatus.model_validate(current)
                if current is not None
                else default_status(user_id)
            )
            _clear_expired_restrictions(status, now)
            status = change(status, now)
            return status.model_dump(mode="json")

        stored = self._store.transactional_update(user_id, mutator)
        return UserModerationStatus.model_validate(stored)

    def apply_violation_penalty(
        self,
        user_id: str,
        severity: Severity,
        action: Optional[ModerationAction] = None,
        now: Optional[datetime] = None,
    ) -> UserModerationStatus:
        """
        Record a confirmed violation for user_id.

        Raises:
            StoreError: If the backend write fails or keeps conflicting
        """
        status = self._update(
            user_id,
            lambda status, ts: apply_violation(status, severity, action, ts),
            now,
        )
        logger.info(
            "Violation recorded: user=%s severity=%s violations=%d trust=%d muted=%s banned=%s",
            user_id,
            severity.value,
            status.violation_count,
            status.trust_score,
            status.is_muted,
            status.is_banned,
            extra=moderation_extra(user_id=user_id, severity=severity, action=action),
        )
        return status

    def apply_report_warning(
        self, user_id: str, now: Optional[datetime] = None
    ) -> UserModerationStatus:
        """
        Record a warning from an auto-resolved report.

        Raises:
            StoreError: If the backend write fails or keeps conflicting
        """
        status = self._update(user_id, lambda status, ts: apply_report_warning(status), now)
        logger.info(
            "Report warning recorded: user=%s warnings=%d trust=%d",
            user_id,
            status.warning_count,
            status.trust_score,
            extra=moderation_extra(user_id=user_id),
        )
        return status

    def lift_restrictions(self, user_id: str, now: Optional[datetime] = None) -> UserModerationStatus:
        """Administrative override: clear mute and ban state."""

        def lift(status: UserModerationStatus, ts: datetime) -> UserModerationStatus:
            status.is_muted = False
            status.mute_expiry = None
            status.is_banned = False
            status.ban_expiry = None
            return status

        status = self._update(user_id, lift, now)
        logger.info(
            "Restrictions lifted: user=%s", user_id, extra=moderation_extra(user_id=user_id)
        )
        return status
