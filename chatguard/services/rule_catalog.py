"""
Rule catalog for built-in and operator-added moderation rules.

Handles:
- Seeding the three built-in detector rules at startup
- Adding custom rules (validated and compiled once, at add time)
- Removing custom rules (built-ins are protected)
- Enabling/disabling any rule
- Listing rules for the detectors and the admin API

Reads vastly outnumber writes, so the catalog is copy-on-write: writers build
a new dict under a lock and swap the reference; readers take the current
reference without locking.
"""

import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import NamedTuple, Optional

import regex

from chatguard.core.constants import (
    HARASSMENT_RULE_ID,
    MAX_RULE_PATTERN_GROUPS,
    MAX_RULE_PATTERN_LENGTH,
    PROFANITY_RULE_ID,
    SPAM_RULE_ID,
)
from chatguard.models.moderation import (
    BuiltinRuleError,
    InvalidRuleError,
    ModerationAction,
    ModerationRule,
    RuleCreate,
    RuleNotFoundError,
    RuleType,
    Severity,
)

logger = logging.getLogger(__name__)

# A quantified group that itself contains a quantifier, e.g. (a+)+ or (.*)*
_NESTED_QUANTIFIER = re.compile(r"\((?:[^)(]|\([^)(]*\))*[+*][^)]*\)\s*[+*{]")


class CatalogEntry(NamedTuple):
    rule: ModerationRule
    compiled: Optional[regex.Pattern]


def compile_rule_pattern(pattern: str) -> regex.Pattern:
    """
    Validate and compile an operator-supplied pattern.

    Rejects patterns that are too long, have too many groups, or nest
    quantifiers (the usual catastrophic-backtracking shapes).

    Raises:
        InvalidRuleError: If the pattern is unsafe or does not compile
    """
    if len(pattern) > MAX_RULE_PATTERN_LENGTH:
        raise InvalidRuleError(
            f"Pattern is {len(pattern)} characters, maximum is {MAX_RULE_PATTERN_LENGTH}"
        )
    if pattern.count("(") - pattern.count("\\(") > MAX_RULE_PATTERN_GROUPS:
        raise InvalidRuleError(f"Pattern has more than {MAX_RULE_PATTERN_GROUPS} groups")
    if _NESTED_QUANTIFIER.search(pattern):
        raise InvalidRuleError("Pattern nests quantifiers and could backtrack catastrophically")

    try:
        return regex.compile(pattern, regex.IGNORECASE)
    except regex.error as e:
        raise InvalidRuleError(f"Invalid regular expression: {e}") from e


def _builtin_rules(now: datetime) -> list[ModerationRule]:
    return [
        ModerationRule(
            id=PROFANITY_RULE_ID,
            name="Profanity Filter",
            type=RuleType.PROFANITY,
            severity=Severity.MEDIUM,
            action=ModerationAction.FILTER,
            builtin=True,
            created_at=now,
            updated_at=now,
        ),
        ModerationRule(
            id=SPAM_RULE_ID,
            name="Spam Detection",
            type=RuleType.SPAM,
            severity=Severity.HIGH,
            action=ModerationAction.BLOCK,
            builtin=True,
            created_at=now,
            updated_at=now,
        ),
        ModerationRule(
            id=HARASSMENT_RULE_ID,
            name="Harassment Detection",
            type=RuleType.HARASSMENT,
            severity=Severity.CRITICAL,
            action=ModerationAction.BLOCK,
            builtin=True,
            created_at=now,
            updated_at=now,
        ),
    ]


class RuleCatalog:
    """Copy-on-write map of rule id -> rule (+ compiled pattern)."""

    def __init__(self, seed_builtins: bool = True) -> None:
        self._write_lock = threading.Lock()
        entries: dict[str, CatalogEntry] = {}
        if seed_builtins:
            now = datetime.now(timezone.utc)
            for rule in _builtin_rules(now):
                entries[rule.id] = CatalogEntry(rule, None)
        self._entries = entries

    # =========================================================================
    # Reads (lock-free)
    # =========================================================================

    def get(self, rule_id: str) -> Optional[ModerationRule]:
        entry = self._entries.get(rule_id)
        return entry.rule if entry else None

    def is_enabled(self, rule_id: str) -> bool:
        """Whether a rule exists and is enabled."""
        entry = self._entries.get(rule_id)
        return entry is not None and entry.rule.enabled

    def list_rules(self, include_disabled: bool = True) -> list[ModerationRule]:
        rules = [entry.rule for entry in self._entries.values()]
        if not include_disabled:
            rules = [r for r in rules if r.enabled]
        return rules

    def enabled_custom_entries(self) -> list[CatalogEntry]:
        """Snapshot of enabled operator-added rules for the custom detector."""
        return [
            entry
            for entry in self._entries.values()
            if entry.rule.enabled and not entry.rule.builtin
        ]

    # =========================================================================
    # Writes (rare, administrative)
    # =========================================================================

    def add(self, rule_create: RuleCreate) -> ModerationRule:
        """
        Add a custom rule.

        Raises:
            InvalidRuleError: If the pattern is unsafe or does not compile
        """
        compiled = compile_rule_pattern(rule_create.pattern) if rule_create.pattern else None

        now = datetime.now(timezone.utc)
        rule = ModerationRule(
            id=f"rule_{uuid.uuid4().hex[:12]}",
            name=rule_create.name,
            type=rule_create.type,
            severity=rule_create.severity,
            action=rule_create.action,
            pattern=rule_create.pattern,
            keywords=list(rule_create.keywords),
            enabled=rule_create.enabled,
            builtin=False,
            created_at=now,
            updated_at=now,
        )

        with self._write_lock:
            entries = dict(self._entries)
            entries[rule.id] = CatalogEntry(rule, compiled)
            self._entries = entries

        logger.info("Custom rule added: id=%s name=%s type=%s", rule.id, rule.name, rule.type.value)
        return rule

    def remove(self, rule_id: str) -> bool:
        """
        Remove a custom rule. Returns False if no such rule.

        Raises:
            BuiltinRuleError: If the rule is built-in
        """
        with self._write_lock:
            entry = self._entries.get(rule_id)
            if entry is None:
                return False
            if entry.rule.builtin:
                raise BuiltinRuleError(rule_id)
            entries = dict(self._entries)
            del entries[rule_id]
            self._entries = entries

        logger.info("Custom rule removed: id=%s", rule_id)
        return True

    def set_enabled(self, rule_id: str, enabled: bool) -> ModerationRule:
        """
        Enable or disable any rule, built-in rules included.

        Raises:
            RuleNotFoundError: If no such rule
        """
        with self._write_lock:
            entry = self._entries.get(rule_id)
            if entry is None:
                raise RuleNotFoundError(f"Rule {rule_id} not found")
            rule = entry.rule.model_copy(
                update={"enabled": enabled, "updated_at": datetime.now(timezone.utc)}
            )
            entries = dict(self._entries)
            entries[rule_id] = CatalogEntry(rule, entry.compiled)
            self._entries = entries

        logger.info("Rule %s %s", rule_id, "enabled" if enabled else "disabled")
        return rule
