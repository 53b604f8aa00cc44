"""
Detection pipeline: runs one message through independent detectors.

Detectors:
- ProfanityDetector: fixed word patterns, severity by match count
- SpamDetector: structural heuristics plus sender trust score
- HarassmentDetector: threat keywords plus aggressive punctuation
- CustomRuleDetector: operator rules from the RuleCatalog

Each detector returns a DetectorFinding. A detector that is disabled is not
run at all; a detector that raises is logged and replaced by a neutral
finding, so evaluate() never raises on well-formed input.
"""

import logging
import re
from typing import Optional

from chatguard.core.constants import (
    CUSTOM_RULE_CONFIDENCE,
    HARASSMENT_CONFIDENCE_PER_KEYWORD,
    HARASSMENT_CRITICAL_CONFIDENCE,
    HARASSMENT_HIGH_CONFIDENCE,
    HARASSMENT_KEYWORDS,
    HARASSMENT_MAX_EXCLAMATIONS,
    HARASSMENT_MAX_QUESTIONS,
    HARASSMENT_PUNCTUATION_CONFIDENCE,
    HARASSMENT_RULE_ID,
    HARASSMENT_VIOLATION_CONFIDENCE,
    MAX_SCAN_CHARS,
    PROFANITY_CONFIDENCE_PER_PATTERN,
    PROFANITY_HIGH_COUNT,
    PROFANITY_MEDIUM_COUNT,
    PROFANITY_RULE_ID,
    SPAM_CONFIDENCE_PER_MATCH,
    SPAM_HIGH_CONFIDENCE,
    SPAM_LENGTH_CONFIDENCE,
    SPAM_LOW_TRUST_CONFIDENCE,
    SPAM_LOW_TRUST_THRESHOLD,
    SPAM_MAX_LENGTH,
    SPAM_MEDIUM_CONFIDENCE,
    SPAM_MIN_LENGTH,
    SPAM_MIN_URLS,
    SPAM_RULE_ID,
    SPAM_VIOLATION_CONFIDENCE,
)
from chatguard.core.logging_config import moderation_extra
from chatguard.models.moderation import (
    DetectorFinding,
    MessageContext,
    ModerationConfig,
    RuleType,
    Severity,
    UserModerationStatus,
)
from chatguard.services.aggregator import max_severity
from chatguard.services.rule_catalog import CatalogEntry, RuleCatalog

logger = logging.getLogger(__name__)

PROFANITY_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\b(damn|hell|crap)\b", re.IGNORECASE),
    re.compile(r"\b(stupid|idiot|moron)\b", re.IGNORECASE),
]

_REPEATED_CHARS = re.compile(r"(.)\1{4,}")
_CAPS_RUN = re.compile(r"[A-Z]{5,}")
_URL = re.compile(r"https?://[^\s]+")
_LONG_DIGITS = re.compile(r"\d{10,}")

NEUTRAL_FINDING = DetectorFinding()


class ProfanityDetector:
    name = RuleType.PROFANITY.value
    rule_id = PROFANITY_RULE_ID

    def detect(
        self,
        text: str,
        status: UserModerationStatus,
        context: Optional[MessageContext] = None,
    ) -> DetectorFinding:
        matches = 0
        confidence = 0.0
        for pattern in PROFANITY_PATTERNS:
            found = len(pattern.findall(text))
            if found:
                matches += found
                confidence += PROFANITY_CONFIDENCE_PER_PATTERN

        if matches == 0:
            return NEUTRAL_FINDING

        if matches > PROFANITY_HIGH_COUNT:
            severity = Severity.HIGH
        elif matches > PROFANITY_MEDIUM_COUNT:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        return DetectorFinding(
            is_violation=True,
            severity=severity,
            confidence=min(confidence, 1.0),
            violation_types=frozenset({self.name}),
            rule_ids=frozenset({self.rule_id}),
        )


class SpamDetector:
    name = RuleType.SPAM.value
    rule_id = SPAM_RULE_ID

    def detect(
        self,
        text: str,
        status: UserModerationStatus,
        context: Optional[MessageContext] = None,
    ) -> DetectorFinding:
        structural_hits = [
            _REPEATED_CHARS.search(text) is not None,
            _CAPS_RUN.search(text) is not None,
            len(_URL.findall(text)) >= SPAM_MIN_URLS,
            _LONG_DIGITS.search(text) is not None,
        ]
        matches = sum(structural_hits)
        confidence = matches * SPAM_CONFIDENCE_PER_MATCH

        if len(text) < SPAM_MIN_LENGTH or len(text) > SPAM_MAX_LENGTH:
            matches += 1
            confidence += SPAM_LENGTH_CONFIDENCE

        if status.trust_score < SPAM_LOW_TRUST_THRESHOLD:
            confidence += SPAM_LOW_TRUST_CONFIDENCE

        confidence = min(confidence, 1.0)
        if matches == 0 or confidence <= SPAM_VIOLATION_CONFIDENCE:
            return DetectorFinding(confidence=confidence)

        if confidence > SPAM_HIGH_CONFIDENCE:
            severity = Severity.HIGH
        elif confidence > SPAM_MEDIUM_CONFIDENCE:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        return DetectorFinding(
            is_violation=True,
            severity=severity,
            confidence=confidence,
            violation_types=frozenset({self.name}),
            rule_ids=frozenset({self.rule_id}),
        )


class HarassmentDetector:
    name = RuleType.HARASSMENT.value
    rule_id = HARASSMENT_RULE_ID

    def detect(
        self,
        text: str,
        status: UserModerationStatus,
        context: Optional[MessageContext] = None,
    ) -> DetectorFinding:
        lower_text = text.lower()
        hits = sum(1 for keyword in HARASSMENT_KEYWORDS if keyword in lower_text)
        confidence = hits * HARASSMENT_CONFIDENCE_PER_KEYWORD

        if (
            text.count("!") > HARASSMENT_MAX_EXCLAMATIONS
            or text.count("?") > HARASSMENT_MAX_QUESTIONS
        ):
            confidence += HARASSMENT_PUNCTUATION_CONFIDENCE

        confidence = min(confidence, 1.0)
        if hits == 0 or confidence <= HARASSMENT_VIOLATION_CONFIDENCE:
            return DetectorFinding(confidence=confidence)

        # No low tier: any confirmed hit is at least medium
        if confidence > HARASSMENT_CRITICAL_CONFIDENCE:
            severity = Severity.CRITICAL
        elif confidence > HARASSMENT_HIGH_CONFIDENCE:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return DetectorFinding(
            is_violation=True,
            severity=severity,
            confidence=confidence,
            violation_types=frozenset({self.name}),
            rule_ids=frozenset({self.rule_id}),
        )


class CustomRuleDetector:
    """
    Matches enabled operator rules from the catalog.

    Patterns run on the first MAX_SCAN_CHARS characters with a per-search
    timeout; keywords are matched against the whole message. A timed-out or
    failing pattern counts as "no match".
    """

    name = RuleType.CUSTOM.value

    def __init__(self, catalog: RuleCatalog, timeout_ms: int) -> None:
        self._catalog = catalog
        self._timeout = timeout_ms / 1000

    def detect(
        self,
        text: str,
        status: UserModerationStatus,
        context: Optional[MessageContext] = None,
    ) -> DetectorFinding:
        scan_text = text[:MAX_SCAN_CHARS]
        lower_text = text.lower()

        severity = Severity.LOW
        confidence = 0.0
        violation_types: set[str] = set()
        rule_ids: set[str] = set()

        for entry in self._catalog.enabled_custom_entries():
            if self._matches(entry, scan_text, lower_text):
                violation_types.add(entry.rule.type.value)
                rule_ids.add(entry.rule.id)
                severity = max_severity(severity, entry.rule.severity)
                confidence += CUSTOM_RULE_CONFIDENCE

        if not rule_ids:
            return NEUTRAL_FINDING

        return DetectorFinding(
            is_violation=True,
            severity=severity,
            confidence=min(confidence, 1.0),
            violation_types=frozenset(violation_types),
            rule_ids=frozenset(rule_ids),
        )

    def _matches(self, entry: CatalogEntry, scan_text: str, lower_text: str) -> bool:
        rule = entry.rule
        if entry.compiled is not None and self._pattern_matches(entry, scan_text):
            return True
        return any(keyword.lower() in lower_text for keyword in rule.keywords)

    def _pattern_matches(self, entry: CatalogEntry, scan_text: str) -> bool:
        try:
            return entry.compiled.search(scan_text, timeout=self._timeout) is not None
        except TimeoutError:
            logger.warning(
                "Custom rule pattern timed out after %.0fms, treating as no match: rule_id=%s",
                self._timeout * 1000,
                entry.rule.id,
                extra=moderation_extra(rule_id=entry.rule.id, detector=self.name),
            )
            return False
        except Exception:
            logger.warning(
                "Custom rule pattern failed: rule_id=%s",
                entry.rule.id,
                exc_info=True,
                extra=moderation_extra(rule_id=entry.rule.id, detector=self.name),
            )
            return False


class DetectionPipeline:
    """Runs every enabled detector over one message."""

    def __init__(self, catalog: RuleCatalog, rule_timeout_ms: int = 50) -> None:
        self._catalog = catalog
        self.profanity = ProfanityDetector()
        self.spam = SpamDetector()
        self.harassment = HarassmentDetector()
        self.custom = CustomRuleDetector(catalog, rule_timeout_ms)

    def _enabled_detectors(self, config: ModerationConfig) -> list:
        detectors = []
        if config.enable_profanity_filter and self._catalog.is_enabled(PROFANITY_RULE_ID):
            detectors.append(self.profanity)
        if config.enable_spam_detection and self._catalog.is_enabled(SPAM_RULE_ID):
            detectors.append(self.spam)
        if config.enable_harassment_detection and self._catalog.is_enabled(HARASSMENT_RULE_ID):
            detectors.append(self.harassment)
        if config.custom_rules_enabled:
            detectors.append(self.custom)
        return detectors

    def evaluate(
        self,
        text: str,
        status: UserModerationStatus,
        config: ModerationConfig,
        context: Optional[MessageContext] = None,
    ) -> dict[str, DetectorFinding]:
        """Return one finding per enabled detector, keyed by detector name."""
        findings: dict[str, DetectorFinding] = {}
        for detector in self._enabled_detectors(config):
            try:
                findings[detector.name] = detector.detect(text, status, context)
            except Exception:
                logger.warning(
                    "Detector %s failed for user=%s, treating as no violation",
                    detector.name,
                    status.user_id,
                    exc_info=True,
                    extra=moderation_extra(user_id=status.user_id, detector=detector.name),
                )
                findings[detector.name] = NEUTRAL_FINDING
        return findings
