"""Merges per-detector findings into one overall finding."""

from typing import Iterable

from chatguard.models.moderation import DetectorFinding, Severity


def max_severity(current: Severity, new: Severity) -> Severity:
    """Higher of two severities under low < medium < high < critical."""
    return new if new.rank > current.rank else current


class SeverityAggregator:
    """
    Merge findings from the detectors that fired.

    Only violating findings contribute. Severity and confidence take the
    maximum, violation types and rule ids the union, so the merge is
    associative and independent of detector order.
    """

    def merge(self, findings: Iterable[DetectorFinding]) -> DetectorFinding:
        firing = [f for f in findings if f.is_violation]
        if not firing:
            return DetectorFinding()

        severity = Severity.LOW
        confidence = 0.0
        violation_types: set[str] = set()
        rule_ids: set[str] = set()
        for finding in firing:
            severity = max_severity(severity, finding.severity)
            confidence = max(confidence, finding.confidence)
            violation_types |= finding.violation_types
            rule_ids |= finding.rule_ids

        return DetectorFinding(
            is_violation=True,
            severity=severity,
            confidence=min(confidence, 1.0),
            violation_types=frozenset(violation_types),
            rule_ids=frozenset(rule_ids),
        )
