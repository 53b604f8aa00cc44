"""Redacts profanity spans from a message body."""

import re

from chatguard.core.constants import MASK_CHARACTER
from chatguard.services.detection import PROFANITY_PATTERNS


class ContentFilter:
    """Replace every profanity match with an equal-length mask run."""

    def __init__(self, mask: str = MASK_CHARACTER) -> None:
        self._mask = mask

    def _mask_match(self, match: re.Match[str]) -> str:
        return self._mask * len(match.group(0))

    def redact(self, text: str) -> str:
        for pattern in PROFANITY_PATTERNS:
            text = pattern.sub(self._mask_match, text)
        return text
