"""
Moderation engine constants.

Centralizes detector thresholds, reputation penalties and restriction
durations used across the engine.
"""

# Reputation ledger
DEFAULT_TRUST_SCORE = 100
MIN_TRUST_SCORE = 0
MAX_TRUST_SCORE = 100
TRUST_PENALTY_CRITICAL = 20
TRUST_PENALTY_HIGH = 15
TRUST_PENALTY_MEDIUM = 10
TRUST_PENALTY_LOW = 5
REPORT_TRUST_PENALTY = 5  # Auto-resolved spam report

# Restrictions
MUTE_DURATION_HOURS = 24
BAN_DURATION_DAYS = 7
MUTE_VIOLATION_THRESHOLD = 3  # Block + more than 3 violations -> mute
BAN_VIOLATION_THRESHOLD = 10  # More than 10 violations -> ban

# Action policy
LOW_TRUST_BLOCK_THRESHOLD = 30  # High severity below this trust -> block
REPEAT_OFFENDER_THRESHOLD = 5  # More than 5 violations -> repeat offender

# Profanity detector
PROFANITY_CONFIDENCE_PER_PATTERN = 0.3
PROFANITY_HIGH_COUNT = 3  # More than 3 matches -> high
PROFANITY_MEDIUM_COUNT = 1  # More than 1 match -> medium

# Spam detector
SPAM_CONFIDENCE_PER_MATCH = 0.25
SPAM_LENGTH_CONFIDENCE = 0.2
SPAM_LOW_TRUST_CONFIDENCE = 0.3
SPAM_LOW_TRUST_THRESHOLD = 50
SPAM_MIN_LENGTH = 3
SPAM_MAX_LENGTH = 2000
SPAM_MIN_URLS = 3
SPAM_VIOLATION_CONFIDENCE = 0.5
SPAM_HIGH_CONFIDENCE = 0.8
SPAM_MEDIUM_CONFIDENCE = 0.6

# Harassment detector
HARASSMENT_KEYWORDS = [
    "hate",
    "kill",
    "die",
    "threat",
    "hurt",
    "violence",
    "stalk",
    "follow",
    "watch",
    "find you",
]
HARASSMENT_CONFIDENCE_PER_KEYWORD = 0.4
HARASSMENT_PUNCTUATION_CONFIDENCE = 0.2
HARASSMENT_MAX_EXCLAMATIONS = 3
HARASSMENT_MAX_QUESTIONS = 5
HARASSMENT_VIOLATION_CONFIDENCE = 0.4
HARASSMENT_CRITICAL_CONFIDENCE = 0.8
HARASSMENT_HIGH_CONFIDENCE = 0.6

# Custom rules
CUSTOM_RULE_CONFIDENCE = 0.5
MAX_RULE_PATTERN_LENGTH = 500
MAX_RULE_PATTERN_GROUPS = 20
MAX_RULE_KEYWORDS = 200
MAX_SCAN_CHARS = 10000
RULE_NAME_MAX_LENGTH = 100

# Content filter
MASK_CHARACTER = "*"

# Reports
REPORT_REASON_MAX_LENGTH = 500
REPORT_DESCRIPTION_MAX_LENGTH = 1000
SPAM_REPORT_RESOLUTION = "Auto-resolved: Spam detected and user warned"

# Built-in rule ids
PROFANITY_RULE_ID = "profanity_filter"
SPAM_RULE_ID = "spam_detection"
HARASSMENT_RULE_ID = "harassment_detection"
