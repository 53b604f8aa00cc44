"""
Logging setup for the moderation engine.

Production output is one JSON object per line; debug output is plain text.
Detector, ledger and report warnings attach their ids with moderation_extra()
so a missed penalty or a timed-out rule can be found by user, rule or report.
Call setup_logging() once at app startup (in lifespan).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from chatguard.core.config import get_settings

MODERATION_FIELDS = ("user_id", "rule_id", "detector", "report_id", "severity", "action")


def moderation_extra(**fields: Any) -> dict:
    """
    Build the `extra=` mapping for a moderation log call.

    Only MODERATION_FIELDS are accepted; None values are dropped and enums
    are logged by value.
    """
    unknown = set(fields) - set(MODERATION_FIELDS)
    if unknown:
        raise ValueError(f"Unknown moderation log fields: {sorted(unknown)}")
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in fields.items()
        if value is not None
    }


class CorrelationIDFilter(logging.Filter):
    """
    Stamps each record with the request's correlation ID.

    The ID comes from the ContextVar set by CorrelationIDMiddleware; outside a
    request it is "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Import here to avoid circular imports
        from chatguard.core.middleware import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with moderation ids at the top level."""

    def __init__(self, service: str = "chatguard") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            log_entry["correlation_id"] = correlation_id
        for key in MODERATION_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        return json.dumps(log_entry, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Install a single stdout handler on the root logger."""
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else "INFO")

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIDFilter())

    if settings.debug:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = JSONFormatter()

    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in ("uvicorn.access", "httpx", "httpcore", "hpack", "h2", "h11"):
        logging.getLogger(name).setLevel(logging.WARNING)
