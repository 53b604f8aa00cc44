"""Message content-moderation and user-reputation engine."""

__version__ = "0.1.0"
