"""Moderation engine services."""

from chatguard.services.moderation_service import (
    ModerationService,
    create_moderation_service,
)

__all__ = [
    "ModerationService",
    "create_moderation_service",
]
