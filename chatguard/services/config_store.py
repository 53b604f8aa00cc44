"""Process-wide moderation toggles."""

import logging
import threading
from typing import Any, Optional

from pydantic import ValidationError

from chatguard.models.moderation import InvalidConfigError, ModerationConfig

logger = logging.getLogger(__name__)


class ConfigStore:
    """
    Holds the current ModerationConfig.

    The config object is immutable from the readers' point of view: updates
    validate a merged copy and swap the reference, so a detection call always
    sees one consistent set of toggles.
    """

    def __init__(self, config: Optional[ModerationConfig] = None) -> None:
        self._config = config or ModerationConfig()
        self._lock = threading.Lock()

    def get(self) -> ModerationConfig:
        return self._config.model_copy()

    def update(self, changes: dict[str, Any]) -> ModerationConfig:
        """
        Merge a partial update into the current config.

        Raises:
            InvalidConfigError: On unknown keys or invalid values (config unchanged)
        """
        with self._lock:
            merged = {**self._config.model_dump(), **changes}
            try:
                new_config = ModerationConfig.model_validate(merged, strict=True)
            except ValidationError as e:
                raise InvalidConfigError(str(e)) from e
            self._config = new_config

        logger.info("Moderation config updated: %s", sorted(changes))
        return new_config.model_copy()
