"""Unit tests for ConfigStore."""

import pytest

from chatguard.models.moderation import InvalidConfigError, ModerationConfig
from chatguard.services.config_store import ConfigStore


class TestConfigStore:
    @pytest.mark.unit
    def test_defaults(self) -> None:
        config = ConfigStore().get()

        assert config.enable_profanity_filter
        assert config.reporting_enabled
        assert not config.strict_mode

    @pytest.mark.unit
    def test_partial_update_merges(self) -> None:
        store = ConfigStore()
        store.update({"strict_mode": True})

        config = store.get()
        assert config.strict_mode
        assert config.enable_spam_detection

    @pytest.mark.unit
    def test_unknown_key_rejected(self) -> None:
        store = ConfigStore()

        with pytest.raises(InvalidConfigError):
            store.update({"enable_everything": True})

        assert store.get() == ModerationConfig()

    @pytest.mark.unit
    def test_non_boolean_rejected(self) -> None:
        store = ConfigStore()

        with pytest.raises(InvalidConfigError):
            store.update({"strict_mode": "yes"})

        assert not store.get().strict_mode

    @pytest.mark.unit
    def test_get_returns_copy(self) -> None:
        store = ConfigStore()
        config = store.get()
        config.strict_mode = True

        assert not store.get().strict_mode
