"""Shared pytest fixtures for test suite."""

from typing import Optional
from unittest.mock import MagicMock

import pytest

from chatguard.models.moderation import ModerationConfig, UserModerationStatus
from chatguard.services.moderation_service import ModerationService
from chatguard.stores.memory import InMemoryRecordStore, InMemoryReportStore

# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def ledger_store() -> InMemoryRecordStore:
    """Empty in-memory reputation store."""
    return InMemoryRecordStore()


@pytest.fixture
def report_store() -> InMemoryReportStore:
    """Empty in-memory report store."""
    return InMemoryReportStore()


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Mock Supabase client."""
    return MagicMock()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Mock sync Redis client with a context-managed pipeline."""
    redis = MagicMock()
    pipe = MagicMock()
    redis.pipeline.return_value.__enter__.return_value = pipe
    redis.pipeline.return_value.__exit__.return_value = False
    redis.pipe = pipe
    return redis


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def service(ledger_store, report_store):
    """ModerationService on in-memory stores with default toggles."""
    return ModerationService(ledger_store=ledger_store, report_store=report_store)


@pytest.fixture
def make_service(ledger_store, report_store):
    """Factory for a ModerationService with custom toggles."""

    def _make(config: Optional[ModerationConfig] = None) -> ModerationService:
        return ModerationService(
            ledger_store=ledger_store, report_store=report_store, config=config
        )

    return _make


# =============================================================================
# Helpers
# =============================================================================


def seed_status(store: InMemoryRecordStore, status: UserModerationStatus) -> None:
    """Write a status record directly, bypassing the ledger rules."""
    store.transactional_update(status.user_id, lambda _: status.model_dump(mode="json"))


@pytest.fixture
def seed():
    """Expose seed_status to tests without importing conftest."""
    return seed_status
