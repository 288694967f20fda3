"""Shared test fixtures for Jvala flare tracker tests."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("CONTEXT_PROVIDER", "none")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from jvala.core.storage.models import FlareEntry  # noqa: E402


def run_async(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def make_entry(
    timestamp: str | datetime = "2024-01-01T09:00:00+00:00",
    entry_type: str = "flare",
    **overrides,
) -> FlareEntry:
    """Create a test entry with sensible defaults."""
    defaults = dict(
        id="",
        user_id="user-1",
        timestamp=timestamp,
        entry_type=entry_type,
    )
    defaults.update(overrides)
    return FlareEntry(**defaults)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def flare_db():
    """Create an in-memory FlareDatabase for testing."""
    from jvala.core.storage.database import FlareDatabase

    db = FlareDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from jvala.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def flare_repository(flare_db, field_encryptor):
    """Create a FlareRepository backed by in-memory SQLite."""
    from jvala.core.storage.repository import FlareRepository

    return FlareRepository(flare_db, field_encryptor)


@pytest.fixture
def audit_logger(flare_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from jvala.core.audit.logger import AuditLogger

    return AuditLogger(flare_db)
