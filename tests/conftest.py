"""
Shared pytest fixtures for the scan notifier tests.

Fixture data lives in ./data:
- pet-001 Rex     -> user-001 Alice (emailAddress)
- pet-002 Mochi   -> user-002 Ben (legacy ``email`` field)
- pet-003 Biscuit -> no ownerID
- pet-004 Luna    -> user-999 (does not exist)
- pet-005 Pepper  -> user-003 Carla (no email)
- pet-006 (no name) -> user-004 (no fullName)
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tagscan.config import TagScanSettings
from tagscan.data_store import InMemoryDocumentStore
from tagscan.notifier import ScanNotifier, build_notifier
from tagscan.transports import ConsoleTransport


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def data_dir() -> Path:
    """Path to the fixture data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def store(data_dir: Path) -> InMemoryDocumentStore:
    """
    Fresh store for each test.

    Uses the real JSON fixtures but a new instance, so scan events written
    by one test are not seen by another.
    """
    return InMemoryDocumentStore(data_dir=data_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def transport() -> ConsoleTransport:
    """Fresh console transport that records what it was asked to send."""
    return ConsoleTransport()


@pytest.fixture
def settings() -> TagScanSettings:
    """Default settings, ignoring any .env file in the working directory."""
    return TagScanSettings(_env_file=None, email_transport="console", throttle_minutes=30)


@pytest.fixture
def notifier(settings, store, transport, clock) -> ScanNotifier:
    return build_notifier(settings, store=store, transport=transport, clock=clock)


# =============================================================================
# Pet Fixtures
# =============================================================================

@pytest.fixture
def rex_pet_id() -> str:
    """Rex, owned by Alice (alice.santos@example.com)."""
    return "pet-001"


@pytest.fixture
def mochi_pet_id() -> str:
    """Mochi, owned by Ben whose address is in the legacy ``email`` field."""
    return "pet-002"
