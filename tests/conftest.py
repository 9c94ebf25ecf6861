"""
Pytest fixtures for the Ticketlog test suite.
Everything runs against a temporary data directory with its own SQLite file;
the clock is a FakeClock so timer and date-range tests are deterministic.
"""
from pathlib import Path

import pytest

from ticketlog.models import TimeEntry
from ticketlog.server import app as flask_app
from ticketlog.storage import LocalEntryStore

# 2026-03-10 12:00:00 UTC
BASE_MS = 1_773_144_000_000


class FakeClock:
    """Callable clock returning epoch milliseconds; advance it explicitly."""

    def __init__(self, now_ms: int = BASE_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


def make_entry(ticket_id: str, minutes: int, timestamp: int = BASE_MS, description: str = "Work", entry_id: str = None) -> TimeEntry:
    return TimeEntry(
        id=entry_id or f"{ticket_id}-{timestamp}-{minutes}",
        ticket_id=ticket_id,
        description=description,
        duration_minutes=minutes,
        timestamp=timestamp,
    )


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Data directory for timer state and the database."""
    return tmp_path / "ticketlog-home"


@pytest.fixture
def db_path(home: Path) -> Path:
    return home / "ticketlog.db"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def local_store(db_path: Path) -> LocalEntryStore:
    return LocalEntryStore(db_path)


@pytest.fixture
def client(db_path: Path):
    """Flask test client bound to the temporary database."""
    flask_app.config.update(TESTING=True, DB_PATH=str(db_path))
    with flask_app.test_client() as test_client:
        yield test_client
    flask_app.config["DB_PATH"] = None
