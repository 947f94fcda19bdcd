"""Pytest configuration to ensure the `src` package layout is importable.

This adds the `src/` directory to `sys.path` so tests can import the
`hearthstead` package (e.g., `from hearthstead.api.app import create_app`)
without requiring an editable install in CI. It also provides the in-memory
database fixtures shared by the service tests.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hearthstead.models import Base, Player  # noqa: E402
from hearthstead.services.locking import SubjectLocks  # noqa: E402

FIXED_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=UTC)


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create a new database session for testing."""
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def locks():
    return SubjectLocks()


@pytest.fixture
def clock():
    """Mutable clock: tests move time by assigning ``clock.now``."""

    class Clock:
        now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return Clock()


@pytest.fixture
def make_player(session):
    """Factory creating committed players with sensible defaults."""
    counter = {"n": 0}

    def factory(**fields) -> Player:
        counter["n"] += 1
        fields.setdefault("username", f"player{counter['n']}")
        player = Player(**fields)
        session.add(player)
        session.commit()
        return player

    return factory
