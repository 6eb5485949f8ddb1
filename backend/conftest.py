"""Root conftest: load test environment variables, configure structlog, and provide store fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import structlog
from dotenv import load_dotenv

from shared.dal.models import User
from shared.db import Database, SqliteStatsStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Configure structlog to route through stdlib logging so caplog works in tests.
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


class FakeClock:
    """Deterministic clock for services; each call returns the current instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "stats.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def store(db: Database) -> SqliteStatsStore:
    return SqliteStatsStore(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_user(store: SqliteStatsStore) -> Callable[..., Awaitable[User]]:
    async def _make_user(user_id: str = "u1", username: str = "alice") -> User:
        user = User(user_id=user_id, username=username)
        async with store.transaction() as tx:
            await tx.create_user(user)
        return user

    return _make_user
