import os
import sys
from typing import Generator

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# Load environment variables from .env file
load_dotenv()

# Keep the import-time engine off Postgres during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from storeops.db.base import Base  # noqa: E402
from storeops.utils.resilience.circuit_breaker.registry import (  # noqa: E402
    BreakerRegistry,
    breaker_registry,
)
from storeops.utils.resilience.dead_letter.queue import DeadLetterQueue  # noqa: E402


class FakeClock:
    """Monotonic clock the tests advance by hand (seconds, like time.monotonic)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


# File-backed SQLite: DLQ calls run in worker threads
@pytest.fixture(scope="function")
def db_engine(tmp_path) -> Generator:
    """Yield a SQLAlchemy engine with the schema created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'dlq.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine: Engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def dlq(session_factory) -> DeadLetterQueue:
    return DeadLetterQueue(session_factory=session_factory, enabled=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> BreakerRegistry:
    return BreakerRegistry(overrides={}, clock=clock)


@pytest.fixture(autouse=True)
def _fresh_breaker_registry() -> Generator:
    breaker_registry.clear()
    yield
    breaker_registry.clear()
