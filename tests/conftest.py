from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from forgetmenot.application.review_service import ReviewService
from forgetmenot.infrastructure.persistence.database import create_engine, init_database
from forgetmenot.infrastructure.persistence.memory_repository import InMemoryNoteRepository
from forgetmenot.infrastructure.persistence.sqlalchemy_repository import (
    SqlAlchemyNoteRepository,
)

# Mid-afternoon, so start-of-day truncation is always visible
NOW = datetime(2024, 3, 10, 15, 30, 45, 123456)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest_asyncio.fixture
async def sql_repository(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}")
    await init_database(engine)
    yield SqlAlchemyNoteRepository(engine)
    await engine.dispose()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def repository(request, tmp_path):
    """Every repository implementation, so service tests run against both."""
    if request.param == "memory":
        yield InMemoryNoteRepository()
        return

    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}")
    await init_database(engine)
    yield SqlAlchemyNoteRepository(engine)
    await engine.dispose()


@pytest.fixture
def service(repository, clock):
    return ReviewService(repository, clock=clock)

