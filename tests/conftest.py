import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from competition_scheduler.database import init_db
from competition_scheduler.services.schedule_repository import SqlModelScheduleRepository
from tests.helpers import RecordingPublisher

TEST_DATABASE_URL = "sqlite:///:memory:"


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(name="engine")
def engine_fixture():
    """Fresh in-memory database per test; StaticPool so every session shares it."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="repository")
def repository_fixture(engine):
    return SqlModelScheduleRepository(engine)


@pytest.fixture(name="publisher")
def publisher_fixture():
    return RecordingPublisher()
