import os
import sys
from pathlib import Path

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DATABASE_URL = "sqlite://"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

from recordkit.config import Settings  # noqa: E402
from recordkit.database import Base  # noqa: E402
from recordkit.services import EventsManager, RecordManager  # noqa: E402

import fixture_models  # noqa: E402


def _create_testing_engine():
    return create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(scope="session")
def engine():
    engine = _create_testing_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()

    # Every test starts from the same robots, parts, customers and personnes rows.
    fixture_models.seed(session)
    session.commit()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(virtual_foreign_keys=True, not_null_validations=True)


@pytest.fixture()
def events() -> EventsManager:
    return EventsManager()


@pytest.fixture()
def manager(db_session: Session, events: EventsManager, settings: Settings) -> RecordManager:
    return RecordManager(db_session, events=events, settings=settings)
