from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from polyorm.config import RegistryConfig, configure, reset_config
from tests.models import REGISTRY, Base


@pytest.fixture
def db_engine():
    """Create a fresh in-memory SQLite database with the test schema for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Create a thread-safe scoped session factory bound to the test engine."""
    factory = scoped_session(sessionmaker(bind=db_engine))
    yield factory
    factory.remove()


@pytest.fixture
def db_session(session_factory) -> Generator[Session, Any, None]:
    """Create a new database session for each test.

    The session is automatically rolled back after the test to maintain isolation.
    """
    session = session_factory()

    yield session

    session.rollback()


@pytest.fixture(autouse=True)
def poly_config(session_factory) -> Generator[RegistryConfig, Any, None]:
    """Register the test registry for every test and forget it afterwards."""
    config = RegistryConfig(registry=dict(REGISTRY), session_factory=session_factory)
    configure(config)

    yield config

    reset_config()


class QueryCounter:
    """Collects the SELECT statements an engine executes."""

    def __init__(self):
        self.statements: list[str] = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            self.statements.append(statement)

    @property
    def count(self) -> int:
        return len(self.statements)

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture
def query_counter(db_engine) -> Generator[QueryCounter, Any, None]:
    """Count SELECT statements issued against the test engine."""
    counter = QueryCounter()
    event.listen(db_engine, "before_cursor_execute", counter)

    yield counter

    event.remove(db_engine, "before_cursor_execute", counter)
