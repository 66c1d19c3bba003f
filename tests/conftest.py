"""Shared test fixtures."""
from datetime import datetime
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from intake.models.intake import IntakeRecord, Task  # noqa: F401
from intake.models.sync import SyncLog  # noqa: F401
from intake.models.user import User


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="coordinator")
def coordinator_fixture(engine) -> User:
    """A volunteer linked to a platform account."""
    user = User(
        email="coordinator@example.org",
        first_name="Casey",
        role="volunteer",
        platform_user_id="user_1700000000_abcdef",
    )
    with Session(engine) as s:
        s.add(user)
        s.commit()
        s.refresh(user)
    return user


@pytest.fixture(name="admin")
def admin_fixture(engine) -> User:
    user = User(email="admin@example.org", role="admin")
    with Session(engine) as s:
        s.add(user)
        s.commit()
        s.refresh(user)
    return user


@pytest.fixture(name="seeded_record")
def seeded_record_fixture(engine, coordinator) -> IntakeRecord:
    """A persisted platform-sourced record owned by the coordinator."""
    record = IntakeRecord(
        external_event_id="501",
        organization_name="Lakeside Church",
        contact_name="Jordan Lee",
        contact_email="jordan@example.org",
        event_date=datetime(2024, 6, 20, 10, 0),
        sandwich_count=250,
        status="Scheduled",
        owner_id=coordinator.id,
        created_at=datetime(2024, 6, 1, 9, 0),
    )
    with Session(engine) as s:
        s.add(record)
        s.commit()
        s.refresh(record)
    return record
