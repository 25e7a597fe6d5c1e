"""Shared fixtures: an in-memory SQLite database with the Autoquote schema."""

import uuid
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from autoquote.api.security import reset_rate_limits
from autoquote.db import Base
from autoquote.quoting.coverage_service import CoverageAssignmentService
from autoquote.quoting.policy_service import PolicyCreationService
from autoquote.quoting.quote_service import QuoteService
from autoquote.quoting.reference_data import ReferenceDataLoader
from autoquote.quoting.schemas import PolicyCreationInput

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy, not pysqlite, emit BEGIN so savepoints behave.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Standard coverages loaded under the default product."""
    return await ReferenceDataLoader(session_factory).seed_coverages()


@pytest.fixture
def policy_service(session_factory):
    return PolicyCreationService(session_factory)


@pytest.fixture
def coverage_service(session_factory):
    return CoverageAssignmentService(session_factory)


@pytest.fixture
def quote_service(session_factory):
    return QuoteService(session_factory)


@pytest.fixture
def vehicle_id():
    return uuid.uuid4()


@pytest.fixture
def policy_input(vehicle_id):
    return PolicyCreationInput(
        party_id=uuid.uuid4(),
        vehicle_id=vehicle_id,
        effective_date=date(2026, 11, 1),
        expiration_date=date(2027, 5, 1),
    )


@pytest_asyncio.fixture
async def quoted_policy(seeded, policy_service, policy_input):
    return await policy_service.create_policy(policy_input)


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
