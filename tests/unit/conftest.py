"""Fixtures for audit engine tests: file-backed SQLite per test, seeded records, sinks."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from changeset_audit.application.audit_log_service import AuditLogService
from changeset_audit.infrastructure.database.audit_log_repository_db import DbAuditLogRepository
from changeset_audit.infrastructure.database.registry import RecordRegistry
from changeset_audit.infrastructure.database.session import Base
from tests.support.models import (
    AuditWriteFailure,
    DashboardUser,
    DeliveryFee,
    DeliveryProfile,
)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


@pytest.fixture
def registry():
    return RecordRegistry.from_base(Base)


@pytest.fixture
def actor():
    return DashboardUser(id=7, email="ops@example.com")


@pytest_asyncio.fixture
async def seeded(session_factory):
    """One profile with two fees, committed. Returns primary keys."""
    async with session_factory() as session:
        profile = DeliveryProfile(
            dealer_name="Northside Motors",
            delivery_range_miles=50,
            offer_delivery_trade_in=0,
        )
        session.add(profile)
        await session.flush()
        fee_near = DeliveryFee(profile_id=profile.id, distance_miles=100, fee_cents=2500)
        fee_far = DeliveryFee(profile_id=profile.id, distance_miles=200, fee_cents=4500)
        session.add_all([fee_near, fee_far])
        await session.commit()
        return {"profile": profile.id, "fees": [fee_near.id, fee_far.id]}


class FailingSink:
    """Writes `fail_after` entries for real, then fails, leaving a partial audit trail to roll back."""

    def __init__(self, session, fail_after=1):
        self._inner = DbAuditLogRepository(session)
        self._fail_after = fail_after
        self.inserted = 0

    async def insert(self, entry):
        if self.inserted >= self._fail_after:
            raise AuditWriteFailure("audit_log insert failed")
        await self._inner.insert(entry)
        self.inserted += 1


class SlowSink:
    """Never finishes an insert within a short timeout."""

    def __init__(self, session):
        self._inner = DbAuditLogRepository(session)

    async def insert(self, entry):
        await self._inner.insert(entry)
        await asyncio.sleep(5)


@pytest.fixture
def failing_sink():
    return FailingSink


@pytest.fixture
def slow_sink():
    return SlowSink


@pytest.fixture
def audit_service(session_factory, registry, actor):
    return AuditLogService(session_factory=session_factory, registry=registry).with_user(actor)
