"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks Redis.
"""
import os

os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-for-hs256-signing-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB
from nobre_hub.database import Base
import nobre_hub.models  # noqa: F401  (registers every table on Base.metadata)
from nobre_hub.models.conversation import Conversation
from nobre_hub.models.lead import Lead
from nobre_hub.models.user import User


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")

    # pysqlite does not emit BEGIN itself; take over so SAVEPOINTs nest correctly
    @event.listens_for(engine.sync_engine, "connect")
    def _no_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def mock_redis():
    """Mock for async Redis - prevents real Redis calls in tests."""
    redis_mock = AsyncMock()
    redis_mock.set = AsyncMock(return_value=True)
    redis_mock.delete = AsyncMock(return_value=1)
    redis_mock.publish = AsyncMock(return_value=1)
    redis_mock.ping = AsyncMock(return_value=True)

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 1, 1, True])
    redis_mock.pipeline = MagicMock(return_value=pipe)

    with (
        patch("nobre_hub.utils.dedup.get_redis", new=AsyncMock(return_value=redis_mock)),
        patch("nobre_hub.services.event_bus.get_redis", new=AsyncMock(return_value=redis_mock)),
    ):
        yield redis_mock


@pytest.fixture
def make_user(db):
    """Factory: persist a user. Later calls get later created_at (rotation order)."""
    counter = {"n": 0}

    async def _make(role="closer_ht", name=None, is_active=True, is_superuser=False, **kwargs):
        counter["n"] += 1
        user = User(
            id=uuid.uuid4(),
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}-{uuid.uuid4().hex[:6]}@nobre.test",
            role=role,
            is_active=is_active,
            is_superuser=is_superuser,
            created_at=BASE_TIME + timedelta(minutes=counter["n"]),
            **kwargs,
        )
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
def make_lead(db):
    """Factory: persist a lead, optionally with its conversation."""
    counter = {"n": 0}

    async def _make(
        pipeline="high_ticket",
        phone=None,
        source="website",
        with_conversation=True,
        assigned_to=None,
        created_at=None,
        **kwargs,
    ):
        counter["n"] += 1
        phone = phone or f"55119{counter['n']:08d}"
        lead = Lead(
            id=uuid.uuid4(),
            name=kwargs.pop("name", f"Lead {counter['n']}"),
            phone=phone,
            phone_key=phone[-8:],
            pipeline=pipeline,
            source=source,
            assigned_to=assigned_to,
            created_at=created_at or BASE_TIME + timedelta(hours=counter["n"]),
            **kwargs,
        )
        db.add(lead)
        await db.flush()
        if with_conversation:
            db.add(Conversation(
                lead_id=lead.id,
                pipeline=pipeline,
                status="active" if assigned_to else "queued",
                assigned_agent_id=assigned_to,
            ))
            await db.flush()
        return lead

    return _make
