import asyncio

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from broker_bridge.database import Base
from broker_bridge.models import SessionMapping
from broker_bridge.services.result import ErrorCode
from broker_bridge.services.session_service import SessionStore
from tests.fakes import BrokenSessionFactory


async def make_store() -> SessionStore:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return SessionStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))


# Wrapped driver errors plus the raw ones asyncpg raises while connecting.
STORAGE_FAILURES = [
    OperationalError("SELECT 1", {}, Exception("connection refused")),
    ConnectionRefusedError(111, "Connect call failed"),
    asyncio.TimeoutError(),
]


class TestLookup:
    @pytest.mark.asyncio
    async def test_unknown_user_returns_empty_code(self):
        store = await make_store()

        result = await store.lookup("U-new")

        assert result.ok is True
        assert result.value == ""

    @pytest.mark.asyncio
    async def test_returns_recorded_code(self):
        store = await make_store()
        await store.record("S1", "U1")

        result = await store.lookup("U1")

        assert result.value == "S1"

    @pytest.mark.asyncio
    async def test_users_are_independent(self):
        store = await make_store()
        await store.record("S1", "U1")
        await store.record("S2", "U2")

        assert (await store.lookup("U1")).value == "S1"
        assert (await store.lookup("U2")).value == "S2"
        assert (await store.lookup("U3")).value == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", STORAGE_FAILURES, ids=["operational", "refused", "timeout"])
    async def test_storage_failure_is_a_result_not_an_exception(self, error):
        store = SessionStore(BrokenSessionFactory(error))

        result = await store.lookup("U1")

        assert result.ok is False
        assert result.error_code == ErrorCode.STORAGE
        assert result.unwrap_or("") == ""


class TestRecord:
    @pytest.mark.asyncio
    async def test_newer_code_supersedes_older_one(self):
        store = await make_store()
        await store.record("S1", "U1")
        await store.record("S2", "U1")

        assert (await store.lookup("U1")).value == "S2"

    @pytest.mark.asyncio
    async def test_keeps_one_row_per_user(self):
        store = await make_store()
        await store.record("S1", "U1")
        await store.record("S2", "U1")

        async with store._session_factory() as session:
            rows = (await session.execute(SessionMapping.__table__.select())).all()

        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_returns_stored_mapping(self):
        store = await make_store()

        result = await store.record("S1", "U1")

        assert result.ok is True
        assert result.value.platform_user_id == "U1"
        assert result.value.session_code == "S1"
        assert result.value.created_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", STORAGE_FAILURES, ids=["operational", "refused", "timeout"])
    async def test_storage_failure_is_a_result_not_an_exception(self, error):
        store = SessionStore(BrokenSessionFactory(error))

        result = await store.record("S1", "U1")

        assert result.ok is False
        assert result.error_code == ErrorCode.STORAGE
