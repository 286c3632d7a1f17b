"""Tests for the OtpRepository."""

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from otp_service.database.repository import OtpRepository
from otp_service.models.otp import Base, OtpRecord

NOW = 1_700_000_000_000

# ── In-memory test database ─────────────────────────────
_test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
_test_session_factory = async_sessionmaker(_test_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session():
    """Create tables in a fresh in-memory DB and yield a session."""
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with _test_session_factory() as session:
        # Seed test data
        session.add_all(
            [
                OtpRecord(user_id="test_user", code="111111", expires_at=NOW + 60_000),
                OtpRecord(user_id="test_user", code="222222", expires_at=NOW - 1),
                OtpRecord(user_id="other_user", code="333333", expires_at=NOW),
            ]
        )
        await session.commit()
        yield session

    # Tear down
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _codes(session: AsyncSession) -> set[str]:
    result = await session.execute(select(OtpRecord.code))
    return set(result.scalars())


# ── Tests ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_add_keeps_existing_records(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    await repo.add("test_user", "444444", NOW + 1000)
    await db_session.commit()

    assert await _codes(db_session) == {"111111", "222222", "333333", "444444"}


@pytest.mark.asyncio
async def test_consume_match(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    assert await repo.consume("test_user", "111111", NOW) is True
    assert "111111" not in await _codes(db_session)


@pytest.mark.asyncio
async def test_consume_expired_match_leaves_row(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    assert await repo.consume("test_user", "222222", NOW) is False
    # Expiry equal to now is already expired
    assert await repo.consume("other_user", "333333", NOW) is False
    assert await _codes(db_session) == {"111111", "222222", "333333"}


@pytest.mark.asyncio
async def test_consume_no_match(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    assert await repo.consume("other_user", "111111", NOW) is False
    assert await repo.consume("nobody", "000000", NOW) is False


@pytest.mark.asyncio
async def test_purge_expired(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    assert await repo.purge_expired(NOW) == 2
    assert await _codes(db_session) == {"111111"}
    assert await repo.purge_expired(NOW) == 0


@pytest.mark.asyncio
async def test_find_code(db_session: AsyncSession):
    repo = OtpRepository(db_session)
    assert await repo.find_code("other_user") == "333333"
    assert await repo.find_code("nobody") is None
