"""OTP repository — data access layer for the ``otps`` table."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from otp_service.models.otp import OtpRecord

# Bulk deletes never touch objects loaded into the session
_NO_SYNC = {"synchronize_session": False}


class OtpRepository:
    """Encapsulates all database statements related to OTP records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, user_id: str, code: str, expires_at: int) -> None:
        """Insert a new record; existing records for the user are left alone."""
        self._session.add(OtpRecord(user_id=user_id, code=code, expires_at=expires_at))
        await self._session.flush()

    async def consume(self, user_id: str, code: str, now: int) -> bool:
        """Delete one unexpired record matching *user_id* and *code*.

        The lookup and the delete run as a single statement, so a row can
        only ever be consumed once.  Returns ``True`` if a row was deleted.
        """
        candidate = aliased(OtpRecord)
        match = (
            select(candidate.id)
            .where(
                candidate.user_id == user_id,
                candidate.code == code,
                candidate.expires_at > now,
            )
            .limit(1)
            .scalar_subquery()
        )
        result = await self._session.execute(
            delete(OtpRecord).where(OtpRecord.id == match),
            execution_options=_NO_SYNC,
        )
        return result.rowcount == 1

    async def purge_expired(self, now: int) -> int:
        """Delete every record whose expiry is at or before *now*."""
        result = await self._session.execute(
            delete(OtpRecord).where(OtpRecord.expires_at <= now),
            execution_options=_NO_SYNC,
        )
        return result.rowcount

    async def find_code(self, user_id: str) -> str | None:
        """Return the code of one outstanding record for *user_id*, if any."""
        stmt = select(OtpRecord.code).where(OtpRecord.user_id == user_id).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
