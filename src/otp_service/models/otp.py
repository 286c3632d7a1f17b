"""SQLAlchemy OTP record model."""

from sqlalchemy import BigInteger, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class OtpRecord(Base):
    """One outstanding one-time passcode.

    A user may own several records at once; ``id`` is only used to target
    a single row when it is consumed.
    """

    __tablename__ = "otps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, doc="Expiry instant in epoch milliseconds"
    )

    __table_args__ = (
        Index("ix_otps_user_id_code", "user_id", "code"),
        Index("ix_otps_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<OtpRecord id={self.id} user_id={self.user_id!r} "
            f"expires_at={self.expires_at}>"
        )
