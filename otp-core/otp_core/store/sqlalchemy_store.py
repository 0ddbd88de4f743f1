"""
SQLAlchemy Store
================
Durable async store over any SQLAlchemy async dialect.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from otp_core.database import Base
from otp_core.errors import DependencyUnavailable
from otp_core.models import OtpRecord
from .base import OtpStore

logger = structlog.get_logger(__name__)


class OtpRow(Base):
    __tablename__ = "otp"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(16))
    owner_key: Mapped[str] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)


class AttemptRow(Base):
    __tablename__ = "otp_attempt"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_key: Mapped[str] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: OtpRow) -> OtpRecord:
    return OtpRecord(
        id=row.id,
        code=row.code,
        owner_key=row.owner_key,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
        verified=bool(row.verified),
    )


class SqlAlchemyOtpStore(OtpStore):
    """
    Store backed by the ``otp`` and ``otp_attempt`` tables.

    Each operation runs in its own session and commits on success.
    Backend errors surface as DependencyUnavailable.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except SQLAlchemyError as e:
            logger.error("OTP store operation failed", operation=operation, error=str(e))
            raise DependencyUnavailable(f"Store operation failed: {operation}") from e

    async def create_otp(self, record: OtpRecord) -> OtpRecord:
        async with self._session("create_otp") as session:
            session.add(OtpRow(
                id=record.id,
                code=record.code,
                owner_key=record.owner_key,
                created_at=record.created_at,
                expires_at=record.expires_at,
                verified=record.verified,
            ))
        return record

    async def find_otp(self, otp_id: str, owner_key: Optional[str] = None) -> Optional[OtpRecord]:
        stmt = select(OtpRow).where(OtpRow.id == otp_id)
        if owner_key is not None:
            stmt = stmt.where(OtpRow.owner_key == owner_key)

        async with self._session("find_otp") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_record(row) if row else None

    async def find_latest_otp(self, owner_key: str, now: datetime) -> Optional[OtpRecord]:
        stmt = (
            select(OtpRow)
            .where(
                OtpRow.owner_key == owner_key,
                OtpRow.verified.is_(False),
                OtpRow.expires_at > now,
            )
            .order_by(OtpRow.created_at.desc())
            .limit(1)
        )
        async with self._session("find_latest_otp") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_record(row) if row else None

    async def replace_pending_otp(self, record: OtpRecord) -> int:
        # Delete and insert share one transaction. On SQLite the delete takes
        # the write lock first, so replacements for one owner serialize.
        async with self._session("replace_pending_otp") as session:
            result = await session.execute(
                delete(OtpRow).where(
                    OtpRow.owner_key == record.owner_key,
                    OtpRow.verified.is_(False),
                )
            )
            session.add(OtpRow(
                id=record.id,
                code=record.code,
                owner_key=record.owner_key,
                created_at=record.created_at,
                expires_at=record.expires_at,
                verified=record.verified,
            ))
            return result.rowcount or 0

    async def mark_verified(self, otp_id: str) -> bool:
        async with self._session("mark_verified") as session:
            result = await session.execute(
                update(OtpRow)
                .where(OtpRow.id == otp_id, OtpRow.verified.is_(False))
                .values(verified=True)
            )
            return result.rowcount == 1

    async def delete_otp(self, otp_id: str) -> None:
        async with self._session("delete_otp") as session:
            await session.execute(delete(OtpRow).where(OtpRow.id == otp_id))

    async def delete_unverified_otps(self, owner_key: str) -> int:
        async with self._session("delete_unverified_otps") as session:
            result = await session.execute(
                delete(OtpRow).where(
                    OtpRow.owner_key == owner_key,
                    OtpRow.verified.is_(False),
                )
            )
            return result.rowcount or 0

    async def delete_expired_otps(self, now: datetime) -> int:
        async with self._session("delete_expired_otps") as session:
            result = await session.execute(delete(OtpRow).where(OtpRow.expires_at < now))
            return result.rowcount or 0

    async def create_attempt(self, client_key: str, at: datetime) -> None:
        async with self._session("create_attempt") as session:
            session.add(AttemptRow(client_key=client_key, created_at=at))

    async def count_attempts(self, client_key: str, since: datetime) -> int:
        stmt = select(func.count()).select_from(AttemptRow).where(
            AttemptRow.client_key == client_key,
            AttemptRow.created_at >= since,
        )
        async with self._session("count_attempts") as session:
            return int((await session.execute(stmt)).scalar_one())

    async def oldest_attempt(self, client_key: str, since: datetime) -> Optional[datetime]:
        stmt = select(func.min(AttemptRow.created_at)).where(
            AttemptRow.client_key == client_key,
            AttemptRow.created_at >= since,
        )
        async with self._session("oldest_attempt") as session:
            oldest = (await session.execute(stmt)).scalar_one()
            return _as_utc(oldest) if oldest is not None else None

    async def delete_attempts(self, client_key: str) -> int:
        async with self._session("delete_attempts") as session:
            result = await session.execute(
                delete(AttemptRow).where(AttemptRow.client_key == client_key)
            )
            return result.rowcount or 0

    async def delete_attempts_before(self, cutoff: datetime) -> int:
        async with self._session("delete_attempts_before") as session:
            result = await session.execute(
                delete(AttemptRow).where(AttemptRow.created_at < cutoff)
            )
            return result.rowcount or 0
