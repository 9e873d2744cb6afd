import asyncio
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from broker_bridge.logging_config import get_logger
from broker_bridge.models import SessionMapping
from broker_bridge.services.result import ErrorCode, Result

logger = get_logger("session_service")

# asyncpg raises raw socket errors when the database is unreachable.
STORAGE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class SessionStore:
    """
    Durable mapping from LINE user id to the broker's current session code.

    Every call opens its own database session from the pooled factory and
    releases it on exit. Errors never propagate: they come back as
    storage_error results so the caller can continue without a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def lookup(self, platform_user_id: str) -> Result[str]:
        """Return the current session code, or an empty string for an unknown user."""
        try:
            async with self._session_factory() as session:
                row = await session.execute(
                    select(SessionMapping.session_code).where(SessionMapping.platform_user_id == platform_user_id)
                )
                session_code = row.scalar_one_or_none()
        except STORAGE_ERRORS as e:
            logger.error(
                f"Session lookup failed: {e}",
                extra={"context": {"user_id": platform_user_id}},
            )
            return Result.failure(str(e), ErrorCode.STORAGE)

        return Result.success(session_code or "")

    async def record(self, session_code: str, platform_user_id: str) -> Result[SessionMapping]:
        """Upsert the current session code for a user."""
        mapping = SessionMapping(
            platform_user_id=platform_user_id,
            session_code=session_code,
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    mapping = await session.merge(mapping)
        except STORAGE_ERRORS as e:
            logger.error(
                f"Session record failed: {e}",
                extra={"context": {"user_id": platform_user_id, "session_code": session_code}},
            )
            return Result.failure(str(e), ErrorCode.STORAGE)

        logger.info(
            "Session code stored",
            extra={"context": {"user_id": platform_user_id, "session_code": session_code}},
        )
        return Result.success(mapping)
