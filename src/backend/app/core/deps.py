"""Dependency injection utilities for FastAPI."""

from functools import lru_cache
from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import settings
from app.integrations.alarms.codes import AlarmCodeTable
from app.integrations.alarms.event_parser import AlarmMessageDecoder

# Database engine and session factory
engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@lru_cache
def get_code_table() -> AlarmCodeTable:
    """Alarm code table built once from settings."""
    return AlarmCodeTable(settings.alarm_codes)


@lru_cache
def get_event_decoder() -> AlarmMessageDecoder:
    """Alarm message decoder using the configured device UTC offset."""
    return AlarmMessageDecoder(settings.event_utc_offset_minutes)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CodeTable = Annotated[AlarmCodeTable, Depends(get_code_table)]
