"""
FastAPI dependencies
"""

from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from tracking.repository import Repository


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session


async def get_repository(db: AsyncSession = Depends(get_db)) -> Repository:
    return Repository(db)
