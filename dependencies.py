# dependencies.py
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from models import async_session_maker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Opens a database session for the duration of one request."""
    async with async_session_maker() as session:
        yield session
