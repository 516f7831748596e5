from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def db_transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll back and re-raise on any failure."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
