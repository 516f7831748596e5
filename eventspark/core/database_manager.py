"""
Engine and session lifecycle for the EventSpark store.

SQLite is the development and test backend; PostgreSQL (asyncpg) is the
production one. Both get foreign keys enforced, since booking rows must
disappear with their event.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

from eventspark.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    pass


def async_url(db_url: str) -> str:
    """Swap sync driver prefixes for their async counterparts."""
    for sync, asynchronous in (
        ("postgresql://", "postgresql+asyncpg://"),
        ("sqlite:///", "sqlite+aiosqlite:///"),
    ):
        if db_url.startswith(sync):
            return asynchronous + db_url[len(sync):]
    return db_url


def engine_options(db_url: str) -> Dict[str, Any]:
    opts: Dict[str, Any] = {"echo": settings.database.ECHO}
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite":
        opts["connect_args"] = {"check_same_thread": False, "timeout": 20}
        if url.database in (None, "", ":memory:"):
            # an in-memory database lives only as long as its one connection
            opts["poolclass"] = StaticPool
        else:
            # a connection per session, so one rollback cannot undo another
            # session's writes; the busy timeout waits out the write lock
            opts["poolclass"] = NullPool
        return opts

    db = settings.database
    opts.update(
        pool_pre_ping=db.POOL_PRE_PING,
        pool_recycle=db.POOL_RECYCLE,
        pool_size=db.POOL_SIZE,
        max_overflow=db.MAX_OVERFLOW,
        pool_timeout=db.POOL_TIMEOUT,
        connect_args={
            "server_settings": {
                "application_name": "eventspark",
                "statement_timeout": db.STATEMENT_TIMEOUT,
                "lock_timeout": db.LOCK_TIMEOUT,
            }
        },
    )
    return opts


def install_sqlite_pragmas(engine: AsyncEngine) -> None:
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")  # type: ignore[misc]
    def _foreign_keys_on(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class DatabaseManager:
    """Owns the async engine and hands out sessions."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        url = async_url(db_url or settings.SQLALCHEMY_DATABASE_URI)
        self.engine: AsyncEngine = create_async_engine(url, **engine_options(url))
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        install_sqlite_pragmas(self.engine)
        logger.info(
            "Database engine ready for %s",
            self.engine.url.render_as_string(hide_password=True),
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self.session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create tables for every registered model (development only)."""
        import eventspark.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "error", "message": str(e)}
        return {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
        }

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine closed")


db_manager = DatabaseManager()
