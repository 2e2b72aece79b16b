"""Database engine and session management with async support."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from linkboard.config import Settings
from linkboard.logging_config import get_logger
from linkboard.models import Base

logger = get_logger(__name__)


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Take the database write lock at BEGIN and enforce foreign keys.

    pysqlite defers BEGIN until the first write, so a read-then-write
    transaction can interleave with another one. Emitting BEGIN IMMEDIATE
    ourselves serializes writers the way a row lock does on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, settings: Settings):
        self.url = settings.database_url
        engine_kwargs: dict = {"echo": settings.database_echo, "pool_pre_ping": True}
        if not settings.is_sqlite:
            engine_kwargs.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_recycle=3600,
            )
        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        if settings.is_sqlite:
            _install_sqlite_hooks(self.engine)

        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(
            "database_engine_created",
            dialect=self.engine.dialect.name,
            pool_size=settings.database_pool_size,
        )

    async def verify(self) -> None:
        """Check connectivity."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("database_connection_verified")
        except Exception as e:
            logger.error("database_connection_failed", error=str(e))
            raise

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database_connections_closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session for reads or caller-managed commits."""
        session = self.session_factory()
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Session wrapped in one transaction.

        Commits when the block exits normally and rolls back on any
        exception, including task cancellation.
        """
        async with self.session_factory() as session:
            async with session.begin():
                yield session


def get_database(request: Request) -> Database:
    """FastAPI dependency: the Database built by create_app.

    Services open their own short sessions from it, so no connection is
    held across a whole request.
    """
    return request.app.state.db
