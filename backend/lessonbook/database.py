import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from lessonbook.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def _is_connection_failure(exc: BaseException | None) -> bool:
    # Services and routers wrap driver errors, so walk the whole chain.
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if isinstance(exc, OperationalError):
            return True
        if isinstance(exc, DBAPIError) and exc.connection_invalidated:
            return True
        exc = exc.__cause__ or exc.__context__
    return False


class Store:
    """Owns the engine and session factory for one database.

    The engine is opened on first use. A connection-level failure disposes it,
    so the next session reconnects.
    """

    def __init__(self, url: str | None = None, echo: bool = False) -> None:
        self.url = url or settings.database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.url, echo=self.echo)
            if self._engine.dialect.name == "sqlite":
                event.listen(self._engine.sync_engine, "connect", _configure_sqlite_connection)
                event.listen(self._engine.sync_engine, "begin", _begin_sqlite_transaction)
            self._session_maker = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
            logger.info("Store opened", extra={"url": self.url})
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        self.engine
        assert self._session_maker is not None
        return self._session_maker

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_maker() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                if _is_connection_failure(e):
                    logger.warning("Store connection failed, reconnecting on next use", extra={"error": str(e)})
                    await self.reset()
                raise

    async def create_all(self) -> None:
        import lessonbook.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def reset(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None

    async def close(self) -> None:
        await self.reset()
        logger.info("Store closed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    store: Store = request.app.state.store
    async with store.session() as session:
        yield session
