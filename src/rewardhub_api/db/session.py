"""Async engine and session factories for the ledger store."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from rewardhub_api.core.settings import settings


SessionFactory = Callable[[], AsyncSession]

IMMEDIATE_BEGIN_OPTION = "sqlite_begin_immediate"


def _unicode_lower(value: object) -> object:
    return value.lower() if isinstance(value, str) else value


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Take over BEGIN from the driver so claim transactions can lock at BEGIN.

    Connections carrying the ``sqlite_begin_immediate`` execution option start
    with ``BEGIN IMMEDIATE`` and hold the database write lock before their
    first read. WAL journaling keeps plain readers from blocking that writer.
    SQLite's built-in ``lower()`` only folds ASCII, so it is replaced with
    ``str.lower`` to match how search terms are folded in Python.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        dbapi_connection.create_function("lower", 1, _unicode_lower)

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:  # noqa: ANN001
        if conn.get_execution_options().get(IMMEDIATE_BEGIN_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine configured for claim serialization."""

    url = make_url(database_url or settings.database_url)
    connect_args: dict[str, object] = {}
    if url.get_backend_name() == "sqlite":
        connect_args["timeout"] = settings.sqlite_busy_timeout_seconds

    engine = create_async_engine(
        url,
        echo=settings.database_echo if echo is None else echo,
        future=True,
        connect_args=connect_args,
    )
    if url.get_backend_name() == "sqlite":
        _configure_sqlite(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def build_claim_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions for claim attempts: write-locked from BEGIN on SQLite, row locks elsewhere."""

    return build_session_factory(engine.execution_options(**{IMMEDIATE_BEGIN_OPTION: True}))


engine = build_engine()
async_session = build_session_factory(engine)
claim_session = build_claim_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_session_factory() -> SessionFactory:
    """Dependency returning the factory used for per-attempt claim transactions."""

    return claim_session


def get_read_session_factory() -> SessionFactory:
    """Dependency returning the factory for read-only lookups that must not take the write lock."""

    return async_session
