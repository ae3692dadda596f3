"""Datastore — async SQLAlchemy engine, sessions and schema checks.

Production deployments apply Alembic migrations. With ``db.auto_migrate`` on,
:meth:`Datastore.create_tables` builds the schema directly from the models;
with it off, the engine refuses to start while :meth:`Datastore.missing_tables`
reports anything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from username_attestor.models import Base

if TYPE_CHECKING:
    from username_attestor.config.settings import DatabaseConfig

# Seconds a SQLite writer waits on the file lock before failing
SQLITE_BUSY_TIMEOUT = 30


def engine_options(config: DatabaseConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` for the configured backend."""
    options: dict[str, Any] = {"echo": config.debug_sql}
    if config.dsn.startswith("sqlite"):
        options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
        return options
    options["pool_size"] = config.max_idle_connections
    options["max_overflow"] = max(config.max_open_connections - config.max_idle_connections, 0)
    options["pool_pre_ping"] = True
    return options


class Datastore:
    """Reservation store connection.

    Usage::

        ds = Datastore(config.db)
        await ds.open()
        await ds.create_tables()
        async with ds.session() as session:
            ...
        await ds.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """The underlying async engine.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._engine is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._engine

    async def open(self) -> None:
        self._engine = create_async_engine(self._config.dsn, **engine_options(self._config))
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)

    async def close(self) -> None:
        """Dispose the engine. Safe to call on a closed datastore."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None

    def session(self) -> AsyncSession:
        if self._sessions is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._sessions()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def create_tables(self) -> None:
        """Create every model table that does not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def missing_tables(self) -> list[str]:
        """Names of model tables absent from the database, sorted."""
        async with self.engine.connect() as conn:
            existing = await conn.run_sync(
                lambda sync_conn: set(inspect(sync_conn).get_table_names())
            )
        return sorted(name for name in Base.metadata.tables if name not in existing)

    async def drop_tables(self) -> None:
        """Drop every model table (tests and local development only)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
