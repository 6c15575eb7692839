"""
Database session management.

Holds the process-wide async engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """
    Initialize the database engine and session factory.

    Args:
        database_url: SQLAlchemy async database URL.
        echo: Log SQL statements.

    Returns:
        Session factory.
    """
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
    return _session_factory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory.

    Raises:
        RuntimeError: If the database is not initialized.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized")
    return _session_factory


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    engine = engine or _engine
    if engine is None:
        raise RuntimeError("Database not initialized")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    """Dispose of the engine."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
