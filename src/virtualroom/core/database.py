"""Local store engine and schema setup."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel


def setup_db_session(db_url: str) -> async_sessionmaker[AsyncSession]:
    """Build the session factory for the on-device SQLite store.

    Args:
        db_url: SQLAlchemy URL, normally ``sqlite+aiosqlite:///path/to/file.db``
    """
    engine = create_async_engine(db_url, echo=False)
    # Rows are read after commit when the registry returns them
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create local tables if they don't exist yet.

    The local store only mirrors client state (drafts, in-flight jobs), so it is
    created in place on startup rather than migrated.
    """
    # Register table models with SQLModel metadata
    from virtualroom import models  # noqa: F401

    async with session_factory() as session:
        connection = await session.connection()
        await connection.run_sync(SQLModel.metadata.create_all)
        await session.commit()


async def dispose_session_factory(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Close every pooled connection of the factory's engine."""
    await session_factory.kw["bind"].dispose()
