"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support for PostgreSQL.
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm.exc import StaleDataError
from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import ConflictError, InternalError


def _engine_options() -> dict:
    # SQLite (local runs, tests) has no connection pool sizing
    if settings.database_url.startswith("sqlite"):
        return {"echo": settings.db_echo, "future": True}
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "future": True,
    }


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_options())

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def commit_or_raise(db: AsyncSession, conflict_message: str = "Concurrent modification, retry the request") -> None:
    """
    Commit the unit of work, translating storage failures into the
    engine's error taxonomy. The session is rolled back on failure.
    """
    try:
        await db.commit()
    except (StaleDataError, IntegrityError) as e:
        await db.rollback()
        raise ConflictError(conflict_message, details={"reason": type(e).__name__})
    except SQLAlchemyError as e:
        await db.rollback()
        raise InternalError(details={"reason": type(e).__name__})
