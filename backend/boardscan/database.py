"""
BoardScan Backend — Database Session Management
=================================================

What:  The async engine, the session factory, the declarative Base shared by
       all five tables, and the per-request session dependency.
Who:   Routes (via Depends), the startup admin bootstrap and Alembic.

Transaction model:
    One session (and one transaction) per request. Services only flush;
    the dependency commits once the handler returns. A failure anywhere in
    the request (including a failed lot rollup write) rolls back everything,
    so a request never leaves a partially applied change behind.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from boardscan.config import settings


def _engine_options() -> Dict[str, Any]:
    """Pool options for server databases; SQLite picks its own pool class."""
    options: Dict[str, Any] = {
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit without
# triggering a lazy load outside the session context
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object used by Alembic autogenerate and by
    the test suite's create_all().
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session (returns connection to pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Gracefully closes all connections in the pool (application shutdown)."""
    await engine.dispose()
