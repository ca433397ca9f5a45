"""
Database engine configuration and session management.

Current: SQLite (async with aiosqlite)
Future: PostgreSQL (switch DATABASE_URL to postgresql+asyncpg://...)

Role upserts pick the ON CONFLICT dialect from the bound engine, so both
backends get a single-statement write.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from memberhub.core import config

engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # NullPool for SQLite to avoid connection pool issues
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Services commit their own units of work; anything left pending when the
    request finishes is committed here, and rolled back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def register_models() -> None:
    """Import every model module so Base.metadata knows all tables."""
    from memberhub.features.roles.models import UserRole  # noqa: F401
    from memberhub.features.identities.models import Profile, MembershipApplication  # noqa: F401
    from memberhub.features.delegation.models import EventForm, Delegate  # noqa: F401
    from memberhub.features.audit.models import AuditLog  # noqa: F401


async def init_db(bind=None):
    """
    Create all tables.

    Called on application startup; tests pass their own engine.
    """
    from memberhub.core.database.base import Base

    register_models()
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
