"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from carenotes.config.settings import Settings
from carenotes.db.models import Base


def _engine_options(settings: Settings) -> dict[str, Any]:
    url = settings.DATABASE_URL
    options: dict[str, Any] = {"echo": settings.DEBUG and not settings.is_production}

    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # One shared connection so every session sees the same database
            options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_TIMEOUT_SECONDS,
        pool_pre_ping=True,
    )
    if url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {"command_timeout": settings.DATABASE_TIMEOUT_SECONDS}
    return options


class Database:
    """Engine and session factory for one application instance.

    Stored on ``app.state.database`` so tests can run several apps
    against separate databases in one process.
    """

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None):
        self.settings = settings
        self.engine = engine or create_async_engine(
            settings.DATABASE_URL, **_engine_options(settings)
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def verify(self) -> None:
        """Check connectivity. Raises whatever the driver raises."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        """Create every table. Used by tests and local development;
        deployments use Alembic migrations."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close database connections gracefully."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for a session outside dependency injection,
        such as in middleware or seeding.

        Usage:
            async with database.session() as session:
                result = await session.execute(query)
        """
        async with self.session_factory() as session:
            yield session
