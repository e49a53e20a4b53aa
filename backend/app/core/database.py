"""
Database layer — async SQLAlchemy 2.0 (aiosqlite by default, asyncpg in production).

Provides:
    • Async engine and session factory
    • Dependency injection for FastAPI routes
    • Base model for ORM entities

Usage:
    from backend.app.core.database import get_db, Base

    @router.get("/contacts")
    async def list_contacts(db: AsyncSession = Depends(get_db)):
        ...
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str = settings.DATABASE_URL, **overrides: Any) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    kwargs: Dict[str, Any] = {"echo": settings.DATABASE_ECHO, "future": True}
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# ── Engine ──
engine = build_engine()

# ── Session Factory ──
async_session_factory = build_session_factory(engine)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Dependency ──
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for work that needs a session of its own (authority registration)."""
    return async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Lifecycle ──
async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables (the schema is small enough to skip migrations)."""
    # Register ORM tables on Base.metadata
    from backend.app.storage import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def close_db(bind: AsyncEngine = engine) -> None:
    """Dispose engine connections."""
    await bind.dispose()
    logger.info("Database connections closed")
