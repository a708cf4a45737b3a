"""
Database engine and session scopes

The engine is created on first use. Pooled asyncpg connections are bound to
the event loop that opened them; worker tasks call close_db after each run.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from visibility_engine.config import get_settings
from visibility_engine.models import Base

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None


def async_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver"""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def build_engine(url: Optional[str] = None) -> AsyncEngine:
    """Engine for `url` (defaults to DATABASE_URL) with pool settings from config"""
    settings = get_settings()
    url = async_database_url(url or settings.DATABASE_URL)

    options = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

    return create_async_engine(url, **options)


def _get_session_maker() -> async_sessionmaker:
    global _engine, _session_maker
    if _session_maker is None:
        _engine = build_engine()
        _session_maker = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Transactional session scope for code outside a request.

    Commits on a clean exit and rolls back when the block raises. This is the
    session factory handed to ScheduleManager.
    """
    async with _get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one transactional session per request"""
    async with get_db_context() as session:
        yield session


async def init_db():
    """Create missing tables"""
    _get_session_maker()
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose the engine; the next session scope builds a fresh one"""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
