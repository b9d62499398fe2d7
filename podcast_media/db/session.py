"""Database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from podcast_media.core.config import settings
from podcast_media.db.base import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite gets the cross-thread flag."""
    return create_async_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {}
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.is_debug_mode)
AsyncSessionLocal = build_sessionmaker(engine)


async def init_schema(target: AsyncEngine = engine) -> None:
    """Create tables that do not exist yet."""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

