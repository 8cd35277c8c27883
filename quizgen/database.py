"""
Async database engine, session factory and declarative base
"""
from typing import AsyncGenerator
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from quizgen.config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Point plain Postgres URLs at the asyncpg driver"""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("sqlite"):
    engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
else:
    # PostgreSQL with production-ready pool settings
    engine = create_async_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI routes"""
    async with AsyncSessionLocal() as session:
        yield session


async def init_db() -> None:
    """Create all tables registered on the declarative base"""
    # Import models so they register with Base.metadata
    import quizgen.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
