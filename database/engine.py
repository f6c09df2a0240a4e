from logging import getLogger

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

DATABASE_URL = settings.database_url

logger = getLogger("database_engine")


def build_engine(url: str = DATABASE_URL, echo: bool = settings.database_echo) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


db_engine = build_engine()

# Create async session maker to be used throughout the application
AsyncSessionLocal = build_session_factory(db_engine)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


async def create_tables(engine: AsyncEngine) -> None:
    # Models must be imported so their tables are registered on Base.metadata
    import database.models.applications  # noqa: F401
    import database.models.interviews  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to initialize the database (create tables)
async def init_db():
    logger.info("Initializing database schema")
    await create_tables(db_engine)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
