"""
Database configuration and session management

Pool sizing applies to server databases only; SQLite (tests, local
experiments) uses the driver defaults.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from gym_coupons.core.config import settings


def build_engine(database_url: str, echo: bool = False):
    """Create the async engine with environment-appropriate pooling."""
    pool_config = {}

    if database_url.startswith("sqlite"):
        pool_config = {}
    elif settings.ENVIRONMENT == "production":
        pool_config = {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,  # Verify connections before use
        }
    else:
        pool_config = {
            "pool_size": 2,
            "max_overflow": 5,
            "pool_pre_ping": True,
        }

    return create_async_engine(database_url, echo=echo, future=True, **pool_config)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """Dependency for getting async database sessions"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


