# Database setup with SQLAlchemy async engine and session factory.
# Uses declarative_base for the mirrored read models and get_session as a FastAPI dependency.
# Server backends (PostgreSQL/asyncpg, MySQL/aiomysql) get a sized pool; SQLite keeps the driver default.


from typing import AsyncIterator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from workforce_analytics.config import settings

Base = declarative_base()

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }

engine = create_async_engine(settings.DATABASE_URL, echo=False, future=True, **_engine_options(settings.DATABASE_URL))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
