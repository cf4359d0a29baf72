from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from domatrend.config import settings
from domatrend.models import Base

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def create_all(bind=engine) -> None:
    """Create tables directly from model metadata.

    Deployments run Alembic migrations; this is for local SQLite setups
    and tests.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
