from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from claimscore.config import settings


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def _ensure_sqlite_dir(database_url: str) -> None:
    # sqlite+aiosqlite:///./data/claims.db -> ./data
    if database_url.startswith("sqlite") and ":///" in database_url:
        path = database_url.split(":///", 1)[1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_dir(settings.database_url)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def create_schema(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    import claimscore.models  # noqa: F401  register mappers

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_schema(bind: AsyncEngine = engine) -> None:
    """Drop every table and recreate the schema from the models."""
    import claimscore.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
