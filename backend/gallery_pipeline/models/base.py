from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator

from gallery_pipeline.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def ensure_schema(bind) -> None:
    """Create the pipeline tables if they are missing. Safe to call on every job start."""
    # Imported for the side effect of registering the tables on Base.metadata.
    import gallery_pipeline.models  # noqa: F401

    Base.metadata.create_all(bind=bind, checkfirst=True)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(ensure_schema)


def dialect_insert(session):
    """``INSERT`` construct supporting ``on_conflict_do_update`` for the session's database."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"upsert not supported for dialect {dialect!r}")
