from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from newsdesk.config import settings
from newsdesk.middleware import install_query_counter

# Tests build their own engine and override ``get_db``.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def session_scope():
    """Session that commits on clean exit and rolls back on any error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db():
    """
    Yield a session whose transaction spans the whole request.

    Every multi-step write in the service layer (primary image
    reassignment, slug check then insert) therefore commits or rolls
    back as a unit.
    """
    async with session_scope() as session:
        yield session
