from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from generic_repository.core.config import settings


class Base(DeclarativeBase):
    pass


def create_engine_from_settings(url: str | None = None, **kwargs) -> AsyncEngine:
    kwargs.setdefault("echo", settings.DATABASE_ECHO)
    return create_async_engine(url or settings.DATABASE_URL, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Entities are handed back to callers after the session closes.
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
