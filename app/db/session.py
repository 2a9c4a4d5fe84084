from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.settings import settings

def make_engine(uri: str) -> AsyncEngine:
    return create_async_engine(
        uri,
        echo=False,
        pool_pre_ping=True,
    )

def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

class Base(DeclarativeBase):
    pass

# Built lazily: the in-memory backend never needs a database driver
_engine: AsyncEngine | None = None

def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)
    return _engine

async def dispose_engine():
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
