from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from rxbridge.core.config import settings
from rxbridge.db.base_class import Base

_engine = None
_session_factory = None


def build_engine(url: str, **kwargs) -> AsyncEngine:
    # sqlite 驱动不支持连接池参数
    if "sqlite" in url:
        return create_async_engine(url, echo=False, **kwargs)
    return create_async_engine(url, echo=False, pool_size=20, max_overflow=20, **kwargs)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def init_models(engine: AsyncEngine = None):
    """创建数据表 (idempotent)"""
    from rxbridge.db.models import patient  # noqa: F401  register models

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """关闭数据库连接池"""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
