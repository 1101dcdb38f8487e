from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from auditready.core.config import get_settings


def build_engine(database_url: str) -> AsyncEngine:
    _engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    # Configure bounded asyncpg pools for predictable latency under scheduled fan-out.
    if not database_url.startswith("sqlite"):
        settings = get_settings()
        _engine_kwargs["pool_size"] = max(1, int(settings.db_pool_size))
        _engine_kwargs["max_overflow"] = max(0, int(settings.db_max_overflow))
        _engine_kwargs["pool_timeout"] = 30
        _engine_kwargs["pool_recycle"] = 1800
    return create_async_engine(database_url, **_engine_kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


settings = get_settings()
engine = build_engine(settings.database_url)
# Process-wide factory for workers and scripts; engine code receives it explicitly.
SessionLocal = build_sessionmaker(engine)

