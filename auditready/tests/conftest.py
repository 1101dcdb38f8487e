from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.domain.models import Base
from auditready.persistence.db import build_engine, build_sessionmaker
from auditready.services.telemetry import reset_telemetry
from auditready.tests.utils.records import create_org


@pytest.fixture
async def sessionmaker(tmp_path) -> async_sessionmaker[AsyncSession]:
    # File-backed sqlite so concurrent gather reads each get their own connection.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'auditready.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
async def org_id(sessionmaker) -> str:
    return await create_org(sessionmaker)


@pytest.fixture(autouse=True)
def isolate_process_state() -> None:
    # Counters and cached settings are process-wide; keep tests independent.
    reset_telemetry()
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
