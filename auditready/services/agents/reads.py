from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import DatastoreError


T = TypeVar("T")


async def read(
    sessionmaker: async_sessionmaker[AsyncSession],
    query: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    # One session per query; an AsyncSession cannot serve concurrent statements.
    async with sessionmaker() as session:
        return await query(session, *args, **kwargs)


async def gather_reads(*reads: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run independent read-only queries concurrently and return their results in order.

    The first failure cancels the sibling reads before anything propagates, so
    no session is left open behind a failed run. Datastore failures surface as
    `DatastoreError`; anything else is re-raised unwrapped.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(pending) for pending in reads]
    except ExceptionGroup as failures:
        for exc in failures.exceptions:
            if isinstance(exc, SQLAlchemyError):
                raise DatastoreError(f"datastore read failed: {exc}") from exc
        raise failures.exceptions[0]
    return [task.result() for task in tasks]
