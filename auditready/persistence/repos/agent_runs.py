from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auditready.domain.constants import (
    RUN_STATUS_COMPLETED,
    RUN_STATUS_FAILED,
    RUN_STATUS_RUNNING,
    SUGGESTION_PENDING,
)
from auditready.domain.models import AgentRun, Suggestion
from auditready.domain.suggestions import SuggestionInput


async def create_run(
    session: AsyncSession,
    *,
    org_id: str,
    agent: str,
    trigger_type: str,
    input_summary: str,
    started_at: datetime,
) -> AgentRun:
    run = AgentRun(
        org_id=org_id,
        agent=agent,
        trigger_type=trigger_type,
        status=RUN_STATUS_RUNNING,
        input_summary=input_summary,
        started_at=started_at,
    )
    session.add(run)
    return run


async def get_run(session: AsyncSession, run_id: str) -> AgentRun | None:
    result = await session.execute(select(AgentRun).where(AgentRun.id == run_id))
    return result.scalar_one_or_none()


async def mark_completed(
    session: AsyncSession,
    run_id: str,
    *,
    output_summary: str,
    tokens_used: int,
    cost_usd: Decimal,
    duration_ms: int,
    completed_at: datetime,
) -> bool:
    # Guard on status so a run receives exactly one terminal update.
    result = await session.execute(
        update(AgentRun)
        .where(AgentRun.id == run_id, AgentRun.status == RUN_STATUS_RUNNING)
        .values(
            status=RUN_STATUS_COMPLETED,
            output_summary=output_summary,
            tokens_used=tokens_used,
            cost_usd=cost_usd,
            duration_ms=duration_ms,
            completed_at=completed_at,
        )
    )
    return (result.rowcount or 0) > 0


async def mark_failed(
    session: AsyncSession,
    run_id: str,
    *,
    error_message: str,
    duration_ms: int | None,
    completed_at: datetime,
) -> bool:
    result = await session.execute(
        update(AgentRun)
        .where(AgentRun.id == run_id, AgentRun.status == RUN_STATUS_RUNNING)
        .values(
            status=RUN_STATUS_FAILED,
            error_message=error_message,
            duration_ms=duration_ms,
            completed_at=completed_at,
        )
    )
    return (result.rowcount or 0) > 0


def add_suggestions(
    session: AsyncSession,
    *,
    org_id: str,
    run_id: str,
    agent: str,
    suggestions: Iterable[SuggestionInput],
) -> list[Suggestion]:
    rows = [
        Suggestion(
            org_id=org_id,
            agent_run_id=run_id,
            agent=agent,
            entity_type=item.entity_type,
            entity_id=item.entity_id,
            suggestion_type=item.suggestion_type,
            title=item.title,
            description=item.description,
            suggested_changes=item.changes_payload(),
            confidence=item.confidence,
            status=SUGGESTION_PENDING,
        )
        for item in suggestions
    ]
    session.add_all(rows)
    return rows


async def list_running_started_before(session: AsyncSession, cutoff: datetime) -> list[AgentRun]:
    result = await session.execute(
        select(AgentRun)
        .where(AgentRun.status == RUN_STATUS_RUNNING, AgentRun.started_at < cutoff)
        .order_by(AgentRun.started_at)
    )
    return list(result.scalars().all())


async def list_suggestions_for_run(session: AsyncSession, run_id: str) -> list[Suggestion]:
    result = await session.execute(
        select(Suggestion).where(Suggestion.agent_run_id == run_id).order_by(Suggestion.created_at, Suggestion.id)
    )
    return list(result.scalars().all())
