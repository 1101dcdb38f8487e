from __future__ import annotations

from datetime import date
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auditready.domain.models import Checkpoint, Control, Evidence


async def existing_control_periods(
    session: AsyncSession, org_id: str, periods: Iterable[str]
) -> set[tuple[str, str]]:
    period_list = sorted(set(periods))
    if not period_list:
        return set()
    result = await session.execute(
        select(Checkpoint.control_id, Checkpoint.period).where(
            Checkpoint.org_id == org_id, Checkpoint.period.in_(period_list)
        )
    )
    return {(control_id, period) for control_id, period in result.all()}


async def count_for_org(session: AsyncSession, org_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Checkpoint).where(Checkpoint.org_id == org_id)
    )
    return int(result.scalar() or 0)


async def list_for_period(session: AsyncSession, org_id: str, period: str) -> list[tuple[Checkpoint, Control]]:
    result = await session.execute(
        select(Checkpoint, Control)
        .join(Control, Control.id == Checkpoint.control_id)
        .where(Checkpoint.org_id == org_id, Checkpoint.period == period)
        .order_by(Checkpoint.due_date, Checkpoint.id)
    )
    return [(checkpoint, control) for checkpoint, control in result.all()]


async def list_due_between(
    session: AsyncSession, org_id: str, start: date, end: date
) -> list[tuple[Checkpoint, Control]]:
    result = await session.execute(
        select(Checkpoint, Control)
        .join(Control, Control.id == Checkpoint.control_id)
        .where(
            Checkpoint.org_id == org_id,
            Checkpoint.due_date >= start,
            Checkpoint.due_date <= end,
        )
        .order_by(Checkpoint.due_date, Checkpoint.id)
    )
    return [(checkpoint, control) for checkpoint, control in result.all()]


async def evidence_counts(session: AsyncSession, checkpoint_ids: Iterable[str]) -> dict[str, int]:
    ids = list(checkpoint_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(Evidence.checkpoint_id, func.count())
        .where(Evidence.checkpoint_id.in_(ids))
        .group_by(Evidence.checkpoint_id)
    )
    return {checkpoint_id: int(count) for checkpoint_id, count in result.all()}
