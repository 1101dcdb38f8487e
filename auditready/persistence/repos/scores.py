from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from auditready.domain.models import AuditReadinessScore


_SCORE_FIELDS = ("overall_score", "checkpoint_score", "evidence_score", "policy_score", "capa_score")


async def upsert_score(
    session: AsyncSession,
    *,
    org_id: str,
    period: str,
    scores: dict[str, int],
    calculated_at: datetime,
) -> None:
    values = {field: int(scores[field]) for field in _SCORE_FIELDS}
    values["calculated_at"] = calculated_at
    # (org_id, period) is the conflict target; recomputation overwrites in place.
    dialect = session.get_bind().dialect.name
    insert_fn = sqlite.insert if dialect == "sqlite" else postgresql.insert
    stmt = insert_fn(AuditReadinessScore).values(org_id=org_id, period=period, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[AuditReadinessScore.org_id, AuditReadinessScore.period],
        set_=values,
    )
    await session.execute(stmt)


async def get_score(session: AsyncSession, org_id: str, period: str) -> AuditReadinessScore | None:
    result = await session.execute(
        select(AuditReadinessScore).where(
            AuditReadinessScore.org_id == org_id, AuditReadinessScore.period == period
        )
    )
    return result.scalar_one_or_none()


async def recent_scores(session: AsyncSession, org_id: str, limit: int = 6) -> list[AuditReadinessScore]:
    # Newest first; callers reverse for chronological display.
    result = await session.execute(
        select(AuditReadinessScore)
        .where(AuditReadinessScore.org_id == org_id)
        .order_by(AuditReadinessScore.period.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
