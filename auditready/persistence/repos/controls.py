from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auditready.domain.models import Control, OrgMember


async def list_active_controls(session: AsyncSession, org_id: str) -> list[Control]:
    result = await session.execute(
        select(Control)
        .where(Control.org_id == org_id, Control.is_active.is_(True))
        .order_by(Control.code)
    )
    return list(result.scalars().all())


async def control_ids_by_code(session: AsyncSession, org_id: str) -> dict[str, str]:
    result = await session.execute(select(Control.code, Control.id).where(Control.org_id == org_id))
    return {code: control_id for code, control_id in result.all()}


async def members_by_role(session: AsyncSession, org_id: str) -> dict[str, list[str]]:
    # Preserve join order so "first member with the role" is stable.
    result = await session.execute(
        select(OrgMember.role, OrgMember.user_id)
        .where(OrgMember.org_id == org_id, OrgMember.is_active.is_(True))
        .order_by(OrgMember.joined_at, OrgMember.id)
    )
    grouped: dict[str, list[str]] = {}
    for role, user_id in result.all():
        grouped.setdefault(role, []).append(user_id)
    return grouped
