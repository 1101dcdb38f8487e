from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auditready.domain.constants import MEETING_READY
from auditready.domain.models import QMMeeting


async def find_meeting(session: AsyncSession, org_id: str, period: str) -> QMMeeting | None:
    # First row wins if legacy data ever holds duplicates for a period.
    result = await session.execute(
        select(QMMeeting)
        .where(QMMeeting.org_id == org_id, QMMeeting.period == period)
        .order_by(QMMeeting.created_at, QMMeeting.id)
        .limit(1)
    )
    return result.scalars().first()


def create_meeting(
    session: AsyncSession,
    *,
    org_id: str,
    period: str,
    executive_summary: str,
    agenda: list[str],
    audit_readiness_score: int,
) -> QMMeeting:
    meeting = QMMeeting(
        org_id=org_id,
        period=period,
        status=MEETING_READY,
        executive_summary=executive_summary,
        agenda=list(agenda),
        audit_readiness_score=audit_readiness_score,
        attendees=[],
    )
    session.add(meeting)
    return meeting


def refresh_meeting_packet(
    meeting: QMMeeting,
    *,
    executive_summary: str,
    agenda: list[str],
    audit_readiness_score: int,
    updated_at: datetime,
) -> None:
    # Only packet fields change; attendees, meeting_date and action items are kept.
    meeting.executive_summary = executive_summary
    meeting.agenda = list(agenda)
    meeting.audit_readiness_score = audit_readiness_score
    meeting.status = MEETING_READY
    meeting.updated_at = updated_at
