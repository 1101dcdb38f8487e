from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.core.errors import DatastoreError
from auditready.domain.constants import (
    CHECKPOINT_OVERDUE,
    CHECKPOINT_PENDING,
    NOTIFICATION_CHECKPOINT_DUE,
    NOTIFICATION_OVERDUE,
)
from auditready.domain.models import Checkpoint, Control, Notification
from auditready.services.audit import record_event


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    marked_overdue: int
    overdue_notifications: int
    reminders: int


async def _pending_due_before(
    session: AsyncSession, cutoff: date, org_id: str | None
) -> list[tuple[Checkpoint, Control]]:
    stmt = (
        select(Checkpoint, Control)
        .join(Control, Control.id == Checkpoint.control_id)
        .where(Checkpoint.status == CHECKPOINT_PENDING, Checkpoint.due_date < cutoff)
    )
    if org_id:
        stmt = stmt.where(Checkpoint.org_id == org_id)
    result = await session.execute(stmt.order_by(Checkpoint.due_date, Checkpoint.id))
    return [(checkpoint, control) for checkpoint, control in result.all()]


async def _pending_due_between(
    session: AsyncSession, start: date, end: date, org_id: str | None
) -> list[tuple[Checkpoint, Control]]:
    stmt = (
        select(Checkpoint, Control)
        .join(Control, Control.id == Checkpoint.control_id)
        .where(
            Checkpoint.status == CHECKPOINT_PENDING,
            Checkpoint.due_date >= start,
            Checkpoint.due_date <= end,
            Checkpoint.assigned_to.is_not(None),
        )
    )
    if org_id:
        stmt = stmt.where(Checkpoint.org_id == org_id)
    result = await session.execute(stmt.order_by(Checkpoint.due_date, Checkpoint.id))
    return [(checkpoint, control) for checkpoint, control in result.all()]


async def _already_notified(session: AsyncSession, checkpoint_ids: list[str], kind: str) -> set[tuple[str, str]]:
    if not checkpoint_ids:
        return set()
    result = await session.execute(
        select(Notification.entity_id, Notification.user_id).where(
            Notification.type == kind,
            Notification.entity_id.in_(checkpoint_ids),
        )
    )
    return {(entity_id, user_id) for entity_id, user_id in result.all()}


async def sweep_overdue(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    today: date | None = None,
    org_id: str | None = None,
    reminder_window_days: int | None = None,
) -> SweepResult:
    """Daily pass: flip past-due pending checkpoints to overdue and notify assignees.

    Pending checkpoints due within the reminder window get one
    ``checkpoint_due`` reminder per assignee.
    """
    today = today or datetime.now(timezone.utc).date()
    window = reminder_window_days if reminder_window_days is not None else get_settings().reminder_window_days
    horizon = today + timedelta(days=window)
    per_org: Counter[str] = Counter()
    notified = 0
    reminders = 0
    try:
        async with sessionmaker() as session:
            async with session.begin():
                for checkpoint, control in await _pending_due_before(session, today, org_id):
                    checkpoint.status = CHECKPOINT_OVERDUE
                    per_org[checkpoint.org_id] += 1
                    if checkpoint.assigned_to:
                        session.add(
                            Notification(
                                org_id=checkpoint.org_id,
                                user_id=checkpoint.assigned_to,
                                type=NOTIFICATION_OVERDUE,
                                title=f"Overdue: {control.title}",
                                message=(
                                    f"Checkpoint {control.code} for {checkpoint.period} was due "
                                    f"{checkpoint.due_date.isoformat()} and is now overdue."
                                ),
                                entity_type="checkpoint",
                                entity_id=checkpoint.id,
                            )
                        )
                        notified += 1

                upcoming = await _pending_due_between(session, today, horizon, org_id)
                sent = await _already_notified(
                    session, [checkpoint.id for checkpoint, _ in upcoming], NOTIFICATION_CHECKPOINT_DUE
                )
                for checkpoint, control in upcoming:
                    if (checkpoint.id, checkpoint.assigned_to) in sent:
                        continue
                    session.add(
                        Notification(
                            org_id=checkpoint.org_id,
                            user_id=checkpoint.assigned_to,
                            type=NOTIFICATION_CHECKPOINT_DUE,
                            title=f"Due {checkpoint.due_date.isoformat()}: {control.title}",
                            message=(
                                f"Your compliance checkpoint {control.code} is due on "
                                f"{checkpoint.due_date.isoformat()}. Complete the test procedure, "
                                "upload evidence, and attest pass or fail."
                            ),
                            entity_type="checkpoint",
                            entity_id=checkpoint.id,
                        )
                    )
                    reminders += 1
    except SQLAlchemyError as exc:
        raise DatastoreError(f"overdue sweep failed: {exc}") from exc

    result = SweepResult(marked_overdue=sum(per_org.values()), overdue_notifications=notified, reminders=reminders)
    logger.info(
        "overdue_sweep_done today=%s marked_overdue=%s notifications=%s reminders=%s",
        today.isoformat(),
        result.marked_overdue,
        result.overdue_notifications,
        result.reminders,
    )
    for swept_org, count in sorted(per_org.items()):
        await record_event(
            sessionmaker,
            org_id=swept_org,
            actor_id=None,
            action="checkpoints.overdue_sweep",
            entity_type="checkpoint",
            metadata={"date": today.isoformat(), "marked_overdue": count},
        )
    return result
