from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from auditready.domain.models import Checkpoint
from auditready.services.overdue import sweep_overdue
from auditready.tests.utils.records import (
    add_checkpoint,
    add_control,
    create_org,
    list_audit_actions,
    list_notifications,
)

TODAY = date(2026, 3, 16)


@pytest.mark.asyncio
async def test_sweep_marks_overdue_and_sends_reminders_once(sessionmaker, org_id) -> None:
    control = await add_control(sessionmaker, org_id, code="EMER-DRILL-001")
    late = await add_checkpoint(
        sessionmaker, org_id, control.id, period="2026-03", due_date=date(2026, 3, 13), assigned_to="user-wayne"
    )
    late_unassigned = await add_checkpoint(sessionmaker, org_id, control.id, period="2026-02", due_date=date(2026, 2, 27))
    soon = await add_checkpoint(
        sessionmaker, org_id, control.id, period="2026-03", due_date=date(2026, 3, 20), assigned_to="user-emily"
    )
    await add_checkpoint(
        sessionmaker, org_id, control.id, period="2026-03", due_date=date(2026, 3, 31), assigned_to="user-brian"
    )
    await add_checkpoint(
        sessionmaker, org_id, control.id, period="2026-03", due_date=date(2026, 3, 2), status="passed"
    )

    result = await sweep_overdue(sessionmaker, today=TODAY, reminder_window_days=7)

    assert (result.marked_overdue, result.overdue_notifications, result.reminders) == (2, 1, 1)
    async with sessionmaker() as session:
        statuses = dict((await session.execute(select(Checkpoint.id, Checkpoint.status))).all())
    assert statuses[late.id] == "overdue"
    assert statuses[late_unassigned.id] == "overdue"
    assert statuses[soon.id] == "pending"
    notifications = await list_notifications(sessionmaker, org_id)
    assert [(n.type, n.user_id, n.entity_id) for n in notifications] == [
        ("checkpoint_due", "user-emily", soon.id),
        ("overdue", "user-wayne", late.id),
    ]
    assert notifications[1].title == "Overdue: EMER-DRILL-001 control"

    again = await sweep_overdue(sessionmaker, today=TODAY, reminder_window_days=7)
    assert (again.marked_overdue, again.overdue_notifications, again.reminders) == (0, 0, 0)
    assert await list_audit_actions(sessionmaker, org_id) == ["checkpoints.overdue_sweep"]


@pytest.mark.asyncio
async def test_sweep_can_be_scoped_to_one_org(sessionmaker, org_id) -> None:
    other_org = await create_org(sessionmaker)
    mine = await add_control(sessionmaker, org_id)
    theirs = await add_control(sessionmaker, other_org)
    await add_checkpoint(sessionmaker, org_id, mine.id, period="2026-02", due_date=date(2026, 2, 27))
    untouched = await add_checkpoint(sessionmaker, other_org, theirs.id, period="2026-02", due_date=date(2026, 2, 27))

    result = await sweep_overdue(sessionmaker, today=TODAY, org_id=org_id)

    assert result.marked_overdue == 1
    async with sessionmaker() as session:
        assert (await session.get(Checkpoint, untouched.id)).status == "pending"
