from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import OperationalError

from auditready.core.errors import DatastoreError, InvalidPeriodError
from auditready.domain.models import Checkpoint, Control
from auditready.services.checkpoints import generate_for_period, seed_schedule
from auditready.services.checkpoints.catalog import DEFAULT_CONTROLS, DEFAULT_SCHEDULE, ScheduleRow
from auditready.services.checkpoints.seeding import ALREADY_SEEDED_MESSAGE
from auditready.services.telemetry import counters_snapshot
from auditready.tests.utils.records import add_control, add_member, count_rows, list_audit_actions


async def _checkpoints(sessionmaker, org_id: str) -> list[Checkpoint]:
    async with sessionmaker() as session:
        result = await session.execute(
            select(Checkpoint).where(Checkpoint.org_id == org_id).order_by(Checkpoint.period)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_generate_creates_due_checkpoints_once(sessionmaker, org_id) -> None:
    monthly = await add_control(sessionmaker, org_id, code="CLIN-DOC-001", default_owner_role="clinical")
    quarterly = await add_control(sessionmaker, org_id, code="HIPAA-PRIV-001", frequency="quarterly")
    await add_control(sessionmaker, org_id, code="AUDIT-STRESS-001", frequency="annual")
    await add_control(sessionmaker, org_id, code="OLD-001", is_active=False)
    first_clinician = await add_member(
        sessionmaker, org_id, role="clinical", joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    await add_member(sessionmaker, org_id, role="clinical", joined_at=datetime(2025, 6, 1, tzinfo=timezone.utc))

    result = await generate_for_period(sessionmaker, org_id, "2026-03")

    assert (result.created, result.skipped) == (2, 0)
    assert result.due_date == date(2026, 3, 31)
    rows = {row.control_id: row for row in await _checkpoints(sessionmaker, org_id)}
    assert set(rows) == {monthly.id, quarterly.id}
    assert rows[monthly.id].period == "2026-03"
    assert rows[monthly.id].assigned_to == first_clinician
    assert rows[quarterly.id].period == "2026-Q1"
    assert rows[quarterly.id].assigned_to is None
    assert all(row.status == "pending" and row.due_date == date(2026, 3, 31) for row in rows.values())

    again = await generate_for_period(sessionmaker, org_id, "2026-03")
    assert (again.created, again.skipped) == (0, 2)
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == 2
    assert counters_snapshot()["checkpoints_generated_total"] == 2
    assert await list_audit_actions(sessionmaker, org_id) == ["checkpoints.generate"]


@pytest.mark.asyncio
async def test_generate_with_no_due_controls_creates_nothing(sessionmaker, org_id) -> None:
    await add_control(sessionmaker, org_id, frequency="annual")
    result = await generate_for_period(sessionmaker, org_id, "2026-04")
    assert (result.created, result.skipped) == (0, 0)
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == 0


@pytest.mark.asyncio
async def test_generate_rejects_malformed_period(sessionmaker, org_id) -> None:
    await add_control(sessionmaker, org_id)
    with pytest.raises(InvalidPeriodError):
        await generate_for_period(sessionmaker, org_id, "2026-3")
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == 0


@pytest.mark.asyncio
async def test_seed_loads_default_program_year_once(sessionmaker, org_id) -> None:
    result = await seed_schedule(sessionmaker, org_id)

    assert result.rejected is False
    assert result.controls_created == len(DEFAULT_CONTROLS)
    assert result.checkpoints_created == len(DEFAULT_SCHEDULE)
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == len(DEFAULT_SCHEDULE)
    checkpoints = await _checkpoints(sessionmaker, org_id)
    assert checkpoints[0].period == "2026-03"
    assert all(row.assignee_name and row.assigned_to is None for row in checkpoints)

    again = await seed_schedule(sessionmaker, org_id)
    assert again.rejected is True
    assert again.message == ALREADY_SEEDED_MESSAGE
    assert await count_rows(sessionmaker, Control, org_id=org_id) == len(DEFAULT_CONTROLS)
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == len(DEFAULT_SCHEDULE)
    assert await list_audit_actions(sessionmaker, org_id) == ["checkpoints.seed"]


@pytest.mark.asyncio
async def test_seed_reuses_existing_controls_by_code(sessionmaker, org_id) -> None:
    existing = await add_control(sessionmaker, org_id, code="GOV-QM-001")
    result = await seed_schedule(sessionmaker, org_id)

    assert result.controls_created == len(DEFAULT_CONTROLS) - 1
    async with sessionmaker() as session:
        linked = await session.execute(
            select(Checkpoint.id).where(Checkpoint.control_id == existing.id)
        )
        assert len(linked.all()) == sum(1 for row in DEFAULT_SCHEDULE if row.control_code == "GOV-QM-001")


@pytest.mark.asyncio
async def test_seed_with_unknown_control_code_writes_nothing(sessionmaker, org_id) -> None:
    schedule = (
        ScheduleRow(due_date=date(2026, 3, 4), control_code="GOV-QM-001", assignee_name="Wayne"),
        ScheduleRow(due_date=date(2026, 3, 9), control_code="NOPE-001", assignee_name="Brian"),
    )
    result = await seed_schedule(sessionmaker, org_id, schedule=schedule)

    assert result.rejected is True
    assert "NOPE-001" in (result.message or "")
    assert await count_rows(sessionmaker, Control, org_id=org_id) == 0
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == 0


@pytest.mark.asyncio
async def test_seed_rolls_back_controls_when_checkpoint_insert_fails(sessionmaker, org_id) -> None:
    def reject_checkpoint_insert(mapper, connection, target) -> None:
        raise OperationalError("INSERT INTO checkpoints", {}, Exception("disk I/O error"))

    event.listen(Checkpoint, "before_insert", reject_checkpoint_insert)
    try:
        with pytest.raises(DatastoreError, match="disk I/O error"):
            await seed_schedule(sessionmaker, org_id)
    finally:
        event.remove(Checkpoint, "before_insert", reject_checkpoint_insert)

    assert await count_rows(sessionmaker, Control, org_id=org_id) == 0
    assert await count_rows(sessionmaker, Checkpoint, org_id=org_id) == 0
    assert await list_audit_actions(sessionmaker, org_id) == []

    # Nothing half-written blocks a clean retry.
    retried = await seed_schedule(sessionmaker, org_id)
    assert retried.checkpoints_created == len(DEFAULT_SCHEDULE)
