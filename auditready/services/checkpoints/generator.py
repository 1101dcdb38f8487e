from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import DatastoreError
from auditready.domain.constants import CHECKPOINT_PENDING
from auditready.domain.models import Checkpoint
from auditready.persistence.repos import checkpoints as checkpoints_repo
from auditready.persistence.repos import controls as controls_repo
from auditready.services.audit import record_event
from auditready.services.checkpoints.calendar import (
    last_business_day,
    matches_period,
    parse_period,
    period_label,
)
from auditready.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    period: str
    created: int
    skipped: int
    due_date: date | None = None


async def generate_for_period(
    sessionmaker: async_sessionmaker[AsyncSession],
    org_id: str,
    period: str,
    *,
    actor_id: str | None = None,
) -> GenerateResult:
    """Instantiate pending checkpoints for every active control due in ``period``.

    Re-running for the same period creates nothing: existing
    (control, period key) pairs are counted as skipped.
    """
    year, month = parse_period(period)
    due_date = last_business_day(year, month)
    try:
        async with sessionmaker() as session:
            async with session.begin():
                controls = [
                    control
                    for control in await controls_repo.list_active_controls(session, org_id)
                    if matches_period(control.frequency, month)
                ]
                if not controls:
                    return GenerateResult(period=period, created=0, skipped=0, due_date=due_date)

                labels = {control.id: period_label(control.frequency, year, month) for control in controls}
                existing = await checkpoints_repo.existing_control_periods(session, org_id, labels.values())
                members = await controls_repo.members_by_role(session, org_id)

                created = 0
                skipped = 0
                for control in controls:
                    label = labels[control.id]
                    if (control.id, label) in existing:
                        skipped += 1
                        continue
                    candidates = members.get(control.default_owner_role or "", [])
                    session.add(
                        Checkpoint(
                            org_id=org_id,
                            control_id=control.id,
                            period=label,
                            status=CHECKPOINT_PENDING,
                            due_date=due_date,
                            assigned_to=candidates[0] if candidates else None,
                        )
                    )
                    # Guard against two controls mapping to one key within this batch.
                    existing.add((control.id, label))
                    created += 1
    except SQLAlchemyError as exc:
        raise DatastoreError(f"checkpoint generation failed for {period}: {exc}") from exc

    increment_counter("checkpoints_generated_total", created)
    logger.info(
        "checkpoints_generated org_id=%s period=%s created=%s skipped=%s due_date=%s",
        org_id,
        period,
        created,
        skipped,
        due_date.isoformat(),
    )
    if created:
        await record_event(
            sessionmaker,
            org_id=org_id,
            actor_id=actor_id,
            action="checkpoints.generate",
            entity_type="checkpoint",
            metadata={
                "period": period,
                "generated": created,
                "skipped": skipped,
                "due_date": due_date.isoformat(),
            },
        )
    return GenerateResult(period=period, created=created, skipped=skipped, due_date=due_date)
