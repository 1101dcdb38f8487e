from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import DatastoreError
from auditready.domain.constants import CHECKPOINT_PENDING
from auditready.domain.models import Checkpoint, Control
from auditready.persistence.repos import checkpoints as checkpoints_repo
from auditready.persistence.repos import controls as controls_repo
from auditready.services.audit import record_event
from auditready.services.checkpoints.catalog import (
    DEFAULT_CONTROLS,
    DEFAULT_SCHEDULE,
    ControlTemplate,
    ScheduleRow,
)


logger = logging.getLogger(__name__)

SEED_STATUS_SEEDED = "seeded"
SEED_STATUS_REJECTED = "rejected"
ALREADY_SEEDED_MESSAGE = "Compliance checkpoints are already loaded for this organization."


@dataclass(frozen=True)
class SeedResult:
    status: str
    controls_created: int = 0
    checkpoints_created: int = 0
    message: str | None = None

    @property
    def rejected(self) -> bool:
        return self.status == SEED_STATUS_REJECTED


def _rejected(message: str) -> SeedResult:
    return SeedResult(status=SEED_STATUS_REJECTED, message=message)


async def seed_schedule(
    sessionmaker: async_sessionmaker[AsyncSession],
    org_id: str,
    *,
    controls: Sequence[ControlTemplate] = DEFAULT_CONTROLS,
    schedule: Sequence[ScheduleRow] = DEFAULT_SCHEDULE,
    actor_id: str | None = None,
) -> SeedResult:
    """Load a control catalog and its checkpoint schedule once per organization.

    Any existing checkpoint rejects the whole seed. Controls are upserted by
    code first; checkpoints are inserted only after every control resolves,
    and both phases share one transaction so a failure leaves nothing behind.
    """
    templates = {template.code: template for template in controls}
    unknown = sorted({row.control_code for row in schedule} - set(templates))
    try:
        async with sessionmaker() as session:
            async with session.begin():
                if await checkpoints_repo.count_for_org(session, org_id) > 0:
                    logger.info("checkpoint_seed_rejected org_id=%s reason=already_seeded", org_id)
                    return _rejected(ALREADY_SEEDED_MESSAGE)

                # Phase 1: controls, skipping codes the organization already has.
                code_to_id = await controls_repo.control_ids_by_code(session, org_id)
                missing = [code for code in unknown if code not in code_to_id]
                if missing:
                    return _rejected(f"Schedule references unknown control codes: {', '.join(missing)}.")
                new_controls = [
                    Control(
                        org_id=org_id,
                        code=template.code,
                        title=template.title,
                        standard=template.standard,
                        category=template.category,
                        test_procedure=template.test_procedure,
                        required_evidence=list(template.required_evidence),
                        frequency=template.frequency,
                        default_owner_role=template.default_owner_role,
                        is_active=True,
                    )
                    for code, template in templates.items()
                    if code not in code_to_id
                ]
                session.add_all(new_controls)
                await session.flush()
                code_to_id.update({control.code: control.id for control in new_controls})

                # Phase 2: checkpoints referencing resolved control ids.
                session.add_all(
                    [
                        Checkpoint(
                            org_id=org_id,
                            control_id=code_to_id[row.control_code],
                            period=row.period,
                            status=CHECKPOINT_PENDING,
                            due_date=row.due_date,
                            assignee_name=row.assignee_name,
                            assigned_to=None,
                        )
                        for row in schedule
                    ]
                )
    except SQLAlchemyError as exc:
        raise DatastoreError(f"checkpoint seeding failed for org {org_id}: {exc}") from exc

    result = SeedResult(
        status=SEED_STATUS_SEEDED,
        controls_created=len(new_controls),
        checkpoints_created=len(schedule),
    )
    logger.info(
        "checkpoints_seeded org_id=%s controls=%s checkpoints=%s",
        org_id,
        result.controls_created,
        result.checkpoints_created,
    )
    await record_event(
        sessionmaker,
        org_id=org_id,
        actor_id=actor_id,
        action="checkpoints.seed",
        entity_type="checkpoint",
        metadata={"controls": result.controls_created, "checkpoints": result.checkpoints_created},
    )
    return result
