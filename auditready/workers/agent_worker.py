from __future__ import annotations

import logging

from arq import cron
from arq.worker import func
from arq.connections import RedisSettings
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.domain.constants import (
    AGENT_COMPLIANCE_MONITOR,
    AGENT_EVIDENCE_LIBRARIAN,
    AGENT_POLICY_GUARDIAN,
    AGENT_QM_ORCHESTRATOR,
    TRIGGER_SCHEDULED,
)
from auditready.domain.models import Organization
from auditready.persistence.db import SessionLocal
from auditready.providers.llm.factory import get_completion_provider
from auditready.services.agents.dispatch import run_agent
from auditready.services.agents.ledger import reap_stale_runs
from auditready.services.agents.queue import RUN_AGENT_JOB, AgentJobPayload
from auditready.services.overdue import sweep_overdue


logger = logging.getLogger(__name__)


async def _active_org_ids(sessionmaker: async_sessionmaker[AsyncSession]) -> list[str]:
    async with sessionmaker() as session:
        result = await session.execute(
            select(Organization.id).where(Organization.is_active.is_(True)).order_by(Organization.id)
        )
        return list(result.scalars().all())


async def _fan_out(ctx, agent: str) -> dict[str, int]:
    # One org failing must not starve the rest; each failure is already on its run record.
    sessionmaker = ctx["sessionmaker"]
    provider = ctx["provider"]
    completed = 0
    failed = 0
    for org_id in await _active_org_ids(sessionmaker):
        try:
            await run_agent(sessionmaker, provider, agent, org_id, TRIGGER_SCHEDULED)
            completed += 1
        except Exception:  # noqa: BLE001 - keep the scheduled pass alive while surfacing failures in worker logs.
            failed += 1
            logger.exception("scheduled_agent_run_failed agent=%s org_id=%s", agent, org_id)
    logger.info("scheduled_agent_pass agent=%s completed=%s failed=%s", agent, completed, failed)
    return {"completed": completed, "failed": failed}


async def run_compliance_monitor(ctx) -> dict[str, int]:
    return await _fan_out(ctx, AGENT_COMPLIANCE_MONITOR)


async def run_evidence_librarian(ctx) -> dict[str, int]:
    return await _fan_out(ctx, AGENT_EVIDENCE_LIBRARIAN)


async def run_policy_guardian(ctx) -> dict[str, int]:
    return await _fan_out(ctx, AGENT_POLICY_GUARDIAN)


async def run_qm_orchestrator(ctx) -> dict[str, int]:
    return await _fan_out(ctx, AGENT_QM_ORCHESTRATOR)


async def run_overdue_sweep(ctx) -> dict[str, int]:
    result = await sweep_overdue(ctx["sessionmaker"])
    return {
        "marked_overdue": result.marked_overdue,
        "overdue_notifications": result.overdue_notifications,
        "reminders": result.reminders,
    }


async def run_stale_reaper(ctx) -> int:
    return len(await reap_stale_runs(ctx["sessionmaker"]))


async def run_agent_job(ctx, payload: dict) -> str:
    # Event and manual triggers arrive as queued payloads.
    job = AgentJobPayload.model_validate(payload)
    result = await run_agent(
        ctx["sessionmaker"],
        ctx["provider"],
        job.agent,
        job.org_id,
        job.trigger_type,
        period=job.period,
    )
    return result.run_id


async def _startup(ctx) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    ctx["sessionmaker"] = SessionLocal
    ctx["provider"] = get_completion_provider()
    logger.info("agent_worker_started queue=%s provider=%s", settings.agent_queue_name, ctx["provider"].name)


async def _shutdown(ctx) -> None:
    logger.info("agent_worker_stopped")


class WorkerSettings:
    # Keep worker settings as class attributes for arq CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.agent_queue_name
    functions = [func(run_agent_job, name=RUN_AGENT_JOB)]
    cron_jobs = [
        cron(run_overdue_sweep, hour=5, minute=0),
        cron(run_compliance_monitor, hour=6, minute=0),
        cron(run_evidence_librarian, weekday="mon", hour=7, minute=0),
        cron(run_policy_guardian, weekday="mon", hour=7, minute=30),
        cron(run_qm_orchestrator, day=1, hour=8, minute=0),
        cron(run_stale_reaper, minute=15),
    ]
    # Scheduled passes fan out across every org; allow long-running jobs.
    job_timeout = 3600
    on_startup = _startup
    on_shutdown = _shutdown
