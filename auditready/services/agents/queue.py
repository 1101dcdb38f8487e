from __future__ import annotations

import asyncio
import logging

from arq import create_pool
from arq.connections import RedisSettings
from pydantic import BaseModel

from auditready.core.config import get_settings
from auditready.domain.constants import AgentName, TriggerType


logger = logging.getLogger(__name__)

_redis_pool = None
_redis_pool_loop = None
_redis_lock = asyncio.Lock()

RUN_AGENT_JOB = "run_agent_job"


class AgentJobPayload(BaseModel):
    # Schema for trigger-to-worker handoff.
    agent: AgentName
    org_id: str
    trigger_type: TriggerType = "event"
    period: str | None = None


async def get_redis_pool():
    # Cache the Redis pool to avoid reconnecting on every enqueue.
    global _redis_pool, _redis_pool_loop
    current_loop = asyncio.get_running_loop()
    if _redis_pool is not None and _redis_pool_loop == current_loop:
        return _redis_pool
    if _redis_pool is not None and _redis_pool_loop != current_loop:
        # Drop loop-bound pools to avoid cross-loop errors.
        _redis_pool = None
    async with _redis_lock:
        if _redis_pool is None:
            settings = get_settings()
            _redis_pool = await create_pool(
                RedisSettings.from_dsn(settings.redis_url),
                default_queue_name=settings.agent_queue_name,
            )
            _redis_pool_loop = current_loop
    return _redis_pool


async def enqueue_agent_run(
    agent: str,
    org_id: str,
    *,
    trigger_type: str = "event",
    period: str | None = None,
) -> str | None:
    """Queue one pipeline run for the agent worker.

    Returns the arq job id, or None when arq refused a duplicate job id.
    """
    payload = AgentJobPayload.model_validate(
        {"agent": agent, "org_id": org_id, "trigger_type": trigger_type, "period": period}
    )
    redis = await get_redis_pool()
    job = await redis.enqueue_job(
        RUN_AGENT_JOB,
        payload.model_dump(),
        _queue_name=get_settings().agent_queue_name,
    )
    job_id = job.job_id if job is not None else None
    logger.info(
        "agent_run_enqueued agent=%s org_id=%s trigger=%s job_id=%s",
        payload.agent,
        payload.org_id,
        payload.trigger_type,
        job_id,
    )
    return job_id
