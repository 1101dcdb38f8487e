from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import UnknownAgentError
from auditready.domain.constants import (
    AGENT_COMPLIANCE_MONITOR,
    AGENT_EVIDENCE_LIBRARIAN,
    AGENT_NAMES,
    AGENT_POLICY_GUARDIAN,
    AGENT_QM_ORCHESTRATOR,
    TRIGGER_MANUAL,
    TRIGGER_TYPES,
)
from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents import (
    compliance_monitor,
    evidence_librarian,
    policy_guardian,
    qm_orchestrator,
)
from auditready.services.agents.pipeline import AgentRunResult
from auditready.services.resilience import RetryPolicy


logger = logging.getLogger(__name__)

_PIPELINES: dict[str, Callable[..., Awaitable[AgentRunResult]]] = {
    AGENT_COMPLIANCE_MONITOR: compliance_monitor.run,
    AGENT_EVIDENCE_LIBRARIAN: evidence_librarian.run,
    AGENT_POLICY_GUARDIAN: policy_guardian.run,
    AGENT_QM_ORCHESTRATOR: qm_orchestrator.run,
}


def validate_agent(agent: str) -> str:
    if agent not in AGENT_NAMES:
        raise UnknownAgentError(f"Unknown agent {agent!r}; expected one of {', '.join(AGENT_NAMES)}.")
    return agent


def validate_trigger(trigger_type: str) -> str:
    if trigger_type not in TRIGGER_TYPES:
        raise ValueError(f"Unknown trigger type {trigger_type!r}; expected one of {', '.join(TRIGGER_TYPES)}.")
    return trigger_type


async def run_agent(
    sessionmaker: async_sessionmaker[AsyncSession],
    provider: CompletionProvider,
    agent: str,
    org_id: str,
    trigger_type: str = TRIGGER_MANUAL,
    *,
    period: str | None = None,
    now: datetime | None = None,
    retry_policy: RetryPolicy | None = None,
) -> AgentRunResult:
    pipeline = _PIPELINES[validate_agent(agent)]
    validate_trigger(trigger_type)
    kwargs: dict[str, Any] = {"now": now, "retry_policy": retry_policy}
    # Only the QM packet is period-addressable; the other agents analyze the current period.
    if agent == AGENT_QM_ORCHESTRATOR:
        kwargs["period"] = period
    elif period is not None:
        logger.info("agent_period_ignored agent=%s period=%s", agent, period)
    return await pipeline(sessionmaker, provider, org_id, trigger_type, **kwargs)
