from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from auditready.core.config import get_settings
from auditready.domain.constants import AGENT_NAMES, TRIGGER_TYPES
from auditready.persistence.db import SessionLocal
from auditready.providers.llm.factory import get_completion_provider
from auditready.services.agents.dispatch import run_agent
from auditready.services.agents.queue import enqueue_agent_run


async def _run(agent: str, org_id: str, trigger_type: str, period: str | None, enqueue: bool) -> int:
    # Either hand the run to the agent worker or execute it inline.
    if enqueue:
        job_id = await enqueue_agent_run(agent, org_id, trigger_type=trigger_type, period=period)
        print(f"job_id={job_id}")
        return 0
    provider = get_completion_provider()
    try:
        result = await run_agent(SessionLocal, provider, agent, org_id, trigger_type, period=period)
    except Exception as exc:  # noqa: BLE001 - surface the stored run error to the operator.
        print(f"status=failed error={exc}")
        return 1
    print(f"run_id={result.run_id}")
    print("status=completed")
    print(f"suggestions={result.suggestion_count}")
    print(f"used_fallback={str(result.used_fallback).lower()}")
    if result.meeting_id:
        print(f"meeting_id={result.meeting_id}")
    print(f"summary={result.summary}")
    return 0


def main() -> None:
    # Parse CLI flags for a manual or event-style agent run.
    parser = argparse.ArgumentParser(description="Run one compliance analysis agent for an organization")
    parser.add_argument("--agent", required=True, choices=list(AGENT_NAMES))
    parser.add_argument("--org-id", required=True)
    parser.add_argument("--trigger", default="manual", choices=list(TRIGGER_TYPES))
    parser.add_argument("--period", default=None, help="YYYY-MM; qm_orchestrator only")
    parser.add_argument("--enqueue", action="store_true", help="queue the run for the agent worker")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    sys.exit(asyncio.run(_run(args.agent, args.org_id, args.trigger, args.period, args.enqueue)))


if __name__ == "__main__":
    main()
