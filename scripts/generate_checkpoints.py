from __future__ import annotations

import argparse
import asyncio
import logging

from auditready.core.config import get_settings
from auditready.persistence.db import SessionLocal
from auditready.services.checkpoints.calendar import current_period
from auditready.services.checkpoints.generator import generate_for_period


async def _run_generate(org_id: str, period: str, actor_id: str | None) -> None:
    result = await generate_for_period(SessionLocal, org_id, period, actor_id=actor_id)
    print(f"period={result.period}")
    print(f"created={result.created}")
    print(f"skipped={result.skipped}")
    if result.due_date:
        print(f"due_date={result.due_date.isoformat()}")


def main() -> None:
    # Parse CLI flags for period checkpoint generation; safe to re-run.
    parser = argparse.ArgumentParser(description="Generate checkpoints for active controls due in a period")
    parser.add_argument("--org-id", required=True)
    parser.add_argument("--period", default=None, help="YYYY-MM (defaults to the current month)")
    parser.add_argument("--actor-id", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    asyncio.run(_run_generate(args.org_id, args.period or current_period(), args.actor_id))


if __name__ == "__main__":
    main()
