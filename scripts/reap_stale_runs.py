from __future__ import annotations

import argparse
import asyncio
import logging

from auditready.core.config import get_settings
from auditready.persistence.db import SessionLocal
from auditready.services.agents.ledger import reap_stale_runs


async def _run_reap(stale_after_s: int | None) -> None:
    # Close runs abandoned by crashed workers so reports stop showing them as in flight.
    reaped = await reap_stale_runs(SessionLocal, stale_after_s=stale_after_s)
    print(f"reaped_runs={len(reaped)}")
    for run_id in reaped:
        print(f"run_id={run_id}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Fail agent runs stuck in running past the stale bound")
    parser.add_argument("--stale-after-s", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    asyncio.run(_run_reap(args.stale_after_s))


if __name__ == "__main__":
    main()
