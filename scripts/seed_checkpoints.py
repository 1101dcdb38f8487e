from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from auditready.core.config import get_settings
from auditready.persistence.db import SessionLocal
from auditready.services.checkpoints.seeding import seed_schedule


async def _run_seed(org_id: str, actor_id: str | None) -> int:
    # Load the default control catalog and program-year schedule once.
    result = await seed_schedule(SessionLocal, org_id, actor_id=actor_id)
    print(f"status={result.status}")
    if result.rejected:
        print(f"message={result.message}")
        return 2
    print(f"controls_created={result.controls_created}")
    print(f"checkpoints_created={result.checkpoints_created}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the default checkpoint schedule for an organization")
    parser.add_argument("--org-id", required=True)
    parser.add_argument("--actor-id", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    sys.exit(asyncio.run(_run_seed(args.org_id, args.actor_id)))


if __name__ == "__main__":
    main()
