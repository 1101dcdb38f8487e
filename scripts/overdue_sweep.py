from __future__ import annotations

import argparse
import asyncio
from datetime import date
import logging

from auditready.core.config import get_settings
from auditready.persistence.db import SessionLocal
from auditready.services.overdue import sweep_overdue


async def _run_sweep(today: date | None, org_id: str | None) -> None:
    result = await sweep_overdue(SessionLocal, today=today, org_id=org_id)
    print(f"marked_overdue={result.marked_overdue}")
    print(f"overdue_notifications={result.overdue_notifications}")
    print(f"reminders={result.reminders}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Mark past-due checkpoints overdue and send reminders")
    parser.add_argument("--date", default=None, help="YYYY-MM-DD (defaults to today, UTC)")
    parser.add_argument("--org-id", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    today = date.fromisoformat(args.date) if args.date else None
    asyncio.run(_run_sweep(today, args.org_id))


if __name__ == "__main__":
    main()
