from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from auditready.core.config import get_settings
from auditready.core.errors import SuggestionReviewError
from auditready.domain.constants import SUGGESTION_REVIEW_DECISIONS
from auditready.persistence.db import SessionLocal
from auditready.services.suggestion_review import review_suggestion


async def _run_review(suggestion_id: str, decision: str, reviewer_id: str, notes: str | None) -> int:
    try:
        suggestion = await review_suggestion(
            SessionLocal,
            suggestion_id,
            decision=decision,
            reviewer_id=reviewer_id,
            notes=notes,
        )
    except SuggestionReviewError as exc:
        print(f"error={exc}")
        return 1
    print(f"suggestion_id={suggestion.id}")
    print(f"status={suggestion.status}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Record a human review decision on an agent suggestion")
    parser.add_argument("--suggestion-id", required=True)
    parser.add_argument("--decision", required=True, choices=list(SUGGESTION_REVIEW_DECISIONS))
    parser.add_argument("--reviewer-id", required=True)
    parser.add_argument("--notes", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    sys.exit(asyncio.run(_run_review(args.suggestion_id, args.decision, args.reviewer_id, args.notes)))


if __name__ == "__main__":
    main()
