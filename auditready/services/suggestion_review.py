from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import DatastoreError, SuggestionReviewError
from auditready.domain.constants import SUGGESTION_PENDING, SUGGESTION_REVIEW_DECISIONS
from auditready.domain.models import Suggestion
from auditready.services.audit import record_event


logger = logging.getLogger(__name__)


async def review_suggestion(
    sessionmaker: async_sessionmaker[AsyncSession],
    suggestion_id: str,
    *,
    decision: str,
    reviewer_id: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Suggestion:
    # A suggestion is reviewed exactly once; later decisions are refused.
    if decision not in SUGGESTION_REVIEW_DECISIONS:
        raise SuggestionReviewError(
            f"Unknown review decision {decision!r}; expected one of {', '.join(SUGGESTION_REVIEW_DECISIONS)}."
        )
    reviewed_at = now or datetime.now(timezone.utc)
    try:
        async with sessionmaker() as session:
            async with session.begin():
                result = await session.execute(select(Suggestion).where(Suggestion.id == suggestion_id))
                suggestion = result.scalar_one_or_none()
                if suggestion is None:
                    raise SuggestionReviewError(f"Suggestion {suggestion_id} not found.")
                if suggestion.status != SUGGESTION_PENDING:
                    raise SuggestionReviewError(
                        f"Suggestion {suggestion_id} was already reviewed ({suggestion.status})."
                    )
                suggestion.status = decision
                suggestion.reviewed_by = reviewer_id
                suggestion.reviewed_at = reviewed_at
                suggestion.review_notes = notes
    except SQLAlchemyError as exc:
        raise DatastoreError(f"could not review suggestion {suggestion_id}: {exc}") from exc

    logger.info(
        "suggestion_reviewed suggestion_id=%s decision=%s reviewer_id=%s",
        suggestion_id,
        decision,
        reviewer_id,
    )
    await record_event(
        sessionmaker,
        org_id=suggestion.org_id,
        actor_id=reviewer_id,
        action="suggestions.review",
        entity_type="suggestion",
        entity_id=suggestion_id,
        metadata={"decision": decision, "agent": suggestion.agent, "agent_run_id": suggestion.agent_run_id},
    )
    return suggestion
