from __future__ import annotations

from datetime import datetime, timezone

import pytest

from auditready.core.errors import SuggestionReviewError
from auditready.domain.suggestions import SuggestionInput
from auditready.services.agents import ledger
from auditready.services.suggestion_review import review_suggestion
from auditready.tests.utils.records import list_audit_actions, list_suggestions


async def _pending_suggestion(sessionmaker, org_id: str) -> str:
    handle = await ledger.start(
        sessionmaker, org_id=org_id, agent="policy_guardian", trigger_type="manual", input_summary="review"
    )
    await ledger.complete(
        sessionmaker,
        handle,
        suggestions=[SuggestionInput(entity_type="policy", suggestion_type="review", title="Schedule review")],
        summary="One policy needs review.",
        tokens_used=50,
    )
    (suggestion,) = await list_suggestions(sessionmaker, handle.run_id)
    return suggestion.id


@pytest.mark.asyncio
async def test_review_records_the_decision_once(sessionmaker, org_id) -> None:
    suggestion_id = await _pending_suggestion(sessionmaker, org_id)
    reviewed_at = datetime(2026, 3, 24, 10, 0, tzinfo=timezone.utc)

    suggestion = await review_suggestion(
        sessionmaker,
        suggestion_id,
        decision="accepted",
        reviewer_id="user-compliance",
        notes="Scheduled for April committee.",
        now=reviewed_at,
    )

    assert suggestion.status == "accepted"
    assert suggestion.reviewed_by == "user-compliance"
    assert suggestion.review_notes == "Scheduled for April committee."
    with pytest.raises(SuggestionReviewError):
        await review_suggestion(sessionmaker, suggestion_id, decision="rejected", reviewer_id="user-other")
    assert await list_audit_actions(sessionmaker, org_id) == ["suggestions.review"]


@pytest.mark.asyncio
async def test_review_rejects_unknown_decisions_and_ids(sessionmaker, org_id) -> None:
    suggestion_id = await _pending_suggestion(sessionmaker, org_id)
    with pytest.raises(SuggestionReviewError):
        await review_suggestion(sessionmaker, suggestion_id, decision="pending", reviewer_id="user-1")
    with pytest.raises(SuggestionReviewError):
        await review_suggestion(sessionmaker, "missing-id", decision="accepted", reviewer_id="user-1")
