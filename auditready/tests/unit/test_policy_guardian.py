from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from auditready.core.errors import CompletionRejectedError
from auditready.domain.models import Policy
from auditready.services.agents import policy_guardian
from auditready.services.resilience import RetryPolicy
from auditready.tests.utils.providers import ScriptedCompletionProvider
from auditready.tests.utils.records import add_control, add_policy, get_run, list_suggestions

NOW = datetime(2026, 3, 23, 7, 30, tzinfo=timezone.utc)
FAST_POLICY = RetryPolicy(timeout_ms=1000, max_attempts=3, backoff_ms=0)


async def _policy_library(sessionmaker, org_id: str) -> None:
    overdue = await add_policy(
        sessionmaker,
        org_id,
        next_review_date=date(2026, 3, 1),
        content_html="<p>Access   limited to the minimum necessary.</p>",
    )
    await add_policy(sessionmaker, org_id, status="in_review", next_review_date=date(2026, 4, 10), category="Safety")
    await add_policy(sessionmaker, org_id, status="draft", next_review_date=None, category="Clinical")
    # Retired policies are outside the review library.
    await add_policy(sessionmaker, org_id, status="retired", next_review_date=date(2025, 1, 1))
    await add_control(sessionmaker, org_id, code="HIPAA-PRIV-001", related_policy_ids=[overdue.id])


def test_review_windows_split_on_today() -> None:
    policies = [
        Policy(id="1", code="P1", title="t", category="A", status="effective", next_review_date=date(2026, 3, 22)),
        Policy(id="2", code="P2", title="t", category="A", status="effective", next_review_date=date(2026, 3, 23)),
        Policy(id="3", code="P3", title="t", category="B", status="effective", next_review_date=date(2026, 4, 22)),
        Policy(id="4", code="P4", title="t", category="B", status="effective", next_review_date=date(2026, 4, 23)),
    ]
    facts = policy_guardian.derive_facts(today=date(2026, 3, 23), policies=policies, active_controls=[], excerpts={})
    assert [p.code for p in facts.overdue_review] == ["P1"]
    assert [p.code for p in facts.due_within_30] == ["P2", "P3"]
    assert [p.code for p in facts.due_within_90] == ["P4"]
    assert facts.categories == ["A", "B"]


@pytest.mark.asyncio
async def test_run_reviews_live_policies(sessionmaker, org_id) -> None:
    await _policy_library(sessionmaker, org_id)
    reply = (
        '{"summary": "One policy is past its review date.", "suggestions": ['
        '{"entity_type": "policy", "suggestion_type": "review", "title": "Schedule privacy review",'
        ' "suggested_changes": {"kind": "schedule_review", "review_by": "2026-04-15", "reviewer_role": "compliance"}}'
        "]}"
    )
    provider = ScriptedCompletionProvider([reply])

    result = await policy_guardian.run(sessionmaker, provider, org_id, now=NOW, retry_policy=FAST_POLICY)

    assert result.suggestion_count == 1
    (stored,) = await list_suggestions(sessionmaker, result.run_id)
    assert stored.suggested_changes == {
        "kind": "schedule_review",
        "review_by": "2026-04-15",
        "reviewer_role": "compliance",
    }
    prompt = provider.prompts[0]
    assert "POLICY LIBRARY STATUS (3 total policies)" in prompt
    assert "- Overdue for review: 1" in prompt
    assert "- No review date set: 1" in prompt
    assert "<p>Access limited to the minimum necessary.</p>" in prompt
    assert "HIPAA-PRIV-001" in prompt


@pytest.mark.asyncio
async def test_rejected_completion_fails_without_retry(sessionmaker, org_id) -> None:
    await _policy_library(sessionmaker, org_id)
    provider = ScriptedCompletionProvider([CompletionRejectedError("anthropic rejected the request: invalid x-api-key")])

    with pytest.raises(CompletionRejectedError):
        await policy_guardian.run(sessionmaker, provider, org_id, now=NOW, retry_policy=FAST_POLICY)

    assert len(provider.prompts) == 1


@pytest.mark.asyncio
async def test_fallback_summary_reports_review_backlog(sessionmaker, org_id) -> None:
    await _policy_library(sessionmaker, org_id)
    provider = ScriptedCompletionProvider(["no structured output"])

    result = await policy_guardian.run(sessionmaker, provider, org_id, now=NOW, retry_policy=FAST_POLICY)

    assert result.summary == "Reviewed 3 policies. Found 1 overdue and 1 due within 30 days."
    assert (await get_run(sessionmaker, result.run_id)).output_summary == result.summary
