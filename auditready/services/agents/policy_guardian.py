from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import logging
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.domain.constants import (
    AGENT_POLICY_GUARDIAN,
    POLICY_APPROVED,
    POLICY_DRAFT,
    POLICY_EFFECTIVE,
    POLICY_IN_REVIEW,
    TRIGGER_MANUAL,
)
from auditready.domain.models import Control, Policy, PolicyVersion
from auditready.persistence.repos import controls as controls_repo
from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents import ledger
from auditready.services.agents.extraction import StructuredExtractor, extract_json
from auditready.services.agents.pipeline import AgentRunResult, ask_model
from auditready.services.agents.prompts import bullet_lines, response_contract
from auditready.services.agents.reads import gather_reads, read
from auditready.services.resilience import RetryPolicy


logger = logging.getLogger(__name__)

LIVE_STATUSES = (POLICY_EFFECTIVE, POLICY_IN_REVIEW, POLICY_APPROVED, POLICY_DRAFT)
# Only the leading policies (soonest review first) are sampled for content.
CONTENT_SAMPLE_POLICIES = 10
CONTENT_EXCERPT_CHARS = 500


@dataclass(frozen=True)
class PolicyFacts:
    today: date
    policies: list[Policy]
    overdue_review: list[Policy]
    due_within_30: list[Policy]
    due_within_90: list[Policy]
    no_review_date: list[Policy]
    drafts: list[Policy]
    in_review: list[Policy]
    categories: list[str]
    controls_with_policies: list[Control]
    # policy_id -> leading excerpt of the current version
    excerpts: dict[str, str]


async def _live_policies(session: AsyncSession, org_id: str) -> list[Policy]:
    result = await session.execute(
        select(Policy)
        .where(Policy.org_id == org_id, Policy.status.in_(LIVE_STATUSES))
        .order_by(Policy.next_review_date.is_(None), Policy.next_review_date, Policy.code)
    )
    return list(result.scalars().all())


async def _version_excerpts(session: AsyncSession, version_ids: list[str]) -> dict[str, str]:
    if not version_ids:
        return {}
    result = await session.execute(
        select(PolicyVersion.policy_id, PolicyVersion.content_html).where(PolicyVersion.id.in_(version_ids))
    )
    return {policy_id: (content or "")[:CONTENT_EXCERPT_CHARS] for policy_id, content in result.all()}


def derive_facts(
    *,
    today: date,
    policies: Sequence[Policy],
    active_controls: Sequence[Control],
    excerpts: dict[str, str],
) -> PolicyFacts:
    horizon_30 = today + timedelta(days=30)
    horizon_90 = today + timedelta(days=90)
    dated = [policy for policy in policies if policy.next_review_date is not None]
    categories: list[str] = []
    for policy in policies:
        if policy.category and policy.category not in categories:
            categories.append(policy.category)
    return PolicyFacts(
        today=today,
        policies=list(policies),
        overdue_review=[p for p in dated if p.next_review_date < today],
        due_within_30=[p for p in dated if today <= p.next_review_date <= horizon_30],
        due_within_90=[p for p in dated if horizon_30 < p.next_review_date <= horizon_90],
        no_review_date=[p for p in policies if p.next_review_date is None],
        drafts=[p for p in policies if p.status == POLICY_DRAFT],
        in_review=[p for p in policies if p.status == POLICY_IN_REVIEW],
        categories=categories,
        controls_with_policies=[c for c in active_controls if c.related_policy_ids],
        excerpts=dict(excerpts),
    )


def fallback_summary(facts: PolicyFacts) -> str:
    return (
        f"Reviewed {len(facts.policies)} policies. Found {len(facts.overdue_review)} overdue "
        f"and {len(facts.due_within_30)} due within 30 days."
    )


def build_prompt(facts: PolicyFacts) -> str:
    overdue = bullet_lines(
        f"{p.code}: {p.title} ({p.category}) | Review was due: {p.next_review_date.isoformat()}"
        for p in facts.overdue_review
    )
    due_soon = bullet_lines(
        f"{p.code}: {p.title} ({p.category}) | Due: {p.next_review_date.isoformat()}"
        for p in facts.due_within_30
    )
    unscheduled = bullet_lines(
        (f"{p.code}: {p.title} ({p.category}, {p.status})" for p in facts.no_review_date),
        limit=8,
    )
    controls = bullet_lines(
        (f"{c.code}: {c.title} ({c.standard})" for c in facts.controls_with_policies),
        limit=10,
    )
    codes = {p.id: p.code for p in facts.policies}
    excerpts = bullet_lines(
        f"{codes.get(policy_id, policy_id)}: {' '.join(text.split())}"
        for policy_id, text in facts.excerpts.items()
        if text.strip()
    )
    categories = ", ".join(facts.categories) or "None"
    contract = response_contract(
        summary_hint="2-3 sentence plain-text summary of policy library health",
        entity_type="policy",
        suggestion_type="review",
        confidence=0.8,
    )
    return f"""You are the Policy Guardian agent for a compliance management system.

Today: {facts.today.isoformat()}

POLICY LIBRARY STATUS ({len(facts.policies)} total policies):
- Overdue for review: {len(facts.overdue_review)}
- Due for review within 30 days: {len(facts.due_within_30)}
- Due for review within 90 days: {len(facts.due_within_90)}
- No review date set: {len(facts.no_review_date)}
- In draft status: {len(facts.drafts)}
- Pending review/approval: {len(facts.in_review)}

POLICIES OVERDUE FOR REVIEW:
{overdue}

POLICIES DUE FOR REVIEW WITHIN 30 DAYS:
{due_soon}

POLICIES WITHOUT REVIEW DATE (need scheduling):
{unscheduled}

ACTIVE CONTROLS REFERENCING POLICIES:
{controls}

POLICY CATEGORIES REPRESENTED:
{categories}

CURRENT VERSION EXCERPTS (for conflict detection):
{excerpts}

Your task: review the policy library and generate actionable suggestions. Focus on:
1. Policies overdue for review, which create direct regulatory exposure
2. Upcoming review deadlines that need to be scheduled
3. Draft policies stuck without progression
4. Policies pending review that may be blocking effective implementation
5. Potential cross-category conflicts (e.g., HIPAA vs. Clinical, Safety vs. Operations)
6. Policies with no review schedule (missing cadence)

IMPORTANT: you cannot edit policies directly. All suggestions go through human approval.

{contract}

Generate 3-6 suggestions ranked by compliance priority. Be specific about policy codes and names."""


async def run(
    sessionmaker: async_sessionmaker[AsyncSession],
    provider: CompletionProvider,
    org_id: str,
    trigger_type: str = TRIGGER_MANUAL,
    *,
    now: datetime | None = None,
    retry_policy: RetryPolicy | None = None,
    extractor: StructuredExtractor = extract_json,
) -> AgentRunResult:
    now = now or datetime.now(timezone.utc)
    handle = await ledger.start(
        sessionmaker,
        org_id=org_id,
        agent=AGENT_POLICY_GUARDIAN,
        trigger_type=trigger_type,
        input_summary="Weekly policy review: conflict detection and review date tracking",
    )
    try:
        policies, active_controls = await gather_reads(
            read(sessionmaker, _live_policies, org_id),
            read(sessionmaker, controls_repo.list_active_controls, org_id),
        )
        version_ids = [
            p.current_version_id for p in policies[:CONTENT_SAMPLE_POLICIES] if p.current_version_id
        ]
        (excerpts,) = await gather_reads(read(sessionmaker, _version_excerpts, version_ids))
        facts = derive_facts(
            today=now.date(),
            policies=policies,
            active_controls=active_controls,
            excerpts=excerpts,
        )
        output, tokens_used = await ask_model(
            provider,
            build_prompt(facts),
            agent=AGENT_POLICY_GUARDIAN,
            max_output_tokens=get_settings().llm_max_output_tokens,
            retry_policy=retry_policy,
            extractor=extractor,
        )
        summary = output.summary or fallback_summary(facts)
        count = await ledger.complete(
            sessionmaker,
            handle,
            suggestions=output.suggestions,
            summary=summary,
            tokens_used=tokens_used,
        )
    except Exception as exc:
        await ledger.fail_from_exception(sessionmaker, handle, exc)
        raise
    return AgentRunResult(
        run_id=handle.run_id,
        summary=summary,
        suggestion_count=count,
        used_fallback=not output.parsed,
    )
