from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.domain.constants import (
    AGENT_COMPLIANCE_MONITOR,
    CHECKPOINT_FAILED,
    CHECKPOINT_OVERDUE,
    CHECKPOINT_PASSED,
    CHECKPOINT_PENDING,
    TRIGGER_MANUAL,
)
from auditready.domain.models import Checkpoint, Control
from auditready.persistence.repos import checkpoints as checkpoints_repo
from auditready.persistence.repos import controls as controls_repo
from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents import ledger
from auditready.services.agents.extraction import StructuredExtractor, extract_json
from auditready.services.agents.pipeline import AgentRunResult, ask_model
from auditready.services.agents.prompts import bullet_lines, response_contract
from auditready.services.agents.reads import gather_reads, read
from auditready.services.checkpoints.calendar import current_period
from auditready.services.resilience import RetryPolicy


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 200
REPEAT_FAILURE_THRESHOLD = 2


@dataclass(frozen=True)
class ComplianceFacts:
    period: str
    today: date
    checkpoints: list[tuple[Checkpoint, Control]]
    passed: list[tuple[Checkpoint, Control]]
    failed: list[tuple[Checkpoint, Control]]
    overdue: list[tuple[Checkpoint, Control]]
    passed_without_evidence: list[tuple[Checkpoint, Control]]
    unassigned: list[tuple[Checkpoint, Control]]
    # control_id -> failed/overdue count across recent periods
    repeat_failures: dict[str, int]
    active_controls: list[Control]


async def _recent_history(session: AsyncSession, org_id: str, limit: int) -> list[tuple[str, str, str]]:
    result = await session.execute(
        select(Checkpoint.control_id, Checkpoint.period, Checkpoint.status)
        .where(Checkpoint.org_id == org_id)
        .order_by(Checkpoint.period.desc())
        .limit(limit)
    )
    return [(control_id, period, status) for control_id, period, status in result.all()]


def derive_facts(
    *,
    period: str,
    today: date,
    checkpoints: Sequence[tuple[Checkpoint, Control]],
    evidence_counts: dict[str, int],
    history: Sequence[tuple[str, str, str]],
    active_controls: Sequence[Control],
) -> ComplianceFacts:
    rows = list(checkpoints)
    passed = [row for row in rows if row[0].status == CHECKPOINT_PASSED]
    failures = Counter(
        control_id for control_id, _, status in history if status in (CHECKPOINT_FAILED, CHECKPOINT_OVERDUE)
    )
    return ComplianceFacts(
        period=period,
        today=today,
        checkpoints=rows,
        passed=passed,
        failed=[row for row in rows if row[0].status == CHECKPOINT_FAILED],
        overdue=[row for row in rows if row[0].status == CHECKPOINT_PENDING and row[0].due_date < today],
        passed_without_evidence=[row for row in passed if not evidence_counts.get(row[0].id)],
        unassigned=[row for row in rows if not row[0].assigned_to and not row[0].assignee_name],
        repeat_failures={
            control_id: count for control_id, count in failures.items() if count >= REPEAT_FAILURE_THRESHOLD
        },
        active_controls=list(active_controls),
    )


def fallback_summary(facts: ComplianceFacts) -> str:
    return (
        f"Analyzed {len(facts.checkpoints)} checkpoints for {facts.period}. "
        f"Found {len(facts.overdue)} overdue and {len(facts.passed_without_evidence)} missing evidence."
    )


def build_prompt(facts: ComplianceFacts) -> str:
    codes = {control.id: control.code for control in facts.active_controls}
    overdue = bullet_lines(
        (
            f"{control.code}: {control.title} | Due: {checkpoint.due_date.isoformat()} | "
            f"Assigned: {checkpoint.assignee_name or checkpoint.assigned_to or 'Unassigned'}"
            for checkpoint, control in facts.overdue
        ),
        limit=10,
    )
    missing_evidence = bullet_lines(
        (f"{control.code}: {control.title}" for _, control in facts.passed_without_evidence),
        limit=8,
    )
    repeats = bullet_lines(
        (
            f"{codes.get(control_id, control_id)}: failed or overdue {count} times"
            for control_id, count in sorted(facts.repeat_failures.items(), key=lambda item: -item[1])
        ),
        empty="None detected",
        limit=10,
    )
    controls = bullet_lines(
        (f"{c.code}: {c.title} ({c.standard}, {c.frequency})" for c in facts.active_controls),
        limit=20,
    )
    contract = response_contract(
        summary_hint=f"2-3 sentence plain-text summary of compliance status for {facts.period}",
        entity_type="checkpoint",
        suggestion_type="flag",
        confidence=0.75,
    )
    return f"""You are the Compliance Monitor agent for a compliance management system.

Current period: {facts.period}
Today: {facts.today.isoformat()}

CHECKPOINT SUMMARY ({facts.period}):
- Total checkpoints: {len(facts.checkpoints)}
- Passed: {len(facts.passed)}
- Failed: {len(facts.failed)}
- Overdue (pending + past due date): {len(facts.overdue)}
- Passed but missing evidence: {len(facts.passed_without_evidence)}
- Unassigned: {len(facts.unassigned)}

OVERDUE CHECKPOINTS:
{overdue}

PASSED WITH NO EVIDENCE (COMPLIANCE RISK):
{missing_evidence}

REPEAT FAILURE PATTERN (same control failing across multiple periods):
{repeats}

ACTIVE CONTROLS ({len(facts.active_controls)} total):
{controls}

Your task: analyze this compliance data and generate actionable suggestions for the compliance team. Focus on:
1. Overdue items that need immediate escalation
2. Passed checkpoints without evidence, which are a regulatory audit risk
3. Patterns (repeat failures, unassigned checkpoints)
4. Missing checkpoints for controls that should have been generated

{contract}

Generate 3-6 high-value suggestions. Prioritize by regulatory risk. Do not include generic advice."""


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
    period = current_period(now)
    handle = await ledger.start(
        sessionmaker,
        org_id=org_id,
        agent=AGENT_COMPLIANCE_MONITOR,
        trigger_type=trigger_type,
        input_summary=f"Monthly compliance checkpoint analysis for {period}",
    )
    try:
        checkpoints, active_controls, history = await gather_reads(
            read(sessionmaker, checkpoints_repo.list_for_period, org_id, period),
            read(sessionmaker, controls_repo.list_active_controls, org_id),
            read(sessionmaker, _recent_history, org_id, HISTORY_LIMIT),
        )
        passed_ids = [checkpoint.id for checkpoint, _ in checkpoints if checkpoint.status == CHECKPOINT_PASSED]
        (evidence_counts,) = await gather_reads(read(sessionmaker, checkpoints_repo.evidence_counts, passed_ids))
        facts = derive_facts(
            period=period,
            today=now.date(),
            checkpoints=checkpoints,
            evidence_counts=evidence_counts,
            history=history,
            active_controls=active_controls,
        )
        output, tokens_used = await ask_model(
            provider,
            build_prompt(facts),
            agent=AGENT_COMPLIANCE_MONITOR,
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
