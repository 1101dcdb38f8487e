from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.domain.constants import (
    AGENT_EVIDENCE_LIBRARIAN,
    CHECKPOINT_FAILED,
    CHECKPOINT_IN_PROGRESS,
    CHECKPOINT_PASSED,
    TRIGGER_MANUAL,
)
from auditready.domain.models import Checkpoint, Control, Evidence
from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents import ledger
from auditready.services.agents.extraction import StructuredExtractor, extract_json
from auditready.services.agents.pipeline import AgentRunResult, ask_model
from auditready.services.agents.prompts import bullet_lines, response_contract
from auditready.services.agents.reads import gather_reads, read
from auditready.services.checkpoints.calendar import current_period
from auditready.services.resilience import RetryPolicy
from auditready.services.scoring import percent


logger = logging.getLogger(__name__)

CHECKPOINT_LIMIT = 100
EVIDENCE_LIMIT = 200
REVIEWED_STATUSES = (CHECKPOINT_PASSED, CHECKPOINT_FAILED, CHECKPOINT_IN_PROGRESS)
# Standards below this evidence coverage are called out in the prompt.
LOW_COVERAGE_PCT = 70


@dataclass
class StandardCoverage:
    total: int = 0
    with_evidence: int = 0

    @property
    def pct(self) -> int:
        return percent(self.with_evidence, self.total)


@dataclass(frozen=True)
class EvidenceFacts:
    period: str
    checkpoints: list[tuple[Checkpoint, Control]]
    total_evidence: int
    with_evidence: int
    passed_without_evidence: list[tuple[Checkpoint, Control]]
    in_progress_without_evidence: list[tuple[Checkpoint, Control]]
    by_standard: dict[str, StandardCoverage] = field(default_factory=dict)


async def _reviewed_checkpoints(session: AsyncSession, org_id: str, limit: int) -> list[tuple[Checkpoint, Control]]:
    result = await session.execute(
        select(Checkpoint, Control)
        .join(Control, Control.id == Checkpoint.control_id)
        .where(Checkpoint.org_id == org_id, Checkpoint.status.in_(REVIEWED_STATUSES))
        .order_by(Checkpoint.due_date.desc())
        .limit(limit)
    )
    return [(checkpoint, control) for checkpoint, control in result.all()]


async def _recent_evidence(session: AsyncSession, org_id: str, limit: int) -> list[Evidence]:
    result = await session.execute(
        select(Evidence)
        .where(Evidence.org_id == org_id)
        .order_by(Evidence.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def derive_facts(
    *,
    period: str,
    checkpoints: Sequence[tuple[Checkpoint, Control]],
    evidence: Sequence[Evidence],
) -> EvidenceFacts:
    files_by_checkpoint: dict[str, list[str]] = {}
    for item in evidence:
        if item.checkpoint_id:
            files_by_checkpoint.setdefault(item.checkpoint_id, []).append(item.file_name)

    rows = list(checkpoints)
    by_standard: dict[str, StandardCoverage] = {}
    for checkpoint, control in rows:
        coverage = by_standard.setdefault(control.standard or "Other", StandardCoverage())
        coverage.total += 1
        if checkpoint.id in files_by_checkpoint:
            coverage.with_evidence += 1

    return EvidenceFacts(
        period=period,
        checkpoints=rows,
        total_evidence=len(evidence),
        with_evidence=sum(1 for checkpoint, _ in rows if checkpoint.id in files_by_checkpoint),
        passed_without_evidence=[
            row for row in rows if row[0].status == CHECKPOINT_PASSED and row[0].id not in files_by_checkpoint
        ],
        in_progress_without_evidence=[
            row for row in rows if row[0].status == CHECKPOINT_IN_PROGRESS and row[0].id not in files_by_checkpoint
        ],
        by_standard=by_standard,
    )


def fallback_summary(facts: EvidenceFacts) -> str:
    return (
        f"Scanned {len(facts.checkpoints)} checkpoints. Found {len(facts.passed_without_evidence)} "
        f"passed without evidence across {facts.total_evidence} total evidence items."
    )


def _missing_line(checkpoint: Checkpoint, control: Control) -> str:
    required = ", ".join(control.required_evidence or []) or "See test procedure"
    assignee = checkpoint.assignee_name or checkpoint.assigned_to or "Unassigned"
    return (
        f"{control.code}: {control.title} ({control.standard})\n"
        f"    Assigned: {assignee} | Due: {checkpoint.due_date.isoformat()}\n"
        f"    Required evidence: {required}"
    )


def build_prompt(facts: EvidenceFacts) -> str:
    missing = bullet_lines(
        (_missing_line(checkpoint, control) for checkpoint, control in facts.passed_without_evidence),
        empty="None. All passed checkpoints have evidence uploaded.",
        limit=10,
    )
    coverage = bullet_lines(
        (
            f"{standard}: {cov.with_evidence}/{cov.total} ({cov.pct}%)"
            + (" LOW" if cov.pct < LOW_COVERAGE_PCT else "")
            for standard, cov in sorted(facts.by_standard.items())
        ),
    )
    contract = response_contract(
        summary_hint="2-3 sentence plain-text summary of evidence coverage status",
        entity_type="checkpoint",
        suggestion_type="flag",
        confidence=0.85,
    )
    return f"""You are the Evidence Librarian agent for a compliance management system.

Current period: {facts.period}

EVIDENCE COVERAGE ANALYSIS:
- Total checkpoints reviewed: {len(facts.checkpoints)}
- Evidence items in library: {facts.total_evidence}
- Checkpoints with evidence: {facts.with_evidence}
- PASSED checkpoints with NO evidence: {len(facts.passed_without_evidence)} (CRITICAL audit risk)
- In-progress checkpoints with no evidence started: {len(facts.in_progress_without_evidence)}

PASSED CHECKPOINTS MISSING EVIDENCE (top priority):
{missing}

EVIDENCE COVERAGE BY STANDARD:
{coverage}

Your task: identify evidence gaps that create audit risk and generate specific, actionable suggestions for the compliance team.

Focus on:
1. Passed checkpoints with zero evidence
2. Standards with poor evidence coverage (<{LOW_COVERAGE_PCT}%)
3. Checkpoints where required evidence types are known but missing
4. Patterns (specific staff members or departments consistently not uploading)

{contract}

Generate 3-6 suggestions ranked by audit risk. Be specific about which checkpoints and what evidence is needed."""


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
        agent=AGENT_EVIDENCE_LIBRARIAN,
        trigger_type=trigger_type,
        input_summary=f"Weekly evidence coverage scan for {period}",
    )
    try:
        checkpoints, evidence = await gather_reads(
            read(sessionmaker, _reviewed_checkpoints, org_id, CHECKPOINT_LIMIT),
            read(sessionmaker, _recent_evidence, org_id, EVIDENCE_LIMIT),
        )
        facts = derive_facts(period=period, checkpoints=checkpoints, evidence=evidence)
        output, tokens_used = await ask_model(
            provider,
            build_prompt(facts),
            agent=AGENT_EVIDENCE_LIBRARIAN,
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
