from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.core.errors import DatastoreError
from auditready.domain.constants import (
    AGENT_QM_ORCHESTRATOR,
    CAPA_CLOSED,
    CHECKPOINT_FAILED,
    CHECKPOINT_OVERDUE,
    CHECKPOINT_PASSED,
    POLICY_EFFECTIVE,
    TRIGGER_MANUAL,
    TRIGGER_SCHEDULED,
)
from auditready.domain.models import AuditReadinessScore, Capa, Checkpoint, Control, Finding, Policy
from auditready.persistence.repos import checkpoints as checkpoints_repo
from auditready.persistence.repos import meetings as meetings_repo
from auditready.persistence.repos import scores as scores_repo
from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents import ledger
from auditready.services.agents.extraction import StructuredExtractor, extract_json
from auditready.services.agents.pipeline import AgentRunResult, ask_model
from auditready.services.agents.prompts import bullet_lines, response_contract
from auditready.services.agents.reads import gather_reads, read
from auditready.services.checkpoints.calendar import (
    current_period,
    parse_period,
    period_bounds,
    previous_period,
)
from auditready.services.resilience import RetryPolicy
from auditready.services.scoring import ReadinessScores, ScoreInputs, compute_scores, save_scores


logger = logging.getLogger(__name__)

FINDINGS_LIMIT = 20
SCORE_HISTORY_LIMIT = 6
FALLBACK_AGENDA = [
    "Review audit readiness score",
    "Checkpoint completion review",
    "Findings review",
    "CAPA status update",
]


@dataclass(frozen=True)
class QMFacts:
    period: str
    checkpoints: list[tuple[Checkpoint, Control]]
    passed_count: int
    failures: list[tuple[Checkpoint, Control]]
    findings: list[Finding]
    open_capas: list[Capa]
    # Oldest first.
    score_history: list[AuditReadinessScore]
    score_inputs: ScoreInputs
    scores: ReadinessScores


async def _recent_findings(session: AsyncSession, org_id: str, limit: int) -> list[Finding]:
    result = await session.execute(
        select(Finding).where(Finding.org_id == org_id).order_by(Finding.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def _all_capas(session: AsyncSession, org_id: str) -> list[Capa]:
    result = await session.execute(
        select(Capa)
        .where(Capa.org_id == org_id)
        .order_by(Capa.due_date.is_(None), Capa.due_date, Capa.id)
    )
    return list(result.scalars().all())


async def _policy_review_states(session: AsyncSession, org_id: str) -> list[tuple[str, date | None]]:
    result = await session.execute(
        select(Policy.status, Policy.next_review_date).where(Policy.org_id == org_id)
    )
    return [(status, next_review) for status, next_review in result.all()]


def derive_facts(
    *,
    period: str,
    today: date,
    checkpoints: Sequence[tuple[Checkpoint, Control]],
    evidence_counts: dict[str, int],
    findings: Sequence[Finding],
    capas: Sequence[Capa],
    policies: Sequence[tuple[str, date | None]],
    score_history: Sequence[AuditReadinessScore],
) -> QMFacts:
    rows = list(checkpoints)
    passed_ids = [checkpoint.id for checkpoint, _ in rows if checkpoint.status == CHECKPOINT_PASSED]
    open_capas = [capa for capa in capas if capa.status != CAPA_CLOSED]
    inputs = ScoreInputs(
        total_checkpoints=len(rows),
        passed_checkpoints=len(passed_ids),
        passed_with_evidence=sum(1 for checkpoint_id in passed_ids if evidence_counts.get(checkpoint_id)),
        total_policies=len(policies),
        effective_policies=sum(1 for status, _ in policies if status == POLICY_EFFECTIVE),
        overdue_review_policies=sum(1 for _, review in policies if review is not None and review < today),
        total_capas=len(capas),
        closed_capas=len(capas) - len(open_capas),
        open_capas=len(open_capas),
        overdue_capas=sum(1 for capa in open_capas if capa.due_date is not None and capa.due_date < today),
    )
    return QMFacts(
        period=period,
        checkpoints=rows,
        passed_count=len(passed_ids),
        failures=[row for row in rows if row[0].status in (CHECKPOINT_FAILED, CHECKPOINT_OVERDUE)],
        findings=list(findings),
        open_capas=open_capas,
        score_history=list(reversed(score_history)),
        score_inputs=inputs,
        scores=compute_scores(inputs),
    )


def fallback_summary(facts: QMFacts) -> str:
    return (
        f"QM packet for {facts.period}. Overall audit readiness: {facts.scores.overall_score}%. "
        f"{facts.passed_count}/{len(facts.checkpoints)} checkpoints passed. "
        f"{len(facts.findings)} open findings, {len(facts.open_capas)} active CAPAs."
    )


def agenda_from_payload(payload: dict[str, Any] | None) -> list[str]:
    agenda = (payload or {}).get("agenda")
    if isinstance(agenda, list):
        items = [item.strip() for item in agenda if isinstance(item, str) and item.strip()]
        if items:
            return items
    return list(FALLBACK_AGENDA)


def build_prompt(facts: QMFacts) -> str:
    scores = facts.scores
    history = bullet_lines(
        (f"{row.period}: {float(row.overall_score):.1f}%" for row in facts.score_history),
        empty="No prior scores",
    )
    findings = bullet_lines(
        (
            f"[{(finding.severity or '').upper()}] {finding.title} ({finding.standard or 'N/A'})"
            for finding in facts.findings
        ),
        limit=8,
    )
    capas = bullet_lines(
        (
            f"{c.title} | Status: {c.status} | Due: {c.due_date.isoformat() if c.due_date else 'No date'}"
            for c in facts.open_capas
        ),
        limit=8,
    )
    failures = bullet_lines(
        (f"{control.title} ({control.standard})" for _, control in facts.failures),
        limit=6,
    )
    contract = response_contract(
        summary_hint=(
            "3-4 sentence executive summary suitable for leadership review. Include the overall audit "
            "readiness score, key trend (improving/declining/stable), and the most critical issue "
            "requiring committee attention."
        ),
        entity_type="qm_meeting",
        suggestion_type="review",
        confidence=0.85,
        extra_fields={
            "agenda": [
                f"Review audit readiness score ({scores.overall_score}% for {facts.period})",
                f"Checkpoint completion review: {len(facts.failures)} failures this period",
                "Evidence gap analysis",
                "Open findings review",
                "CAPA status update",
                "Action items and assignments",
            ]
        },
    )
    return f"""You are the QM Orchestrator agent, assembling the monthly Quality Management meeting packet for {facts.period}.

AUDIT READINESS SCORE ({facts.period}): {scores.overall_score}%
- Checkpoint completion: {scores.checkpoint_score}% ({facts.passed_count}/{len(facts.checkpoints)} passed)
- Evidence coverage: {scores.evidence_score}% of passed checkpoints have evidence
- Policy health: {scores.policy_score}% (effective and current)
- CAPA closure rate: {scores.capa_score}%

SCORE HISTORY (last {SCORE_HISTORY_LIMIT} periods, oldest first):
{history}

OPEN FINDINGS ({len(facts.findings)} total):
{findings}

OPEN CAPAs ({len(facts.open_capas)} active):
{capas}

CHECKPOINT FAILURES ({len(facts.failures)} failed this period):
{failures}

Your task: generate the QM meeting packet content.

{contract}

Generate 2-4 suggestions focused on items that REQUIRE committee discussion and decision. These are escalations, not routine items."""


async def _store_meeting_packet(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    org_id: str,
    period: str,
    executive_summary: str,
    agenda: list[str],
    overall_score: int,
    now: datetime,
) -> str:
    # Find by (org, period), then update in place or insert; the two paths set different defaults.
    try:
        async with sessionmaker() as session:
            async with session.begin():
                meeting = await meetings_repo.find_meeting(session, org_id, period)
                if meeting is not None:
                    meetings_repo.refresh_meeting_packet(
                        meeting,
                        executive_summary=executive_summary,
                        agenda=agenda,
                        audit_readiness_score=overall_score,
                        updated_at=now,
                    )
                    created = False
                else:
                    meeting = meetings_repo.create_meeting(
                        session,
                        org_id=org_id,
                        period=period,
                        executive_summary=executive_summary,
                        agenda=agenda,
                        audit_readiness_score=overall_score,
                    )
                    created = True
                await session.flush()
                meeting_id = meeting.id
    except SQLAlchemyError as exc:
        raise DatastoreError(f"could not store QM meeting packet for {period}: {exc}") from exc
    logger.info(
        "qm_meeting_packet_stored org_id=%s period=%s meeting_id=%s created=%s",
        org_id,
        period,
        meeting_id,
        created,
    )
    return meeting_id


async def run(
    sessionmaker: async_sessionmaker[AsyncSession],
    provider: CompletionProvider,
    org_id: str,
    trigger_type: str = TRIGGER_MANUAL,
    *,
    period: str | None = None,
    now: datetime | None = None,
    retry_policy: RetryPolicy | None = None,
    extractor: StructuredExtractor = extract_json,
) -> AgentRunResult:
    now = now or datetime.now(timezone.utc)
    if period is None:
        # Scheduled packets fire on the 1st and review the month that just closed.
        period = previous_period(now) if trigger_type == TRIGGER_SCHEDULED else current_period(now)
    # Reject malformed periods before a run is opened.
    parse_period(period)
    start, end = period_bounds(period)
    handle = await ledger.start(
        sessionmaker,
        org_id=org_id,
        agent=AGENT_QM_ORCHESTRATOR,
        trigger_type=trigger_type,
        input_summary=f"QM meeting packet assembly for {period}",
    )
    try:
        checkpoints, findings, capas, policies, history = await gather_reads(
            read(sessionmaker, checkpoints_repo.list_due_between, org_id, start, end),
            read(sessionmaker, _recent_findings, org_id, FINDINGS_LIMIT),
            read(sessionmaker, _all_capas, org_id),
            read(sessionmaker, _policy_review_states, org_id),
            read(sessionmaker, scores_repo.recent_scores, org_id, SCORE_HISTORY_LIMIT),
        )
        passed_ids = [checkpoint.id for checkpoint, _ in checkpoints if checkpoint.status == CHECKPOINT_PASSED]
        (evidence_counts,) = await gather_reads(read(sessionmaker, checkpoints_repo.evidence_counts, passed_ids))
        facts = derive_facts(
            period=period,
            today=now.date(),
            checkpoints=checkpoints,
            evidence_counts=evidence_counts,
            findings=findings,
            capas=capas,
            policies=policies,
            score_history=history,
        )
        # The score is a deterministic recomputation and is stored before the model call.
        await save_scores(sessionmaker, org_id=org_id, period=period, scores=facts.scores, calculated_at=now)

        output, tokens_used = await ask_model(
            provider,
            build_prompt(facts),
            agent=AGENT_QM_ORCHESTRATOR,
            max_output_tokens=get_settings().qm_max_output_tokens,
            retry_policy=retry_policy,
            extractor=extractor,
        )
        summary = output.summary or fallback_summary(facts)
        meeting_id = await _store_meeting_packet(
            sessionmaker,
            org_id=org_id,
            period=period,
            executive_summary=summary,
            agenda=agenda_from_payload(output.payload),
            overall_score=facts.scores.overall_score,
            now=now,
        )
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
        meeting_id=meeting_id,
    )
