from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from auditready.domain.models import Checkpoint, Control, Evidence
from auditready.services.agents import evidence_librarian
from auditready.services.resilience import RetryPolicy
from auditready.tests.utils.providers import ScriptedCompletionProvider
from auditready.tests.utils.records import add_checkpoint, add_control, add_evidence, get_run, list_suggestions

NOW = datetime(2026, 3, 23, 7, 0, tzinfo=timezone.utc)
FAST_POLICY = RetryPolicy(timeout_ms=1000, max_attempts=1, backoff_ms=0)


async def _reviewed_checkpoints(sessionmaker, org_id: str) -> None:
    chart = await add_control(sessionmaker, org_id, code="CLIN-DOC-001", standard="AHCCCS")
    privacy = await add_control(sessionmaker, org_id, code="HIPAA-PRIV-001", standard="HIPAA")
    covered = await add_checkpoint(
        sessionmaker, org_id, chart.id, period="2026-02", due_date=date(2026, 2, 27), status="passed"
    )
    await add_evidence(sessionmaker, org_id, covered.id, file_name="chart-audit.xlsx")
    await add_evidence(sessionmaker, org_id, None, file_name="unlinked.pdf")
    await add_checkpoint(
        sessionmaker, org_id, privacy.id, period="2026-03", due_date=date(2026, 3, 13), status="passed"
    )
    await add_checkpoint(
        sessionmaker, org_id, chart.id, period="2026-03", due_date=date(2026, 3, 31), status="in_progress"
    )
    # Pending checkpoints are not part of the evidence scan.
    await add_checkpoint(sessionmaker, org_id, chart.id, period="2026-04", due_date=date(2026, 4, 30))


def test_coverage_is_grouped_by_standard() -> None:
    ahcccs = Control(id="c1", code="CLIN-DOC-001", title="Chart audit", standard="AHCCCS")
    hipaa = Control(id="c2", code="HIPAA-PRIV-001", title="Privacy", standard="HIPAA")
    facts = evidence_librarian.derive_facts(
        period="2026-03",
        checkpoints=[
            (Checkpoint(id="a", status="passed", due_date=date(2026, 3, 1)), ahcccs),
            (Checkpoint(id="b", status="failed", due_date=date(2026, 3, 1)), ahcccs),
            (Checkpoint(id="c", status="passed", due_date=date(2026, 3, 1)), hipaa),
        ],
        evidence=[Evidence(checkpoint_id="a", file_name="x.pdf"), Evidence(checkpoint_id="a", file_name="y.pdf")],
    )
    assert facts.with_evidence == 1
    assert facts.total_evidence == 2
    assert facts.by_standard["AHCCCS"].pct == 50
    assert facts.by_standard["HIPAA"].pct == 0
    assert [checkpoint.id for checkpoint, _ in facts.passed_without_evidence] == ["c"]


@pytest.mark.asyncio
async def test_run_scans_reviewed_checkpoints(sessionmaker, org_id) -> None:
    await _reviewed_checkpoints(sessionmaker, org_id)
    reply = (
        '{"summary": "HIPAA privacy audit passed without evidence.", "suggestions": ['
        '{"entity_type": "checkpoint", "suggestion_type": "flag", "title": "Upload privacy audit log",'
        ' "confidence": 0.85}]}'
    )
    provider = ScriptedCompletionProvider([reply])

    result = await evidence_librarian.run(sessionmaker, provider, org_id, now=NOW, retry_policy=FAST_POLICY)

    assert result.suggestion_count == 1
    assert result.summary == "HIPAA privacy audit passed without evidence."
    assert (await get_run(sessionmaker, result.run_id)).agent == "evidence_librarian"
    (stored,) = await list_suggestions(sessionmaker, result.run_id)
    assert stored.title == "Upload privacy audit log"
    assert stored.confidence == pytest.approx(0.85)
    prompt = provider.prompts[0]
    assert "- Total checkpoints reviewed: 3" in prompt
    assert "- Checkpoints with evidence: 1" in prompt
    assert "- PASSED checkpoints with NO evidence: 1" in prompt
    assert "HIPAA: 0/1 (0%) LOW" in prompt


@pytest.mark.asyncio
async def test_fallback_summary_counts_library_items(sessionmaker, org_id) -> None:
    await _reviewed_checkpoints(sessionmaker, org_id)
    provider = ScriptedCompletionProvider(["```json\n{\"summary\": \"truncated"])

    result = await evidence_librarian.run(sessionmaker, provider, org_id, now=NOW, retry_policy=FAST_POLICY)

    assert result.used_fallback is True
    assert result.summary == "Scanned 3 checkpoints. Found 1 passed without evidence across 2 total evidence items."
    assert (await get_run(sessionmaker, result.run_id)).status == "completed"


def test_standard_coverage_rounds_halves_up_like_stored_scores() -> None:
    assert evidence_librarian.StandardCoverage(total=8, with_evidence=1).pct == 13
    assert evidence_librarian.StandardCoverage(total=8, with_evidence=5).pct == 63
    assert evidence_librarian.StandardCoverage().pct == 0
