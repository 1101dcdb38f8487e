from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from auditready.core.errors import RunLedgerError
from auditready.domain.models import AgentRun, Suggestion
from auditready.domain.suggestions import SuggestionInput
from auditready.services.agents import ledger
from auditready.services.telemetry import counters_snapshot
from auditready.tests.utils.records import add_running_run, count_rows, get_run, list_suggestions


def _suggestion(title: str) -> SuggestionInput:
    return SuggestionInput(entity_type="checkpoint", suggestion_type="flag", title=title, confidence=0.7)


async def _start(sessionmaker, org_id: str) -> ledger.RunHandle:
    return await ledger.start(
        sessionmaker,
        org_id=org_id,
        agent="compliance_monitor",
        trigger_type="manual",
        input_summary="Monthly compliance checkpoint analysis for 2026-03",
    )


@pytest.mark.asyncio
async def test_complete_closes_run_and_publishes_suggestions(sessionmaker, org_id) -> None:
    handle = await _start(sessionmaker, org_id)
    run = await get_run(sessionmaker, handle.run_id)
    assert run.status == "running"
    assert run.trigger_type == "manual"

    count = await ledger.complete(
        sessionmaker,
        handle,
        suggestions=[_suggestion("Escalate overdue"), _suggestion("Upload evidence")],
        summary="Two issues found.",
        tokens_used=2000,
    )

    assert count == 2
    run = await get_run(sessionmaker, handle.run_id)
    assert run.status == "completed"
    assert run.output_summary == "Two issues found."
    assert run.tokens_used == 2000
    assert Decimal(run.cost_usd) == Decimal("0.018")
    assert run.duration_ms is not None and run.duration_ms >= 0
    assert run.completed_at is not None
    stored = await list_suggestions(sessionmaker, handle.run_id)
    assert {row.title for row in stored} == {"Escalate overdue", "Upload evidence"}
    assert all(row.status == "pending" and row.agent == "compliance_monitor" for row in stored)
    assert counters_snapshot()["agent_runs_completed_total.compliance_monitor"] == 1


@pytest.mark.asyncio
async def test_run_receives_exactly_one_terminal_update(sessionmaker, org_id) -> None:
    handle = await _start(sessionmaker, org_id)
    assert await ledger.fail(sessionmaker, handle, "completion call timed out after 10ms") is True

    with pytest.raises(RunLedgerError):
        await ledger.complete(
            sessionmaker, handle, suggestions=[_suggestion("late")], summary="late", tokens_used=10
        )
    assert await ledger.fail(sessionmaker, handle, "second failure") is False

    run = await get_run(sessionmaker, handle.run_id)
    assert run.status == "failed"
    assert run.error_message == "completion call timed out after 10ms"
    # Suggestions from a run that did not complete are never stored.
    assert await count_rows(sessionmaker, Suggestion, agent_run_id=handle.run_id) == 0


@pytest.mark.asyncio
async def test_fail_from_exception_uses_class_name_for_blank_messages(sessionmaker, org_id) -> None:
    handle = await _start(sessionmaker, org_id)
    await ledger.fail_from_exception(sessionmaker, handle, TimeoutError())
    run = await get_run(sessionmaker, handle.run_id)
    assert run.status == "failed"
    assert run.error_message == "TimeoutError"


@pytest.mark.asyncio
async def test_reap_stale_runs_fails_only_abandoned_runs(sessionmaker, org_id) -> None:
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    abandoned = await add_running_run(sessionmaker, org_id, started_at=now - timedelta(hours=2))
    fresh = await add_running_run(sessionmaker, org_id, started_at=now - timedelta(minutes=5))

    reaped = await ledger.reap_stale_runs(sessionmaker, now=now, stale_after_s=1800)

    assert reaped == [abandoned.id]
    closed = await get_run(sessionmaker, abandoned.id)
    assert closed.status == "failed"
    assert closed.error_message == "abandoned: run exceeded 1800s without reaching a terminal state"
    assert closed.duration_ms == 2 * 60 * 60 * 1000
    assert (await get_run(sessionmaker, fresh.id)).status == "running"
    assert await ledger.reap_stale_runs(sessionmaker, now=now, stale_after_s=1800) == []


def test_effective_status_reports_stale_runs() -> None:
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    stuck = AgentRun(status="running", started_at=datetime(2026, 3, 10, 9, 0))
    recent = AgentRun(status="running", started_at=now - timedelta(seconds=30))
    done = AgentRun(status="completed", started_at=datetime(2026, 3, 1, 9, 0))
    assert ledger.effective_run_status(stuck, now=now, stale_after_s=1800) == "stale"
    assert ledger.effective_run_status(recent, now=now, stale_after_s=1800) == "running"
    assert ledger.effective_run_status(done, now=now, stale_after_s=1800) == "completed"
