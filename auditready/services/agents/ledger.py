from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.config import get_settings
from auditready.core.errors import RunLedgerError
from auditready.domain.constants import RUN_STATUS_RUNNING, RUN_STATUS_STALE
from auditready.domain.models import AgentRun
from auditready.domain.suggestions import SuggestionInput
from auditready.persistence.repos import agent_runs as runs_repo
from auditready.services.costs import run_cost_usd
from auditready.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RunHandle:
    run_id: str
    org_id: str
    agent: str
    started_at: datetime
    # Monotonic marker so durations never go negative on clock changes.
    started_monotonic: float

    def elapsed_ms(self) -> int:
        return max(0, int((time.monotonic() - self.started_monotonic) * 1000))


async def start(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    org_id: str,
    agent: str,
    trigger_type: str,
    input_summary: str,
) -> RunHandle:
    started_monotonic = time.monotonic()
    started_at = _utc_now()
    try:
        async with sessionmaker() as session:
            run = await runs_repo.create_run(
                session,
                org_id=org_id,
                agent=agent,
                trigger_type=trigger_type,
                input_summary=input_summary,
                started_at=started_at,
            )
            await session.commit()
            run_id = run.id
    except SQLAlchemyError as exc:
        logger.error("agent_run_start_failed agent=%s org_id=%s error=%s", agent, org_id, exc)
        raise RunLedgerError(f"could not open {agent} run: {exc}") from exc
    increment_counter(f"agent_runs_started_total.{agent}")
    logger.info(
        "agent_run_started run_id=%s agent=%s org_id=%s trigger=%s",
        run_id,
        agent,
        org_id,
        trigger_type,
    )
    return RunHandle(
        run_id=run_id,
        org_id=org_id,
        agent=agent,
        started_at=started_at,
        started_monotonic=started_monotonic,
    )


async def complete(
    sessionmaker: async_sessionmaker[AsyncSession],
    handle: RunHandle,
    *,
    suggestions: Sequence[SuggestionInput],
    summary: str,
    tokens_used: int,
) -> int:
    """Close a run as completed and publish its suggestions.

    The suggestion batch and the terminal update commit together, so reviewers
    never see suggestions from a run that did not complete.
    """
    tokens = max(0, int(tokens_used or 0))
    duration_ms = handle.elapsed_ms()
    try:
        async with sessionmaker() as session:
            async with session.begin():
                closed = await runs_repo.mark_completed(
                    session,
                    handle.run_id,
                    output_summary=summary,
                    tokens_used=tokens,
                    cost_usd=run_cost_usd(tokens),
                    duration_ms=duration_ms,
                    completed_at=_utc_now(),
                )
                if not closed:
                    raise RunLedgerError(f"run {handle.run_id} is no longer running")
                if suggestions:
                    runs_repo.add_suggestions(
                        session,
                        org_id=handle.org_id,
                        run_id=handle.run_id,
                        agent=handle.agent,
                        suggestions=suggestions,
                    )
    except SQLAlchemyError as exc:
        raise RunLedgerError(f"could not complete run {handle.run_id}: {exc}") from exc
    increment_counter(f"agent_runs_completed_total.{handle.agent}")
    logger.info(
        "agent_run_completed run_id=%s agent=%s suggestions=%s tokens=%s duration_ms=%s",
        handle.run_id,
        handle.agent,
        len(suggestions),
        tokens,
        duration_ms,
    )
    return len(suggestions)


async def fail(
    sessionmaker: async_sessionmaker[AsyncSession],
    handle: RunHandle,
    error_message: str,
) -> bool:
    duration_ms = handle.elapsed_ms()
    try:
        async with sessionmaker() as session:
            async with session.begin():
                closed = await runs_repo.mark_failed(
                    session,
                    handle.run_id,
                    error_message=error_message,
                    duration_ms=duration_ms,
                    completed_at=_utc_now(),
                )
    except SQLAlchemyError as exc:
        raise RunLedgerError(f"could not fail run {handle.run_id}: {exc}") from exc
    if closed:
        increment_counter(f"agent_runs_failed_total.{handle.agent}")
    logger.warning(
        "agent_run_failed run_id=%s agent=%s duration_ms=%s error=%s",
        handle.run_id,
        handle.agent,
        duration_ms,
        error_message,
    )
    return closed


async def fail_from_exception(
    sessionmaker: async_sessionmaker[AsyncSession],
    handle: RunHandle,
    exc: BaseException,
) -> None:
    # Record the failure; the caller re-raises the original exception.
    message = str(exc) or type(exc).__name__
    try:
        await fail(sessionmaker, handle, message)
    except RunLedgerError as ledger_exc:
        logger.error(
            "agent_run_fail_unrecorded run_id=%s agent=%s error=%s",
            handle.run_id,
            handle.agent,
            ledger_exc,
        )


def effective_run_status(
    run: AgentRun,
    *,
    now: datetime | None = None,
    stale_after_s: int | None = None,
) -> str:
    # Reporting view: runs left running past the bound are abandoned, not in flight.
    if run.status != RUN_STATUS_RUNNING:
        return run.status
    stale_after = stale_after_s if stale_after_s is not None else get_settings().agent_run_stale_after_s
    now = now or _utc_now()
    if as_utc(now) - as_utc(run.started_at) > timedelta(seconds=stale_after):
        return RUN_STATUS_STALE
    return RUN_STATUS_RUNNING


async def reap_stale_runs(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    now: datetime | None = None,
    stale_after_s: int | None = None,
) -> list[str]:
    """Close abandoned runs as failed and return their ids."""
    stale_after = stale_after_s if stale_after_s is not None else get_settings().agent_run_stale_after_s
    now = as_utc(now or _utc_now())
    cutoff = now - timedelta(seconds=stale_after)
    message = f"abandoned: run exceeded {stale_after}s without reaching a terminal state"
    reaped: list[str] = []
    try:
        async with sessionmaker() as session:
            async with session.begin():
                for run in await runs_repo.list_running_started_before(session, cutoff):
                    duration_ms = max(0, int((now - as_utc(run.started_at)).total_seconds() * 1000))
                    closed = await runs_repo.mark_failed(
                        session,
                        run.id,
                        error_message=message,
                        duration_ms=duration_ms,
                        completed_at=now,
                    )
                    if closed:
                        reaped.append(run.id)
                        increment_counter(f"agent_runs_failed_total.{run.agent}")
    except SQLAlchemyError as exc:
        raise RunLedgerError(f"could not reap stale runs: {exc}") from exc
    if reaped:
        logger.warning("agent_runs_reaped count=%s stale_after_s=%s", len(reaped), stale_after)
    return reaped
