from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import logging
import math

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.core.errors import DatastoreError
from auditready.persistence.repos import scores as scores_repo


logger = logging.getLogger(__name__)

CHECKPOINT_WEIGHT = 0.35
EVIDENCE_WEIGHT = 0.25
POLICY_WEIGHT = 0.25
CAPA_WEIGHT = 0.15


@dataclass(frozen=True)
class ScoreInputs:
    """Raw counts for one (organization, period)."""

    total_checkpoints: int = 0
    passed_checkpoints: int = 0
    # Distinct passed checkpoints with at least one evidence item.
    passed_with_evidence: int = 0
    total_policies: int = 0
    effective_policies: int = 0
    overdue_review_policies: int = 0
    # Any CAPA ever recorded for the organization, closed or not.
    total_capas: int = 0
    closed_capas: int = 0
    open_capas: int = 0
    overdue_capas: int = 0


@dataclass(frozen=True)
class ReadinessScores:
    overall_score: int
    checkpoint_score: int
    evidence_score: int
    policy_score: int
    capa_score: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def percent(numerator: int, denominator: int) -> int:
    # Whole-number percentage, halves rounded up; an empty denominator is 0.
    if denominator <= 0:
        return 0
    return round_half_up(100 * numerator / denominator)


def compute_scores(inputs: ScoreInputs) -> ReadinessScores:
    checkpoint = _clamp(percent(inputs.passed_checkpoints, inputs.total_checkpoints))
    evidence = _clamp(percent(inputs.passed_with_evidence, inputs.passed_checkpoints))
    # Overdue reviews can outnumber effective policies; the floor is 0.
    policy = _clamp(
        percent(inputs.effective_policies - inputs.overdue_review_policies, inputs.total_policies)
    )
    if inputs.total_capas > 0:
        denominator = inputs.closed_capas + inputs.open_capas + inputs.overdue_capas
        capa = _clamp(percent(inputs.closed_capas, denominator)) if denominator > 0 else 100
    else:
        # No CAPA history scores as full closure discipline.
        capa = 100
    overall = round_half_up(
        checkpoint * CHECKPOINT_WEIGHT
        + evidence * EVIDENCE_WEIGHT
        + policy * POLICY_WEIGHT
        + capa * CAPA_WEIGHT
    )
    return ReadinessScores(
        overall_score=_clamp(overall),
        checkpoint_score=checkpoint,
        evidence_score=evidence,
        policy_score=policy,
        capa_score=capa,
    )


async def upsert_scores(
    session: AsyncSession,
    *,
    org_id: str,
    period: str,
    scores: ReadinessScores,
    calculated_at: datetime | None = None,
) -> None:
    await scores_repo.upsert_score(
        session,
        org_id=org_id,
        period=period,
        scores=scores.as_dict(),
        calculated_at=calculated_at or datetime.now(timezone.utc),
    )


async def save_scores(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    org_id: str,
    period: str,
    scores: ReadinessScores,
    calculated_at: datetime | None = None,
) -> None:
    # Last write wins for concurrent recomputations of the same period.
    try:
        async with sessionmaker() as session:
            async with session.begin():
                await upsert_scores(
                    session, org_id=org_id, period=period, scores=scores, calculated_at=calculated_at
                )
    except SQLAlchemyError as exc:
        raise DatastoreError(f"could not store readiness score for {period}: {exc}") from exc
    logger.info(
        "readiness_score_saved org_id=%s period=%s overall=%s",
        org_id,
        period,
        scores.overall_score,
    )
