from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB on Postgres, plain JSON elsewhere (sqlite test databases).
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String)
    slug: Mapped[str] = mapped_column(String, unique=True)
    # Scheduled agent fan-out only visits active organizations.
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class OrgMember(Base):
    __tablename__ = "org_members"
    __table_args__ = (
        Index("ix_org_members_org_role", "org_id", "role"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    role: Mapped[str] = mapped_column(String)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Control(Base):
    __tablename__ = "controls"
    __table_args__ = (
        UniqueConstraint("org_id", "code", name="uq_controls_org_code"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    code: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    standard: Mapped[str] = mapped_column(String)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    test_procedure: Mapped[str] = mapped_column(Text, default="")
    required_evidence: Mapped[list[str]] = mapped_column(JsonType, default=list)
    # One of monthly, quarterly, semi_annual, annual.
    frequency: Mapped[str] = mapped_column(String)
    default_owner_role: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    related_policy_ids: Mapped[list[str]] = mapped_column(JsonType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Checkpoint(Base):
    __tablename__ = "checkpoints"
    # (control_id, period) uniqueness is enforced by the generator, not the schema.
    __table_args__ = (
        Index("ix_checkpoints_org_period", "org_id", "period"),
        Index("ix_checkpoints_control_period", "control_id", "period"),
        Index("ix_checkpoints_status_due", "status", "due_date"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    control_id: Mapped[str] = mapped_column(String, ForeignKey("controls.id"))
    period: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="pending")
    due_date: Mapped[date] = mapped_column(Date)
    assigned_to: Mapped[str | None] = mapped_column(String, nullable=True)
    # Free-text assignee for seeded schedules that predate member accounts.
    assignee_name: Mapped[str | None] = mapped_column(String, nullable=True)
    attestation: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Evidence(Base):
    __tablename__ = "evidence"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    checkpoint_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("checkpoints.id"), nullable=True, index=True
    )
    policy_id: Mapped[str | None] = mapped_column(String, ForeignKey("policies.id"), nullable=True)
    file_path: Mapped[str] = mapped_column(String)
    file_name: Mapped[str] = mapped_column(String)
    file_type: Mapped[str | None] = mapped_column(String, nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    tags: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    uploaded_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Policy(Base):
    __tablename__ = "policies"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    code: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    category: Mapped[str] = mapped_column(String)
    # One of draft, in_review, approved, effective, retired.
    status: Mapped[str] = mapped_column(String, default="draft")
    review_cadence_months: Mapped[int] = mapped_column(Integer, default=12)
    next_review_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_version_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class PolicyVersion(Base):
    __tablename__ = "policy_versions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    policy_id: Mapped[str] = mapped_column(String, ForeignKey("policies.id"), index=True)
    version_number: Mapped[int] = mapped_column(Integer, default=1)
    content_html: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Finding(Base):
    __tablename__ = "findings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    qm_meeting_id: Mapped[str | None] = mapped_column(String, nullable=True)
    checkpoint_id: Mapped[str | None] = mapped_column(String, nullable=True)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # One of low, medium, high, critical.
    severity: Mapped[str] = mapped_column(String)
    standard: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Capa(Base):
    __tablename__ = "capas"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    finding_id: Mapped[str | None] = mapped_column(String, ForeignKey("findings.id"), nullable=True)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # One of open, in_progress, pending_verification, closed.
    status: Mapped[str] = mapped_column(String, default="open")
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    owner_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AgentRun(Base):
    __tablename__ = "ai_agent_runs"
    __table_args__ = (
        Index("ix_ai_agent_runs_org_agent", "org_id", "agent"),
        Index("ix_ai_agent_runs_status_started", "status", "started_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"))
    agent: Mapped[str] = mapped_column(String)
    # Audit metadata only; never alters pipeline behavior.
    trigger_type: Mapped[str] = mapped_column(String)
    # running until exactly one terminal update (completed or failed).
    status: Mapped[str] = mapped_column(String, default="running")
    input_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    output_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    tokens_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cost_usd: Mapped[Decimal | None] = mapped_column(Numeric(12, 6), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Suggestion(Base):
    __tablename__ = "ai_suggestions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    agent_run_id: Mapped[str] = mapped_column(String, ForeignKey("ai_agent_runs.id"), index=True)
    agent: Mapped[str] = mapped_column(String)
    entity_type: Mapped[str] = mapped_column(String)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # One of edit, create, flag, review.
    suggestion_type: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str] = mapped_column(Text)
    # Serialized SuggestedChanges variant (see domain.suggestions).
    suggested_changes: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    confidence: Mapped[float] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AuditReadinessScore(Base):
    __tablename__ = "audit_readiness_scores"
    __table_args__ = (
        UniqueConstraint("org_id", "period", name="uq_audit_readiness_scores_org_period"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"))
    period: Mapped[str] = mapped_column(String)
    overall_score: Mapped[int] = mapped_column(Integer)
    checkpoint_score: Mapped[int] = mapped_column(Integer)
    evidence_score: Mapped[int] = mapped_column(Integer)
    policy_score: Mapped[int] = mapped_column(Integer)
    capa_score: Mapped[int] = mapped_column(Integer)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class QMMeeting(Base):
    __tablename__ = "qm_meetings"
    __table_args__ = (
        Index("ix_qm_meetings_org_period", "org_id", "period"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"))
    period: Mapped[str] = mapped_column(String)
    meeting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # One of draft, ready, completed.
    status: Mapped[str] = mapped_column(String, default="draft")
    agenda: Mapped[list[str] | None] = mapped_column(JsonType, nullable=True)
    executive_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    audit_readiness_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attendees: Mapped[list[str]] = mapped_column(JsonType, default=list)
    action_items: Mapped[list[dict[str, Any]] | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    type: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AuditLogEntry(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    org_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    # Null actor means a system job (scheduler, sweep, agent).
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    action: Mapped[str] = mapped_column(String, index=True)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
