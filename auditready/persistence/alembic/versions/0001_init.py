"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "org_members",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_org_members_org_id", "org_members", ["org_id"])
    op.create_index("ix_org_members_user_id", "org_members", ["user_id"])
    op.create_index("ix_org_members_org_role", "org_members", ["org_id", "role"])

    op.create_table(
        "controls",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("standard", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("test_procedure", sa.Text(), nullable=False, server_default=""),
        sa.Column("required_evidence", postgresql.JSONB(), nullable=False),
        sa.Column("frequency", sa.String(), nullable=False),
        sa.Column("default_owner_role", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("related_policy_ids", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "code", name="uq_controls_org_code"),
    )
    op.create_index("ix_controls_org_id", "controls", ["org_id"])

    op.create_table(
        "policies",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("review_cadence_months", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("next_review_date", sa.Date(), nullable=True),
        sa.Column("current_version_id", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_policies_org_id", "policies", ["org_id"])

    op.create_table(
        "policy_versions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("policy_id", sa.String(), sa.ForeignKey("policies.id"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("content_html", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_policy_versions_policy_id", "policy_versions", ["policy_id"])

    op.create_table(
        "checkpoints",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("control_id", sa.String(), sa.ForeignKey("controls.id"), nullable=False),
        sa.Column("period", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("assignee_name", sa.String(), nullable=True),
        sa.Column("attestation", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_checkpoints_org_id", "checkpoints", ["org_id"])
    op.create_index("ix_checkpoints_org_period", "checkpoints", ["org_id", "period"])
    op.create_index("ix_checkpoints_control_period", "checkpoints", ["control_id", "period"])
    op.create_index("ix_checkpoints_status_due", "checkpoints", ["status", "due_date"])

    op.create_table(
        "evidence",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("checkpoint_id", sa.String(), sa.ForeignKey("checkpoints.id"), nullable=True),
        sa.Column("policy_id", sa.String(), sa.ForeignKey("policies.id"), nullable=True),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("file_type", sa.String(), nullable=True),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=False),
        sa.Column("uploaded_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_evidence_org_id", "evidence", ["org_id"])
    op.create_index("ix_evidence_checkpoint_id", "evidence", ["checkpoint_id"])

    op.create_table(
        "findings",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("qm_meeting_id", sa.String(), nullable=True),
        sa.Column("checkpoint_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("standard", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_findings_org_id", "findings", ["org_id"])

    op.create_table(
        "capas",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("finding_id", sa.String(), sa.ForeignKey("findings.id"), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("owner_id", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_capas_org_id", "capas", ["org_id"])

    # Run ledger: one row per pipeline invocation, terminal exactly once.
    op.create_table(
        "ai_agent_runs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("agent", sa.String(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="running"),
        sa.Column("input_summary", sa.Text(), nullable=True),
        sa.Column("output_summary", sa.Text(), nullable=True),
        sa.Column("tokens_used", sa.Integer(), nullable=True),
        sa.Column("cost_usd", sa.Numeric(12, 6), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_agent_runs_org_agent", "ai_agent_runs", ["org_id", "agent"])
    op.create_index("ix_ai_agent_runs_status_started", "ai_agent_runs", ["status", "started_at"])

    op.create_table(
        "ai_suggestions",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("agent_run_id", sa.String(), sa.ForeignKey("ai_agent_runs.id"), nullable=False),
        sa.Column("agent", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("suggestion_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("suggested_changes", postgresql.JSONB(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_suggestions_org_id", "ai_suggestions", ["org_id"])
    op.create_index("ix_ai_suggestions_agent_run_id", "ai_suggestions", ["agent_run_id"])
    op.create_index("ix_ai_suggestions_status", "ai_suggestions", ["status"])

    op.create_table(
        "audit_readiness_scores",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("period", sa.String(), nullable=False),
        sa.Column("overall_score", sa.Integer(), nullable=False),
        sa.Column("checkpoint_score", sa.Integer(), nullable=False),
        sa.Column("evidence_score", sa.Integer(), nullable=False),
        sa.Column("policy_score", sa.Integer(), nullable=False),
        sa.Column("capa_score", sa.Integer(), nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        # Upserts conflict on this pair; at most one score row per org and period.
        sa.UniqueConstraint("org_id", "period", name="uq_audit_readiness_scores_org_period"),
    )

    op.create_table(
        "qm_meetings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("period", sa.String(), nullable=False),
        sa.Column("meeting_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("agenda", postgresql.JSONB(), nullable=True),
        sa.Column("executive_summary", sa.Text(), nullable=True),
        sa.Column("audit_readiness_score", sa.Integer(), nullable=True),
        sa.Column("attendees", postgresql.JSONB(), nullable=False),
        sa.Column("action_items", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_qm_meetings_org_period", "qm_meetings", ["org_id", "period"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), primary_key=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_org_id", "notifications", ["org_id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True, nullable=False),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), nullable=True),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_log_org_id", "audit_log", ["org_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_action", table_name="audit_log")
    op.drop_index("ix_audit_log_org_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_index("ix_notifications_org_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_qm_meetings_org_period", table_name="qm_meetings")
    op.drop_table("qm_meetings")
    op.drop_table("audit_readiness_scores")
    op.drop_index("ix_ai_suggestions_status", table_name="ai_suggestions")
    op.drop_index("ix_ai_suggestions_agent_run_id", table_name="ai_suggestions")
    op.drop_index("ix_ai_suggestions_org_id", table_name="ai_suggestions")
    op.drop_table("ai_suggestions")
    op.drop_index("ix_ai_agent_runs_status_started", table_name="ai_agent_runs")
    op.drop_index("ix_ai_agent_runs_org_agent", table_name="ai_agent_runs")
    op.drop_table("ai_agent_runs")
    op.drop_index("ix_capas_org_id", table_name="capas")
    op.drop_table("capas")
    op.drop_index("ix_findings_org_id", table_name="findings")
    op.drop_table("findings")
    op.drop_index("ix_evidence_checkpoint_id", table_name="evidence")
    op.drop_index("ix_evidence_org_id", table_name="evidence")
    op.drop_table("evidence")
    op.drop_index("ix_checkpoints_status_due", table_name="checkpoints")
    op.drop_index("ix_checkpoints_control_period", table_name="checkpoints")
    op.drop_index("ix_checkpoints_org_period", table_name="checkpoints")
    op.drop_index("ix_checkpoints_org_id", table_name="checkpoints")
    op.drop_table("checkpoints")
    op.drop_index("ix_policy_versions_policy_id", table_name="policy_versions")
    op.drop_table("policy_versions")
    op.drop_index("ix_policies_org_id", table_name="policies")
    op.drop_table("policies")
    op.drop_index("ix_controls_org_id", table_name="controls")
    op.drop_table("controls")
    op.drop_index("ix_org_members_org_role", table_name="org_members")
    op.drop_index("ix_org_members_user_id", table_name="org_members")
    op.drop_index("ix_org_members_org_id", table_name="org_members")
    op.drop_table("org_members")
    op.drop_table("organizations")
