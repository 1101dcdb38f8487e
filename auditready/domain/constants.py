from __future__ import annotations

from typing import Literal


AgentName = Literal["compliance_monitor", "evidence_librarian", "policy_guardian", "qm_orchestrator"]
TriggerType = Literal["manual", "scheduled", "event"]

AGENT_COMPLIANCE_MONITOR = "compliance_monitor"
AGENT_EVIDENCE_LIBRARIAN = "evidence_librarian"
AGENT_POLICY_GUARDIAN = "policy_guardian"
AGENT_QM_ORCHESTRATOR = "qm_orchestrator"
AGENT_NAMES: tuple[str, ...] = (
    AGENT_COMPLIANCE_MONITOR,
    AGENT_EVIDENCE_LIBRARIAN,
    AGENT_POLICY_GUARDIAN,
    AGENT_QM_ORCHESTRATOR,
)

TRIGGER_MANUAL = "manual"
TRIGGER_SCHEDULED = "scheduled"
TRIGGER_EVENT = "event"
TRIGGER_TYPES: tuple[str, ...] = (TRIGGER_MANUAL, TRIGGER_SCHEDULED, TRIGGER_EVENT)

RUN_STATUS_RUNNING = "running"
RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_FAILED = "failed"
# Reporting-only status for runs that never reached a terminal state.
RUN_STATUS_STALE = "stale"

CHECKPOINT_PENDING = "pending"
CHECKPOINT_IN_PROGRESS = "in_progress"
CHECKPOINT_PASSED = "passed"
CHECKPOINT_FAILED = "failed"
CHECKPOINT_OVERDUE = "overdue"
CHECKPOINT_SKIPPED = "skipped"

POLICY_DRAFT = "draft"
POLICY_IN_REVIEW = "in_review"
POLICY_APPROVED = "approved"
POLICY_EFFECTIVE = "effective"
POLICY_RETIRED = "retired"

CAPA_OPEN = "open"
CAPA_IN_PROGRESS = "in_progress"
CAPA_PENDING_VERIFICATION = "pending_verification"
CAPA_CLOSED = "closed"

SUGGESTION_TYPES: tuple[str, ...] = ("edit", "create", "flag", "review")
SUGGESTION_PENDING = "pending"
SUGGESTION_ACCEPTED = "accepted"
SUGGESTION_REJECTED = "rejected"
SUGGESTION_MODIFIED = "modified"
SUGGESTION_REVIEW_DECISIONS: tuple[str, ...] = (
    SUGGESTION_ACCEPTED,
    SUGGESTION_REJECTED,
    SUGGESTION_MODIFIED,
)

MEETING_DRAFT = "draft"
MEETING_READY = "ready"
MEETING_COMPLETED = "completed"

RECURRENCE_MONTHLY = "monthly"
RECURRENCE_QUARTERLY = "quarterly"
RECURRENCE_SEMI_ANNUAL = "semi_annual"
RECURRENCE_ANNUAL = "annual"

NOTIFICATION_OVERDUE = "overdue"
NOTIFICATION_CHECKPOINT_DUE = "checkpoint_due"
