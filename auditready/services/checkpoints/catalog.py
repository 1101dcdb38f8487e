from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class ControlTemplate:
    code: str
    title: str
    standard: str
    category: str
    test_procedure: str
    required_evidence: tuple[str, ...]
    frequency: str
    default_owner_role: str


@dataclass(frozen=True)
class ScheduleRow:
    due_date: date
    control_code: str
    assignee_name: str | None = None

    @property
    def period(self) -> str:
        # Seeded rows are keyed by the calendar month of their due date.
        return self.due_date.isoformat()[:7]


DEFAULT_CONTROLS: tuple[ControlTemplate, ...] = (
    ControlTemplate(
        code="GOV-QM-001",
        title="Governance & Quality (QM/PI) checkpoint",
        standard="Internal",
        category="Quality Management",
        test_procedure=(
            "Review QM/PI meeting minutes, action items, and governance documents. "
            "Verify quorum, agenda completion, and follow-through on prior action items."
        ),
        required_evidence=("Meeting minutes", "Attendance sheet", "Action item tracker"),
        frequency="monthly",
        default_owner_role="ops",
    ),
    ControlTemplate(
        code="CLIN-DOC-001",
        title="Clinical documentation & safety chart audit",
        standard="AHCCCS",
        category="Clinical",
        test_procedure=(
            "Audit a random sample of clinical charts for documentation completeness, "
            "treatment plan currency, and safety planning compliance."
        ),
        required_evidence=("Audit tool / scoring sheet", "De-identified chart list", "Corrective action notes"),
        frequency="monthly",
        default_owner_role="clinical",
    ),
    ControlTemplate(
        code="WORK-COMP-001",
        title="Workforce: training, competency, and personnel-file audit",
        standard="HR",
        category="Workforce",
        test_procedure=(
            "Verify training completion rates, competency documentation, and personnel file "
            "completeness (licenses, background checks, annual reviews)."
        ),
        required_evidence=("Training completion report", "Competency checklists", "Personnel file audit log"),
        frequency="monthly",
        default_owner_role="hr",
    ),
    ControlTemplate(
        code="ENV-CARE-001",
        title="Environment of Care / Life Safety / Infection Control rounds",
        standard="Safety",
        category="Facility",
        test_procedure=(
            "Conduct facility walk-through covering life safety systems, infection control protocols, "
            "hazardous materials storage, and general environment of care standards."
        ),
        required_evidence=("Inspection checklist", "Photos of findings", "Work order / corrective action log"),
        frequency="monthly",
        default_owner_role="ops",
    ),
    ControlTemplate(
        code="BILL-INT-001",
        title="Billing/encounter integrity & timely filing checkpoint",
        standard="Operations",
        category="Billing",
        test_procedure=(
            "Review a sample of claims for encounter data accuracy, timely filing compliance, "
            "and unbundling or upcoding flags."
        ),
        required_evidence=("Claims sample report", "Timely filing log", "Denial/rejection summary"),
        frequency="monthly",
        default_owner_role="billing",
    ),
    ControlTemplate(
        code="EMER-DRILL-001",
        title="Quarterly disaster drill (each shift) + after-action review",
        standard="Safety",
        category="Emergency Preparedness",
        test_procedure=(
            "Conduct tabletop or functional disaster drill covering all shifts. Document participation, "
            "gaps identified, and corrective actions from after-action review."
        ),
        required_evidence=("Drill sign-in sheets (all shifts)", "After-action review report", "Corrective action plan"),
        frequency="quarterly",
        default_owner_role="ops",
    ),
    ControlTemplate(
        code="EMER-READY-001",
        title="Quarterly '2-hour readiness' document retrieval drill",
        standard="Safety",
        category="Emergency Preparedness",
        test_procedure=(
            "Simulate a regulator request requiring retrieval of critical compliance documents within "
            "2 hours. Document retrieval times, gaps, and remediation."
        ),
        required_evidence=("Drill log with timestamps", "Document retrieval checklist", "Gap analysis notes"),
        frequency="quarterly",
        default_owner_role="ops",
    ),
    ControlTemplate(
        code="HIPAA-PRIV-001",
        title="Quarterly privacy & consent controls review (HIPAA + Part 2 if applicable)",
        standard="HIPAA",
        category="Privacy",
        test_procedure=(
            "Review consent form currency, access log audits, privacy notice distribution records, "
            "and Part 42 CFR Part 2 compliance if applicable."
        ),
        required_evidence=("Consent audit log", "Access log review summary", "Privacy notice distribution records"),
        frequency="quarterly",
        default_owner_role="compliance",
    ),
    ControlTemplate(
        code="SAFETY-WV-001",
        title="Annual workplace violence worksite analysis & mitigation plan refresh",
        standard="Safety",
        category="Workplace Safety",
        test_procedure=(
            "Conduct annual worksite analysis per OSHA guidelines. Review incident data, update risk "
            "assessments, and refresh the workplace violence prevention plan."
        ),
        required_evidence=("Worksite analysis report", "Updated mitigation plan", "Staff acknowledgment records"),
        frequency="annual",
        default_owner_role="compliance",
    ),
    ControlTemplate(
        code="HIPAA-RISK-001",
        title="Annual HIPAA security risk analysis + remediation plan",
        standard="HIPAA",
        category="Privacy",
        test_procedure=(
            "Perform full HIPAA Security Rule risk analysis. Identify and document vulnerabilities, "
            "rate risk levels, and produce a remediation plan with timelines."
        ),
        required_evidence=("Risk analysis report", "Remediation plan with due dates", "Vendor BAA inventory"),
        frequency="annual",
        default_owner_role="compliance",
    ),
    ControlTemplate(
        code="QM-EVAL-001",
        title="Annual Quality Management Program evaluation + governing authority review",
        standard="Internal",
        category="Quality Management",
        test_procedure=(
            "Evaluate the annual effectiveness of the QM program against goals. Present findings to "
            "governing authority. Document approval of updated QM plan."
        ),
        required_evidence=(
            "Annual QM evaluation report",
            "Governing authority meeting minutes",
            "Updated QM program plan",
        ),
        frequency="annual",
        default_owner_role="compliance",
    ),
    ControlTemplate(
        code="EMER-EVAC-001",
        title="Semiannual evacuation drill (each shift) + documentation review",
        standard="Safety",
        category="Emergency Preparedness",
        test_procedure=(
            "Conduct evacuation drill covering all shifts. Time and document the drill. Review evacuation "
            "routes, assembly points, and staff roles post-drill."
        ),
        required_evidence=("Drill sign-in sheets (all shifts)", "Drill timing log", "After-action notes"),
        frequency="semi_annual",
        default_owner_role="ops",
    ),
    ControlTemplate(
        code="AUDIT-STRESS-001",
        title="Year-end compliance system stress test (mock survey / tracer day)",
        standard="Internal",
        category="Compliance",
        test_procedure=(
            "Run a full mock survey / tracer day simulating an AHCCCS, TJC, or CARF visit. Use actual "
            "survey tools. Document all findings and corrective actions."
        ),
        required_evidence=("Mock survey tool with scores", "Tracer audit records", "Corrective action plan"),
        frequency="annual",
        default_owner_role="compliance",
    ),
)


# (due date, control code, assignee) for the March 2026 to February 2027 program year.
_SCHEDULE_ENTRIES: tuple[tuple[str, str, str], ...] = (
    ("2026-03-02", "SAFETY-WV-001", "Brian"),
    ("2026-03-02", "HIPAA-RISK-001", "Brian"),
    ("2026-03-02", "QM-EVAL-001", "Brian"),
    ("2026-03-04", "GOV-QM-001", "Wayne"),
    ("2026-03-11", "CLIN-DOC-001", "Emily"),
    ("2026-03-13", "EMER-DRILL-001", "Wayne"),
    ("2026-03-13", "EMER-READY-001", "Wayne"),
    ("2026-03-13", "HIPAA-PRIV-001", "Brian"),
    ("2026-03-18", "WORK-COMP-001", "Brian"),
    ("2026-03-25", "ENV-CARE-001", "Wayne"),
    ("2026-03-27", "BILL-INT-001", "Brian"),
    ("2026-04-01", "GOV-QM-001", "Wayne"),
    ("2026-04-08", "CLIN-DOC-001", "Emily"),
    ("2026-04-15", "WORK-COMP-001", "Brian"),
    ("2026-04-17", "EMER-EVAC-001", "Wayne"),
    ("2026-04-22", "ENV-CARE-001", "Wayne"),
    ("2026-04-24", "BILL-INT-001", "Brian"),
    ("2026-05-06", "GOV-QM-001", "Wayne"),
    ("2026-05-13", "CLIN-DOC-001", "Emily"),
    ("2026-05-20", "WORK-COMP-001", "Brian"),
    ("2026-05-27", "ENV-CARE-001", "Wayne"),
    ("2026-05-29", "BILL-INT-001", "Brian"),
    ("2026-06-03", "GOV-QM-001", "Wayne"),
    ("2026-06-10", "CLIN-DOC-001", "Emily"),
    ("2026-06-12", "EMER-DRILL-001", "Wayne"),
    ("2026-06-12", "EMER-READY-001", "Wayne"),
    ("2026-06-12", "HIPAA-PRIV-001", "Brian"),
    ("2026-06-17", "WORK-COMP-001", "Brian"),
    ("2026-06-24", "ENV-CARE-001", "Wayne"),
    ("2026-06-26", "BILL-INT-001", "Brian"),
    ("2026-07-01", "GOV-QM-001", "Wayne"),
    ("2026-07-08", "CLIN-DOC-001", "Emily"),
    ("2026-07-15", "WORK-COMP-001", "Brian"),
    ("2026-07-22", "ENV-CARE-001", "Wayne"),
    ("2026-07-31", "BILL-INT-001", "Brian"),
    ("2026-08-05", "GOV-QM-001", "Wayne"),
    ("2026-08-12", "CLIN-DOC-001", "Emily"),
    ("2026-08-19", "WORK-COMP-001", "Brian"),
    ("2026-08-26", "ENV-CARE-001", "Wayne"),
    ("2026-08-28", "BILL-INT-001", "Brian"),
    ("2026-09-02", "GOV-QM-001", "Wayne"),
    ("2026-09-09", "CLIN-DOC-001", "Emily"),
    ("2026-09-11", "EMER-DRILL-001", "Wayne"),
    ("2026-09-11", "EMER-READY-001", "Wayne"),
    ("2026-09-11", "HIPAA-PRIV-001", "Brian"),
    ("2026-09-16", "WORK-COMP-001", "Brian"),
    ("2026-09-23", "ENV-CARE-001", "Wayne"),
    ("2026-09-25", "BILL-INT-001", "Brian"),
    ("2026-10-07", "GOV-QM-001", "Wayne"),
    ("2026-10-14", "CLIN-DOC-001", "Emily"),
    ("2026-10-16", "EMER-EVAC-001", "Wayne"),
    ("2026-10-21", "WORK-COMP-001", "Brian"),
    ("2026-10-28", "ENV-CARE-001", "Wayne"),
    ("2026-10-30", "BILL-INT-001", "Brian"),
    ("2026-11-04", "GOV-QM-001", "Wayne"),
    ("2026-11-11", "CLIN-DOC-001", "Emily"),
    ("2026-11-18", "WORK-COMP-001", "Brian"),
    ("2026-11-25", "ENV-CARE-001", "Wayne"),
    ("2026-11-27", "BILL-INT-001", "Brian"),
    ("2026-12-02", "GOV-QM-001", "Wayne"),
    ("2026-12-09", "CLIN-DOC-001", "Emily"),
    ("2026-12-11", "EMER-DRILL-001", "Wayne"),
    ("2026-12-11", "EMER-READY-001", "Wayne"),
    ("2026-12-11", "HIPAA-PRIV-001", "Brian"),
    ("2026-12-16", "WORK-COMP-001", "Brian"),
    ("2026-12-23", "ENV-CARE-001", "Wayne"),
    ("2026-12-25", "BILL-INT-001", "Brian"),
    ("2027-01-06", "GOV-QM-001", "Wayne"),
    ("2027-01-13", "CLIN-DOC-001", "Emily"),
    ("2027-01-20", "WORK-COMP-001", "Brian"),
    ("2027-01-27", "ENV-CARE-001", "Wayne"),
    ("2027-01-29", "BILL-INT-001", "Brian"),
    ("2027-02-03", "GOV-QM-001", "Wayne"),
    ("2027-02-10", "CLIN-DOC-001", "Emily"),
    ("2027-02-17", "WORK-COMP-001", "Brian"),
    ("2027-02-22", "AUDIT-STRESS-001", "Brian"),
    ("2027-02-24", "ENV-CARE-001", "Wayne"),
    ("2027-02-26", "BILL-INT-001", "Brian"),
)

DEFAULT_SCHEDULE: tuple[ScheduleRow, ...] = tuple(
    ScheduleRow(due_date=date.fromisoformat(due), control_code=code, assignee_name=assignee)
    for due, code, assignee in _SCHEDULE_ENTRIES
)
