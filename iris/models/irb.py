"""
IRB (Institutional Review Board) application model.

Lifecycle (``workflow_status``):

    draft → submitted → under_review → approved
                                     → rejected
                                     → revisions_requested → submitted (resubmit)
    submitted | under_review → draft (withdraw)

approved / rejected are terminal.
"""

from datetime import datetime, timezone

from iris.models import db


# ── Workflow ─────────────────────────────────────────────────────────────────

WORKFLOW_STATUSES = (
    "draft",
    "submitted",
    "under_review",
    "revisions_requested",
    "approved",
    "rejected",
)

TERMINAL_STATUSES = frozenset({"approved", "rejected"})

IRB_TRANSITIONS = {
    "submit": {"from": ["draft", "revisions_requested"], "to": "submitted"},
    "start_review": {"from": ["submitted"], "to": "under_review"},
    "request_revisions": {"from": ["under_review"], "to": "revisions_requested"},
    "approve": {"from": ["under_review"], "to": "approved"},
    "reject": {"from": ["under_review"], "to": "rejected"},
    "withdraw": {"from": ["submitted", "under_review"], "to": "draft"},
}

# Actions that must carry a reviewer comment
COMMENT_REQUIRED_ACTIONS = frozenset({"reject", "request_revisions"})


# ── Form vocabularies ────────────────────────────────────────────────────────

STUDY_DESIGNS = (
    "observational", "interventional", "survey", "interview",
    "focus_group", "chart_review", "database_analysis",
)
RISK_LEVELS = ("minimal", "greater_than_minimal", "high")
PROTOCOL_TYPES = ("exempt", "expedited", "full_board")
MONITORING_FREQUENCIES = ("monthly", "quarterly", "semi_annually", "annually")
SUBMISSION_TYPES = ("initial", "amendment", "continuing_review", "closure")


class IrbApplication(db.Model):
    """A human-subjects research protocol submitted to the IRB."""

    __tablename__ = "irb_applications"

    id = db.Column(db.Integer, primary_key=True)
    irb_number = db.Column(
        db.String(30),
        nullable=False,
        unique=True,
        comment="IRB-{YYYY}-{NNN}, generated on create",
    )
    irb_net_number = db.Column(db.String(50), nullable=True)
    old_number = db.Column(db.String(50), nullable=True)
    title = db.Column(db.Text, nullable=False)
    short_title = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)

    research_activity_id = db.Column(db.Integer, nullable=True, index=True)
    principal_investigator_id = db.Column(
        db.Integer,
        db.ForeignKey("scientists.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    additional_notification_email = db.Column(db.String(255), nullable=True)

    # Regulatory
    protocol_type = db.Column(db.String(30), nullable=True, comment="exempt | expedited | full_board")
    is_interventional = db.Column(db.Boolean, default=False)
    requires_monitoring = db.Column(db.Boolean, default=False)
    monitoring_frequency = db.Column(db.String(30), nullable=True)
    reporting_requirements = db.Column(db.JSON, default=list)

    # Dates
    submission_date = db.Column(db.DateTime(timezone=True), nullable=True)
    initial_approval_date = db.Column(db.Date, nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(30), nullable=False, default="Active")
    workflow_status = db.Column(db.String(30), nullable=False, default="draft", index=True)
    submission_type = db.Column(db.String(30), default="initial")
    version = db.Column(db.Integer, default=1)

    # Study details
    study_design = db.Column(db.String(50), nullable=True)
    risk_level = db.Column(db.String(30), nullable=True)
    vulnerable_populations = db.Column(db.JSON, default=list)
    data_collection_methods = db.Column(db.JSON, default=list)
    subject_enrollment_reasons = db.Column(db.JSON, default=list)
    expected_participants = db.Column(db.Integer, nullable=True)
    study_duration = db.Column(db.String(100), nullable=True)
    funding_source = db.Column(db.String(200), nullable=True)
    conflict_of_interest = db.Column(db.Boolean, default=False)
    multi_site = db.Column(db.Boolean, default=False)
    international_sites = db.Column(db.Boolean, default=False)

    # Free-form payloads
    documents = db.Column(db.JSON, default=list)
    form_data = db.Column(db.JSON, nullable=True, comment="Snapshot of the submission wizard form")
    review_comments = db.Column(db.JSON, default=dict, comment="ISO timestamp -> {action, comment, user_id}")
    pi_responses = db.Column(db.JSON, default=dict, comment="ISO timestamp -> {comment, workflow_status}")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    principal_investigator = db.relationship("Scientist")

    @property
    def is_terminal(self) -> bool:
        return self.workflow_status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        pi = self.principal_investigator
        return {
            "id": self.id,
            "irb_number": self.irb_number,
            "irb_net_number": self.irb_net_number,
            "old_number": self.old_number,
            "title": self.title,
            "short_title": self.short_title,
            "description": self.description,
            "research_activity_id": self.research_activity_id,
            "principal_investigator_id": self.principal_investigator_id,
            "principal_investigator": {"id": pi.id, "name": pi.name} if pi else None,
            "additional_notification_email": self.additional_notification_email,
            "protocol_type": self.protocol_type,
            "is_interventional": self.is_interventional,
            "requires_monitoring": self.requires_monitoring,
            "monitoring_frequency": self.monitoring_frequency,
            "reporting_requirements": self.reporting_requirements or [],
            "submission_date": self.submission_date.isoformat() if self.submission_date else None,
            "initial_approval_date": (
                self.initial_approval_date.isoformat() if self.initial_approval_date else None
            ),
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
            "status": self.status,
            "workflow_status": self.workflow_status,
            "submission_type": self.submission_type,
            "version": self.version,
            "study_design": self.study_design,
            "risk_level": self.risk_level,
            "vulnerable_populations": self.vulnerable_populations or [],
            "data_collection_methods": self.data_collection_methods or [],
            "subject_enrollment_reasons": self.subject_enrollment_reasons or [],
            "expected_participants": self.expected_participants,
            "study_duration": self.study_duration,
            "funding_source": self.funding_source,
            "conflict_of_interest": self.conflict_of_interest,
            "multi_site": self.multi_site,
            "international_sites": self.international_sites,
            "documents": self.documents or [],
            "form_data": self.form_data,
            "review_comments": self.review_comments or {},
            "pi_responses": self.pi_responses or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<IrbApplication #{self.id} {self.irb_number} {self.workflow_status}>"
