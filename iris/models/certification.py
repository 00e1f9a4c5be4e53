"""
Training certification models.

Models:
    - CertificationModule: reference data — a training course and its renewal cadence
    - CertificationRecord: one scientist's completion of one module

Business rules:
    - Records are append-only. A renewal creates a new record; the most
      recent record per (scientist_id, module_id) is the current one.
    - There is NO stored status column. Display status (valid / expiring /
      expired / never) is derived from end_date at read time by
      ``iris.services.certification_status.evaluate_status``.
"""

from datetime import datetime, timezone

from iris.models import db


# ── Default reference data (seeded by `flask seed-certification-modules`) ───

DEFAULT_MODULES = [
    {"name": "Biomedical Research", "is_core": True, "expiration_months": 36,
     "description": "CITI human subjects protection — biomedical track"},
    {"name": "Good Clinical Practice", "is_core": True, "expiration_months": 36,
     "description": "ICH-GCP for investigators and study staff"},
    {"name": "Responsible Conduct of Research", "is_core": True, "expiration_months": 36,
     "description": "RCR core curriculum"},
    {"name": "Information Privacy & Security", "is_core": True, "expiration_months": 36,
     "description": "Handling of identifiable research data"},
    {"name": "Biosafety", "is_core": False, "expiration_months": 12,
     "description": "Laboratory biosafety for BSL-2 work"},
]


class CertificationModule(db.Model):
    """A named training/compliance course with a defined renewal period."""

    __tablename__ = "certification_modules"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    description = db.Column(db.Text, default="")
    is_core = db.Column(db.Boolean, nullable=False, default=False)
    expiration_months = db.Column(
        db.Integer,
        nullable=False,
        default=36,
        comment="Renewal cadence; used to derive end_date when only start_date is known",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    records = db.relationship("CertificationRecord", back_populates="module", lazy="dynamic")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_core": self.is_core,
            "expiration_months": self.expiration_months,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return f"<CertificationModule #{self.id} {self.name}>"


class CertificationRecord(db.Model):
    """One scientist's completion of one training module."""

    __tablename__ = "certification_records"

    id = db.Column(db.Integer, primary_key=True)
    scientist_id = db.Column(
        db.Integer,
        db.ForeignKey("scientists.id", ondelete="CASCADE"),
        nullable=False,
    )
    module_id = db.Column(
        db.Integer,
        db.ForeignKey("certification_modules.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    certificate_file_path = db.Column(db.String(500), nullable=True)
    report_file_path = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    scientist = db.relationship("Scientist", back_populates="certifications")
    module = db.relationship("CertificationModule", back_populates="records")

    __table_args__ = (
        db.Index("ix_cert_scientist_module", "scientist_id", "module_id"),
        db.Index("ix_cert_end_date", "end_date"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scientist_id": self.scientist_id,
            "module_id": self.module_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "certificate_file_path": self.certificate_file_path,
            "report_file_path": self.report_file_path,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<CertificationRecord #{self.id} scientist={self.scientist_id} module={self.module_id}>"
