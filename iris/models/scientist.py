"""
Scientist — research staff directory entry.

Only the fields the certification matrix and IRB applications need:
name/job title for display, email as the natural unique key.
"""

from datetime import datetime, timezone

from iris.models import db


class Scientist(db.Model):
    """A member of research staff (PI, co-investigator, technician, ...)."""

    __tablename__ = "scientists"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    job_title = db.Column(db.String(200), nullable=True)
    department = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    certifications = db.relationship(
        "CertificationRecord",
        back_populates="scientist",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "job_title": self.job_title,
            "department": self.department,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Scientist #{self.id} {self.name}>"
