# hiredesk/models/job.py
from datetime import datetime
from enum import Enum
from ..extensions import db


class JobStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class ClosedReason(str, Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"


# Fields a company may edit while the edit window is open
CONTENT_FIELDS = (
    "title", "company", "description", "location",
    "salary_min", "salary_max", "job_type", "is_confidential",
    "profile", "seniority", "work_mode", "expires_at",
)
# inputs of resolve_cost; frozen once published
PRICING_FIELDS = ("profile", "seniority", "work_mode", "location")
LIFECYCLE_FIELDS = ("status", "closed_reason")


class Job(db.Model):
    __tablename__ = 'job'

    id = db.Column(db.Integer, primary_key=True)
    # nullable: admins may draft jobs on behalf of a company
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)

    title = db.Column(db.String(200), nullable=False, index=True)
    company = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    location = db.Column(db.String(255))
    salary_min = db.Column(db.Integer)
    salary_max = db.Column(db.Integer)
    job_type = db.Column(db.String(40))

    # pricing inputs
    profile = db.Column(db.String(120), index=True)
    seniority = db.Column(db.String(40), index=True)
    work_mode = db.Column(db.String(20), default="presential", index=True)

    status = db.Column(db.String(20), nullable=False, default=JobStatus.DRAFT.value, index=True)
    closed_reason = db.Column(db.String(20))
    credit_cost = db.Column(db.Integer, nullable=False, default=0)
    published_at = db.Column(db.DateTime)
    editable_until = db.Column(db.DateTime)
    # past this instant an active job stops being listed or taking applications
    expires_at = db.Column(db.DateTime, index=True)
    is_confidential = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship(
        'User',
        foreign_keys=[user_id],
        backref=db.backref('jobs', lazy='dynamic'),
    )
    applications = db.relationship(
        'Application',
        back_populates='job',
        lazy='dynamic',
        cascade='all, delete-orphan',
    )
    assignment = db.relationship(
        'JobAssignment',
        back_populates='job',
        uselist=False,
        cascade='all, delete-orphan',
    )

    def is_open(self, now: datetime) -> bool:
        if self.status != JobStatus.ACTIVE.value:
            return False
        return self.expires_at is None or now < self.expires_at

    def is_editable(self, now: datetime) -> bool:
        if self.editable_until is None:
            return self.status == JobStatus.DRAFT.value
        return now < self.editable_until

    @property
    def logo_url(self):
        profile = getattr(self.owner, "company_profile", None)
        return profile.logo_url if profile else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "company": self.company,
            "description": self.description,
            "location": self.location,
            "salary_min": self.salary_min,
            "salary_max": self.salary_max,
            "job_type": self.job_type,
            "profile": self.profile,
            "seniority": self.seniority,
            "work_mode": self.work_mode,
            "status": self.status,
            "closed_reason": self.closed_reason,
            "credit_cost": self.credit_cost,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "editable_until": self.editable_until.isoformat() if self.editable_until else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_confidential": bool(self.is_confidential),
            "logo_url": self.logo_url,
        }
