# hiredesk/models/application.py
from datetime import datetime
from enum import Enum
from ..extensions import db


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    INJECTED_BY_ADMIN = "injected_by_admin"
    REVIEWING = "reviewing"
    SENT_TO_SPECIALIST = "sent_to_specialist"
    EVALUATING = "evaluating"
    SENT_TO_COMPANY = "sent_to_company"
    COMPANY_INTERESTED = "company_interested"
    INTERVIEWED = "interviewed"
    DISCARDED = "discarded"
    ARCHIVED = "archived"
    REJECTED = "rejected"
    ACCEPTED = "accepted"


class Application(db.Model):
    __tablename__ = "application"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey('job.id'), nullable=False, index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey('candidate.id'), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)

    candidate_name = db.Column(db.String(200), nullable=False)
    candidate_email = db.Column(db.String(255), nullable=False, index=True)
    candidate_phone = db.Column(db.String(50))
    cv_url = db.Column(db.String(500))
    cover_letter = db.Column(db.Text)
    notes = db.Column(db.Text)

    status = db.Column(db.String(30), nullable=False, default=ApplicationStatus.PENDING.value, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    reviewed_at = db.Column(db.DateTime)
    withdrawn_at = db.Column(db.DateTime)

    job = db.relationship('Job', back_populates='applications')
    candidate = db.relationship('Candidate', backref=db.backref('applications', lazy='dynamic'))
    applicant = db.relationship('User', foreign_keys=[user_id])

    @property
    def is_withdrawn(self) -> bool:
        return self.withdrawn_at is not None

    def to_dict(self, job: dict | None = None) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "candidate_id": self.candidate_id,
            "user_id": self.user_id,
            "candidate_name": self.candidate_name,
            "candidate_email": self.candidate_email,
            "candidate_phone": self.candidate_phone,
            "cv_url": self.cv_url,
            "cover_letter": self.cover_letter,
            "notes": self.notes,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "withdrawn_at": self.withdrawn_at.isoformat() if self.withdrawn_at else None,
            "job": job,
        }


# one live application per (job, candidate e-mail)
db.Index(
    "uq_application_job_email_live",
    Application.job_id,
    db.func.lower(Application.candidate_email),
    unique=True,
    postgresql_where=Application.withdrawn_at.is_(None),
    sqlite_where=Application.withdrawn_at.is_(None),
)
