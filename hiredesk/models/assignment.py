from datetime import datetime
from enum import Enum
from ..extensions import db


class RecruiterStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    SENT_TO_SPECIALIST = "sent_to_specialist"


class SpecialistStatus(str, Enum):
    PENDING = "pending"
    EVALUATING = "evaluating"
    SENT_TO_COMPANY = "sent_to_company"


class JobAssignment(db.Model):
    __tablename__ = "job_assignment"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey('job.id'), nullable=False, unique=True, index=True)
    recruiter_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)
    specialist_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey('user.id'))

    recruiter_status = db.Column(db.String(30), nullable=False, default=RecruiterStatus.PENDING.value, index=True)
    specialist_status = db.Column(db.String(30), nullable=False, default=SpecialistStatus.PENDING.value, index=True)
    recruiter_notes = db.Column(db.Text)
    specialist_notes = db.Column(db.Text)

    # ordered candidate-id sets; always reassigned, never mutated in place
    sent_to_specialist = db.Column(db.JSON, nullable=False, default=list)
    sent_to_company = db.Column(db.JSON, nullable=False, default=list)

    follow_up_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job        = db.relationship('Job', back_populates='assignment')
    recruiter  = db.relationship('User', foreign_keys=[recruiter_id],
                                 backref=db.backref('recruiter_assignments', lazy='dynamic'))
    specialist = db.relationship('User', foreign_keys=[specialist_id],
                                 backref=db.backref('specialist_assignments', lazy='dynamic'))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "recruiter_id": self.recruiter_id,
            "specialist_id": self.specialist_id,
            "recruiter_status": self.recruiter_status,
            "specialist_status": self.specialist_status,
            "recruiter_notes": self.recruiter_notes,
            "specialist_notes": self.specialist_notes,
            "sent_to_specialist": list(self.sent_to_specialist or []),
            "sent_to_company": list(self.sent_to_company or []),
            "follow_up_date": self.follow_up_date.isoformat() if self.follow_up_date else None,
        }
