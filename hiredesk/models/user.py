# hiredesk/models/user.py
from datetime import datetime
from enum import Enum
from flask_login import UserMixin
from ..extensions import db


class Role(str, Enum):
    ADMIN = "admin"
    COMPANY = "company"
    RECRUITER = "recruiter"
    SPECIALIST = "specialist"
    CANDIDATE = "candidate"
    USER = "user"


# ------- Core Models -------

class User(UserMixin, db.Model):
    __tablename__ = "user"
    __table_args__ = (
        db.CheckConstraint("credits >= 0", name="ck_user_credits_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50))

    # admin|company|recruiter|specialist|candidate|user
    role = db.Column(db.String(20), nullable=False, default=Role.USER.value, index=True)
    # specialists only: the job profile they evaluate
    specialty = db.Column(db.String(120))

    # Balance is written by services.ledger only
    credits = db.Column(db.Integer, nullable=False, default=0)

    is_active_account = db.Column(db.Boolean, nullable=False, default=True, index=True)
    deactivated_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company_profile = db.relationship(
        "CompanyProfile",
        backref="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    # Flask-Login consults this on every request
    @property
    def is_active(self) -> bool:
        return bool(self.is_active_account)

    def deactivate(self):
        self.is_active_account = False
        self.deactivated_at = datetime.utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "specialty": self.specialty,
            "credits": self.credits,
            "is_active": self.is_active,
        }


class CompanyProfile(db.Model):
    __tablename__ = "company_profile"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, index=True)
    company_name = db.Column(db.String(255), nullable=False)
    rfc = db.Column(db.String(20), unique=True)
    logo_url = db.Column(db.String(500))
