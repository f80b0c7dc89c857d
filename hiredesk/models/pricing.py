from datetime import datetime
from ..extensions import db

SENIORITIES = ("Practicante", "Jr", "Middle", "Sr", "Director")
WORK_MODES = ("remote", "hybrid", "presential")


class PricingEntry(db.Model):
    __tablename__ = "pricing_entry"

    id = db.Column(db.Integer, primary_key=True)
    profile = db.Column(db.String(120), nullable=False, index=True)
    seniority = db.Column(db.String(40), nullable=False)
    work_mode = db.Column(db.String(20), nullable=False)
    location = db.Column(db.String(255))
    credits = db.Column(db.Integer, nullable=False)
    min_salary = db.Column(db.Integer)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profile": self.profile,
            "seniority": self.seniority,
            "work_mode": self.work_mode,
            "location": self.location,
            "credits": self.credits,
            "min_salary": self.min_salary,
            "is_active": self.is_active,
        }


# one generic (location-less) price per (profile, seniority, work mode)
db.Index(
    "uq_pricing_entry_generic",
    PricingEntry.profile,
    PricingEntry.seniority,
    PricingEntry.work_mode,
    unique=True,
    postgresql_where=PricingEntry.location.is_(None),
    sqlite_where=PricingEntry.location.is_(None),
)
