from datetime import datetime
from ..extensions import db


class Candidate(db.Model):
    """A person in the agency's candidate bank, addressed by id in hand-off batches."""
    __tablename__ = "candidate"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50))
    cv_url = db.Column(db.String(500))
    profile = db.Column(db.String(120), index=True)
    seniority = db.Column(db.String(40))
    source = db.Column(db.String(60), default="manual")

    # available|in_process|hired
    status = db.Column(db.String(20), default="available", index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
