# hiredesk/models/ledger.py
from datetime import datetime
from enum import Enum
from sqlalchemy import event
from ..extensions import db


class TransactionType(str, Enum):
    SPEND = "spend"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"


class CreditTransaction(db.Model):
    """Append-only: balance_after == balance_before + amount, always."""
    __tablename__ = "credit_transaction"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)  # signed
    balance_before = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey('job.id'), index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey('credit_purchase.id'), index=True)
    description = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship('User', backref=db.backref('credit_transactions', lazy='dynamic'))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "amount": self.amount,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "job_id": self.job_id,
            "purchase_id": self.purchase_id,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(CreditTransaction, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError("credit transactions are immutable; write an offsetting transaction")


@event.listens_for(CreditTransaction, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError("credit transactions are append-only")


class CreditPackage(db.Model):
    __tablename__ = "credit_package"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    credits = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    badge = db.Column(db.String(60))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "credits": self.credits,
            "price": float(self.price),
            "badge": self.badge,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }


class CreditPurchase(db.Model):
    __tablename__ = "credit_purchase"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    package_id = db.Column(db.Integer, db.ForeignKey('credit_package.id'))
    credits = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    # pending|paid|failed
    payment_status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payment_ref = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    paid_at = db.Column(db.DateTime)

    package = db.relationship('CreditPackage')

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "package_id": self.package_id,
            "credits": self.credits,
            "total_price": float(self.total_price),
            "payment_status": self.payment_status,
            "payment_ref": self.payment_ref,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
