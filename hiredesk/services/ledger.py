# hiredesk/services/ledger.py
"""Credit ledger.

``User.credits`` is only ever written here. Every mutation is a guarded
conditional UPDATE followed by an insert into ``credit_transaction`` inside the
same database transaction, so the balance always equals the sum of the log.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import Conflict, Forbidden, InsufficientCredits, InvalidAmount, NotFound
from ..extensions import db, _
from ..models.ledger import CreditPackage, CreditPurchase, CreditTransaction, TransactionType
from ..models.user import Role, User

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerResult:
    new_balance: int
    transaction: CreditTransaction


def _check_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmount(_("Amount must be a non-negative whole number of credits."))


def _current_balance(user_id: int):
    return db.session.query(User.credits).filter(User.id == user_id).scalar()


def balance(user_id: int) -> int:
    value = _current_balance(user_id)
    if value is None:
        raise NotFound(_("User not found."))
    return value


def _record(user_id, tx_type, signed_amount, balance_after, description, job_id=None, purchase_id=None):
    tx = CreditTransaction(
        user_id=user_id,
        type=tx_type.value,
        amount=signed_amount,
        balance_before=balance_after - signed_amount,
        balance_after=balance_after,
        job_id=job_id,
        purchase_id=purchase_id,
        description=description,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def debit(user_id: int, amount: int, description: str, job_id=None, commit: bool = True) -> LedgerResult:
    """Take ``amount`` credits from ``user_id``.

    Pass ``commit=False`` to fold the debit into the caller's unit of work
    (publishing a job); the caller then owns commit and rollback.
    """
    _check_amount(amount)
    try:
        rows = (
            User.query
            .filter(User.id == user_id, User.credits >= amount)
            .update({User.credits: User.credits - amount}, synchronize_session=False)
        )
        if rows == 0:
            available = _current_balance(user_id)
            if available is None:
                raise NotFound(_("User not found."))
            log.warning("Debit refused for user %s: needs %s, has %s", user_id, amount, available)
            raise InsufficientCredits(
                _("Insufficient credits. You need %(required)s and have %(available)s.",
                  required=amount, available=available),
                required=amount,
                available=available,
            )

        after = _current_balance(user_id)
        tx = _record(user_id, TransactionType.SPEND, -amount, after, description, job_id=job_id)
        if commit:
            db.session.commit()
    except Exception:
        if commit:
            db.session.rollback()
        raise

    log.info("Debited %s credits from user %s (balance %s)", amount, user_id, after)
    return LedgerResult(new_balance=after, transaction=tx)


def credit(user_id: int, amount: int, description: str, purchase_id=None, commit: bool = True) -> LedgerResult:
    """Add credits. Linked to a purchase it books a PURCHASE, otherwise an ADJUSTMENT."""
    _check_amount(amount)
    tx_type = TransactionType.PURCHASE if purchase_id is not None else TransactionType.ADJUSTMENT
    try:
        rows = (
            User.query
            .filter(User.id == user_id)
            .update({User.credits: User.credits + amount}, synchronize_session=False)
        )
        if rows == 0:
            raise NotFound(_("User not found."))

        after = _current_balance(user_id)
        tx = _record(user_id, tx_type, amount, after, description, purchase_id=purchase_id)
        if commit:
            db.session.commit()
    except Exception:
        if commit:
            db.session.rollback()
        raise

    log.info("Credited %s credits to user %s (%s, balance %s)", amount, user_id, tx_type.value, after)
    return LedgerResult(new_balance=after, transaction=tx)


def history(user_id: int, limit: int = 50, offset: int = 0):
    """Newest first. Returns (transactions, total)."""
    q = CreditTransaction.query.filter_by(user_id=user_id)
    total = q.count()
    rows = (
        q.order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )
    return rows, total


def verify_history(user_id: int) -> dict:
    """Replay the log and compare it with the stored balance."""
    current = balance(user_id)
    rows = (
        CreditTransaction.query
        .filter_by(user_id=user_id)
        .order_by(CreditTransaction.id.asc())
        .all()
    )
    problems = []
    opening = rows[0].balance_before if rows else current
    running = opening
    for tx in rows:
        if tx.balance_before != running:
            problems.append({"transaction_id": tx.id, "issue": "gap",
                             "expected_before": running, "recorded_before": tx.balance_before})
        if tx.balance_after != tx.balance_before + tx.amount:
            problems.append({"transaction_id": tx.id, "issue": "arithmetic"})
        if tx.balance_after < 0:
            problems.append({"transaction_id": tx.id, "issue": "negative"})
        running = tx.balance_after

    if running != current:
        problems.append({"issue": "balance_mismatch", "computed": running, "stored": current})

    return {
        "ok": not problems,
        "balance": current,
        "opening_balance": opening,
        "sum_of_amounts": sum(tx.amount for tx in rows),
        "transactions": len(rows),
        "problems": problems,
    }


# -----------------
# Packages & purchases
# -----------------

def list_packages(active_only: bool = True):
    q = CreditPackage.query
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(CreditPackage.sort_order.asc(), CreditPackage.id.asc()).all()


def start_purchase(actor, package_id: int) -> CreditPurchase:
    if getattr(actor, "role", None) != Role.COMPANY.value:
        raise Forbidden(_("Only companies can buy credits."))
    package = db.session.get(CreditPackage, package_id)
    if not package or not package.is_active:
        raise NotFound(_("Credit package not found."))

    purchase = CreditPurchase(
        user_id=actor.id,
        package_id=package.id,
        credits=package.credits,
        total_price=package.price,
        payment_status="pending",
    )
    db.session.add(purchase)
    db.session.commit()
    log.info("Purchase %s started by user %s for package %s", purchase.id, actor.id, package.id)
    return purchase


def complete_purchase(purchase_id: int, payment_ref: str | None = None) -> CreditPurchase:
    """Mark paid and credit the buyer together. Completing twice is a no-op."""
    purchase = db.session.get(CreditPurchase, purchase_id)
    if not purchase:
        raise NotFound(_("Purchase not found."))

    try:
        rows = (
            CreditPurchase.query
            .filter_by(id=purchase_id, payment_status="pending")
            .update(
                {
                    CreditPurchase.payment_status: "paid",
                    CreditPurchase.paid_at: datetime.utcnow(),
                    CreditPurchase.payment_ref: payment_ref,
                },
                synchronize_session=False,
            )
        )
        if rows == 0:
            db.session.rollback()
            db.session.refresh(purchase)
            if purchase.payment_status == "paid":
                log.info("Purchase %s already completed", purchase_id)
                return purchase
            raise Conflict(_("This purchase can no longer be completed."),
                           payment_status=purchase.payment_status)

        credit(
            purchase.user_id,
            purchase.credits,
            _("Purchase of %(credits)s credits", credits=purchase.credits),
            purchase_id=purchase.id,
            commit=False,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(purchase)
    log.info("Purchase %s completed: %s credits to user %s", purchase.id, purchase.credits, purchase.user_id)
    return purchase


def fail_purchase(purchase_id: int) -> CreditPurchase:
    purchase = db.session.get(CreditPurchase, purchase_id)
    if not purchase:
        raise NotFound(_("Purchase not found."))
    if purchase.payment_status == "paid":
        raise Conflict(_("A paid purchase cannot be marked as failed."))
    purchase.payment_status = "failed"
    db.session.commit()
    log.warning("Purchase %s marked failed", purchase_id)
    return purchase
