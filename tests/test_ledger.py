from decimal import Decimal

import pytest

from hiredesk.errors import Conflict, Forbidden, InsufficientCredits, InvalidAmount, NotFound
from hiredesk.extensions import db
from hiredesk.models.ledger import CreditPackage, CreditTransaction, TransactionType
from hiredesk.models.user import User
from hiredesk.services import ledger


def _log(user):
    return CreditTransaction.query.filter_by(user_id=user.id).order_by(CreditTransaction.id).all()


@pytest.fixture
def package(app):
    pkg = CreditPackage(name="Starter", credits=25, price=Decimal("499.00"), sort_order=1)
    db.session.add(pkg)
    db.session.commit()
    return pkg


class TestDebit:

    def test_debit_records_transaction(self, company):
        ledger.credit(company.id, 10, "seed")
        result = ledger.debit(company.id, 4, "Publication", job_id=None)

        assert result.new_balance == 6
        assert ledger.balance(company.id) == 6
        tx = result.transaction
        assert tx.type == TransactionType.SPEND.value
        assert (tx.amount, tx.balance_before, tx.balance_after) == (-4, 10, 6)

    def test_overdraw_leaves_everything_untouched(self, company):
        ledger.credit(company.id, 3, "seed")
        with pytest.raises(InsufficientCredits) as exc:
            ledger.debit(company.id, 5, "Publication")
        assert (exc.value.required, exc.value.available) == (5, 3)
        assert ledger.balance(company.id) == 3
        assert len(_log(company)) == 1

    def test_exact_balance_can_be_spent(self, company):
        ledger.credit(company.id, 5, "seed")
        assert ledger.debit(company.id, 5, "Publication").new_balance == 0

    @pytest.mark.parametrize("amount", [-1, 2.5, "3", True, None])
    def test_invalid_amounts(self, company, amount):
        with pytest.raises(InvalidAmount):
            ledger.debit(company.id, amount, "x")

    def test_zero_is_allowed(self, company):
        assert ledger.debit(company.id, 0, "free").new_balance == 0

    def test_unknown_user(self, app):
        with pytest.raises(NotFound):
            ledger.debit(999, 1, "x")


class TestCredit:

    def test_adjustment_without_purchase(self, company):
        result = ledger.credit(company.id, 7, "goodwill")
        assert result.transaction.type == TransactionType.ADJUSTMENT.value
        assert result.new_balance == 7

    def test_unknown_user(self, app):
        with pytest.raises(NotFound):
            ledger.credit(999, 1, "x")

    def test_negative_rejected(self, company):
        with pytest.raises(InvalidAmount):
            ledger.credit(company.id, -5, "x")


class TestHistory:

    def test_balance_equals_sum_of_log(self, company):
        ledger.credit(company.id, 10, "a")
        ledger.debit(company.id, 3, "b")
        ledger.credit(company.id, 2, "c")
        ledger.debit(company.id, 9, "d")

        assert ledger.balance(company.id) == sum(tx.amount for tx in _log(company)) == 0

    def test_history_newest_first(self, company):
        ledger.credit(company.id, 10, "first")
        ledger.debit(company.id, 1, "second")
        rows, total = ledger.history(company.id)
        assert total == 2
        assert [r.description for r in rows] == ["second", "first"]

    def test_history_paging(self, company):
        for i in range(5):
            ledger.credit(company.id, 1, f"grant {i}")
        rows, total = ledger.history(company.id, limit=2, offset=2)
        assert total == 5
        assert [r.description for r in rows] == ["grant 2", "grant 1"]

    def test_verify_history(self, company):
        ledger.credit(company.id, 10, "a")
        ledger.debit(company.id, 4, "b")
        report = ledger.verify_history(company.id)
        assert report["ok"]
        assert report["balance"] == 6
        assert report["sum_of_amounts"] == 6
        assert report["transactions"] == 2

    def test_verify_history_detects_drift(self, company):
        ledger.credit(company.id, 10, "a")
        # write around the ledger on purpose
        User.query.filter_by(id=company.id).update({"credits": 50})
        db.session.commit()
        report = ledger.verify_history(company.id)
        assert not report["ok"]
        assert report["problems"][-1]["issue"] == "balance_mismatch"

    def test_transactions_are_append_only(self, company):
        tx = ledger.credit(company.id, 10, "a").transaction
        tx.description = "edited"
        with pytest.raises(RuntimeError):
            db.session.commit()
        db.session.rollback()


class TestPurchases:

    def test_packages_listed_in_order(self, package):
        db.session.add(CreditPackage(name="Pro", credits=100, price=Decimal("1499.00"), sort_order=0))
        db.session.add(CreditPackage(name="Old", credits=5, price=Decimal("99.00"), is_active=False))
        db.session.commit()
        assert [p.name for p in ledger.list_packages()] == ["Pro", "Starter"]

    def test_only_companies_buy(self, recruiter, package):
        with pytest.raises(Forbidden):
            ledger.start_purchase(recruiter, package.id)

    def test_complete_purchase_credits_once(self, company, package):
        purchase = ledger.start_purchase(company, package.id)
        assert purchase.payment_status == "pending"

        ledger.complete_purchase(purchase.id, payment_ref="PAY-1")
        ledger.complete_purchase(purchase.id, payment_ref="PAY-1")

        assert ledger.balance(company.id) == 25
        log = _log(company)
        assert len(log) == 1
        assert log[0].type == TransactionType.PURCHASE.value
        assert log[0].purchase_id == purchase.id
        assert purchase.payment_status == "paid"
        assert purchase.paid_at is not None

    def test_failed_purchase_cannot_complete(self, company, package):
        purchase = ledger.start_purchase(company, package.id)
        ledger.fail_purchase(purchase.id)
        with pytest.raises(Conflict):
            ledger.complete_purchase(purchase.id)
        assert ledger.balance(company.id) == 0

    def test_paid_purchase_cannot_fail(self, company, package):
        purchase = ledger.start_purchase(company, package.id)
        ledger.complete_purchase(purchase.id)
        with pytest.raises(Conflict):
            ledger.fail_purchase(purchase.id)

    def test_unknown_package(self, company):
        with pytest.raises(NotFound):
            ledger.start_purchase(company, 999)
