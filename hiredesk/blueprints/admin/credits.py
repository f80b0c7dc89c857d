from flask_login import login_required, current_user
from ...security import roles_required
from ...services import ledger
from ...services.notifications import notify
from ...extensions import _
from ..utils import json_body, ok
from . import admin_bp


@admin_bp.post('/credits/purchases/<int:purchase_id>/complete')
@login_required
@roles_required('admin')
def purchase_complete(purchase_id):
    payload = json_body()
    purchase = ledger.complete_purchase(purchase_id, payment_ref=payload.get('payment_ref'))
    notify(
        purchase.user_id, 'credits_added',
        _('Credits added'),
        _('%(credits)s credits were added to your account.', credits=purchase.credits),
        link='/credits/transactions',
        metadata={'purchase_id': purchase.id},
    )
    return ok(purchase.to_dict(), new_balance=ledger.balance(purchase.user_id))


@admin_bp.post('/credits/purchases/<int:purchase_id>/fail')
@login_required
@roles_required('admin')
def purchase_fail(purchase_id):
    purchase = ledger.fail_purchase(purchase_id)
    return ok(purchase.to_dict())


@admin_bp.post('/credits/grant')
@login_required
@roles_required('admin')
def credits_grant():
    payload = json_body()
    description = payload.get('description') or _('Adjustment by %(admin)s', admin=current_user.name)
    result = ledger.credit(payload.get('user_id'), payload.get('amount'), description)
    return ok(result.transaction.to_dict(), new_balance=result.new_balance)


@admin_bp.get('/credits/users/<int:user_id>/verify')
@login_required
@roles_required('admin')
def credits_verify(user_id):
    return ok(ledger.verify_history(user_id))
