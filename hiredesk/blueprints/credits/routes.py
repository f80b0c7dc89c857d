from flask_login import current_user, login_required

from ...models.user import Role
from ...security import roles_required
from ...services import ledger
from ..utils import int_arg, json_body, ok
from . import credits_bp


@credits_bp.get("/balance")
@login_required
def balance():
    return ok({"credits": ledger.balance(current_user.id)})


@credits_bp.get("/transactions")
@login_required
def transactions():
    limit = int_arg("limit", 50, minimum=1, maximum=200)
    offset = int_arg("offset", 0, minimum=0)
    rows, total = ledger.history(current_user.id, limit=limit, offset=offset)
    return ok([tx.to_dict() for tx in rows], total=total, limit=limit, offset=offset)


@credits_bp.get("/packages")
def packages():
    return ok([p.to_dict() for p in ledger.list_packages(active_only=True)])


@credits_bp.post("/purchases")
@login_required
@roles_required(Role.COMPANY)
def purchase_start():
    payload = json_body()
    purchase = ledger.start_purchase(current_user, payload.get("package_id"))
    return ok(purchase.to_dict(), 201)
