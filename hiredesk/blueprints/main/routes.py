from flask import current_app, request
from flask_login import current_user, login_required
from sqlalchemy import text

from ...extensions import db
from ...services import notifications
from ...services.pricing import resolve_cost
from ..utils import int_arg, json_body, ok

from . import main_bp


@main_bp.get("/status")
def status():
    db_ok = True
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("status: database check failed")
        db.session.rollback()
        db_ok = False
    body = {"app": "hiredesk", "version": current_app.config.get("APP_VERSION"), "database": db_ok}
    return ok(body, 200 if db_ok else 503)


@main_bp.get("/pricing/quote")
def pricing_quote():
    quote = resolve_cost(
        request.args.get("profile"),
        request.args.get("seniority"),
        request.args.get("work_mode"),
        request.args.get("location"),
    )
    return ok(quote.to_dict())


@main_bp.get("/notifications")
@login_required
def notification_list():
    unread = request.args.get("unread", "").lower() in ("1", "true", "yes")
    rows = notifications.list_for_user(current_user.id, unread_only=unread,
                                       limit=int_arg("limit", 50, minimum=1, maximum=200))
    return ok([n.to_dict() for n in rows])


@main_bp.post("/notifications/read")
@login_required
def notification_mark_read():
    payload = json_body()
    updated = notifications.mark_read(current_user.id, payload.get("ids"))
    return ok({"updated": updated})
