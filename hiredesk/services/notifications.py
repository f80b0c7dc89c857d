# hiredesk/services/notifications.py
"""In-app notifications, sent after the core change has committed.

A failed notification never undoes or fails the action that triggered it.
"""
import logging

from flask import current_app

from ..extensions import db
from ..models.notification import Notification
from ..models.user import Role, User
from .email_service import send_email

log = logging.getLogger(__name__)

BROADCAST_ADMINS = "admins"


def _recipients(recipient):
    if recipient == BROADCAST_ADMINS:
        return User.query.filter_by(role=Role.ADMIN.value, is_active_account=True).all()
    user = db.session.get(User, recipient) if recipient is not None else None
    return [user] if user else []


def notify(recipient, type, title, message, link=None, metadata=None) -> int:
    """Returns how many notifications were stored (0 on failure)."""
    try:
        users = _recipients(recipient)
        for user in users:
            db.session.add(Notification(
                user_id=user.id,
                type=type,
                title=title,
                message=message,
                link=link,
                meta=metadata or {},
            ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        log.exception("notify(%s, %s) failed", recipient, type)
        return 0

    if current_app.config.get("NOTIFY_BY_EMAIL"):
        for user in users:
            # best-effort; send_email logs its own failures
            send_email(to=user.email, subject=title, body=message)
    return len(users)


def list_for_user(user_id: int, unread_only: bool = False, limit: int = 50):
    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter_by(is_read=False)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(user_id: int, notification_ids=None) -> int:
    q = Notification.query.filter_by(user_id=user_id, is_read=False)
    if notification_ids:
        q = q.filter(Notification.id.in_(notification_ids))
    updated = q.update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return updated
