from hiredesk.models.notification import Notification
from hiredesk.services import notifications
from hiredesk.services.email_service import send_email


def test_broadcast_reaches_active_admins(admin, make_user):
    retired = make_user("admin")
    retired.deactivate()
    assert notifications.notify(notifications.BROADCAST_ADMINS, "ping", "Ping", "hello") == 1
    assert Notification.query.filter_by(user_id=admin.id).count() == 1


def test_unknown_recipient_stores_nothing(app):
    assert notifications.notify(404, "ping", "Ping", "hello") == 0


def test_failures_are_swallowed(company, monkeypatch):
    def boom(recipient):
        raise RuntimeError("db down")

    monkeypatch.setattr(notifications, "_recipients", boom)
    assert notifications.notify(company.id, "ping", "Ping", "hello") == 0


def test_email_copy(app, company, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_email", lambda **kw: sent.append(kw))
    app.config["NOTIFY_BY_EMAIL"] = True
    notifications.notify(company.id, "ping", "Ping", "hello")
    assert sent == [{"to": company.email, "subject": "Ping", "body": "hello"}]


def test_mark_read(company):
    notifications.notify(company.id, "a", "A", "a")
    notifications.notify(company.id, "b", "B", "b")
    assert notifications.mark_read(company.id) == 2
    assert notifications.list_for_user(company.id, unread_only=True) == []


def test_suppressed_mail_reports_success(app):
    app.config["MAIL_DEFAULT_SENDER"] = "noreply@example.com"
    assert send_email(to="someone@example.com", subject="Hi", body="Hello") is True


def test_mail_without_sender(app):
    app.config["MAIL_DEFAULT_SENDER"] = None
    app.config["MAIL_USERNAME"] = None
    assert send_email(to="someone@example.com", subject="Hi", body="Hello") is False
