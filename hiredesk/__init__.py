import os
from pathlib import Path
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify, request, has_request_context
from .extensions import db, migrate, login_manager, csrf, mail, babel, _
from .config import Config
from .models.user import User

# Blueprints
from .blueprints.errors import errors_bp
from .blueprints.main import main_bp
from .blueprints.jobs import jobs_bp
from .blueprints.applications import applications_bp
from .blueprints.assignments import assignments_bp
from .blueprints.credits import credits_bp
from .blueprints.admin import admin_bp

API_BLUEPRINTS = (main_bp, jobs_bp, applications_bp, assignments_bp, credits_bp, admin_bp)


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=os.getenv("GIT_COMMIT", None),
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized.")
    except Exception as e:
        app.logger.warning(f"Sentry init failed: {e}")


def _init_logging(app):
    # Base level
    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)

    # app.logger is shared by every app built in this process
    for handler in [h for h in app.logger.handlers if getattr(h, "_hiredesk", False)]:
        app.logger.removeHandler(handler)
        handler.close()

    # Formatter: text or JSON
    if app.config.get("LOG_JSON", False):
        import json_log_formatter
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")

    handlers = []
    if app.config.get("LOG_TO_FILE", True):
        log_dir = Path(app.config.get("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / app.config.get("LOG_FILENAME", "hiredesk.log")
        # Rotating file handler (5MB x 5)
        handlers.append(RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"))

    # Stream to stdout as well (useful on dev/heroku/docker)
    handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._hiredesk = True
        app.logger.addHandler(handler)

    app.logger.info("Logging initialized.")


def _init_identity(app):
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_header(req):
        raw = (req.headers.get(app.config.get("IDENTITY_HEADER", "X-User-Id")) or "").strip()
        if not raw.isdigit():
            return None
        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "unauthorized",
                        "message": _("Authentication required.")}), 401


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    app.config.setdefault("BABEL_DEFAULT_LOCALE", "es")
    app.config.setdefault("BABEL_DEFAULT_TIMEZONE", "UTC")
    app.config.setdefault("LANGUAGES", ["es", "en"])

    # Logging must come before blueprints so errors during register are captured
    _init_logging(app)
    _init_sentry(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    mail.init_app(app)

    # ---- Babel init (locale from user/Accept-Language) ----
    def _select_locale():
        if not has_request_context():
            return app.config["BABEL_DEFAULT_LOCALE"]
        return (
            request.args.get("lang")
            or request.accept_languages.best_match(app.config.get("LANGUAGES", ["es"]))
            or app.config["BABEL_DEFAULT_LOCALE"]
        )
    babel.init_app(app, locale_selector=_select_locale)
    # --------------------------------------------------------

    _init_identity(app)

    # Blueprints
    app.register_blueprint(errors_bp)  # error handlers
    for bp in API_BLUEPRINTS:
        # header-authenticated JSON; no cookie session to forge
        csrf.exempt(bp)
        app.register_blueprint(bp)

    return app
