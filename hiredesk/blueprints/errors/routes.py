import logging
from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from flask_wtf.csrf import CSRFError
from ...errors import HireDeskError
from ...extensions import db, _
from . import errors_bp

log = logging.getLogger(__name__)


def _rollback():
    # if a DB action caused this, rollback so the session isn't stuck in a bad transaction
    try:
        db.session.rollback()
    except Exception:
        log.exception("rollback failed")


# Domain errors raised by services
@errors_bp.app_errorhandler(HireDeskError)
def err_domain(e: HireDeskError):
    _rollback()
    if e.status_code >= 500:
        log.error("%s %s -> %s", request.method, request.path, e.message)
    return jsonify(e.to_dict()), e.status_code


# 401 - no identity on the request
@errors_bp.app_errorhandler(401)
def err_401(e):
    return jsonify({"success": False, "error": "unauthorized",
                    "message": _("Authentication required.")}), 401


# 404 - unknown route or get_or_404
@errors_bp.app_errorhandler(404)
def err_404(e):
    return jsonify({"success": False, "error": "not_found",
                    "message": _("Not found."), "path": request.path}), 404


# CSRF - treated as 400 Bad Request
@errors_bp.app_errorhandler(CSRFError)
def err_csrf(e):
    return jsonify({"success": False, "error": "csrf", "message": e.description}), 400


# Fallback for any other HTTPException
@errors_bp.app_errorhandler(HTTPException)
def err_http(e: HTTPException):
    return jsonify({"success": False, "error": e.name.lower().replace(" ", "_"),
                    "message": e.description}), e.code


# Last-resort: any other Exception
@errors_bp.app_errorhandler(Exception)
def err_unexpected(e):
    _rollback()
    log.exception("Unhandled error on %s %s", request.method, request.path)
    # Don't leak internals
    return jsonify({"success": False, "error": "server_error",
                    "message": _("Something went wrong. Please try again.")}), 500
