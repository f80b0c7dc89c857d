# hiredesk/errors.py
"""Domain errors raised by the service layer.

Every error carries a user-legible ``message``, the HTTP status the errors
blueprint renders it with, and optional ``details`` merged into the JSON body.
"""


class HireDeskError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message, **self.details}


class ValidationError(HireDeskError):
    status_code = 400
    code = "validation_error"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class InvalidTransition(HireDeskError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str, *, source=None, target=None, allowed=()):
        super().__init__(
            message,
            source=_plain(source),
            target=_plain(target),
            allowed=sorted(_plain(a) for a in allowed),
        )
        self.source = source
        self.target = target
        self.allowed = tuple(allowed)


class InsufficientCredits(HireDeskError):
    status_code = 402
    code = "insufficient_credits"

    def __init__(self, message: str, *, required: int, available: int):
        super().__init__(message, required=required, available=available)
        self.required = required
        self.available = available


class NotFound(HireDeskError):
    status_code = 404
    code = "not_found"


class Forbidden(HireDeskError):
    status_code = 403
    code = "forbidden"


class Conflict(HireDeskError):
    status_code = 409
    code = "conflict"


def _plain(value):
    return getattr(value, "value", value)
