from flask import jsonify, request
from ..errors import ValidationError
from ..extensions import _


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(_("Request body must be a JSON object."))
    return data


def ok(payload=None, status=200, **extra):
    body = {"success": True}
    if payload is not None:
        body["data"] = payload
    body.update(extra)
    return jsonify(body), status


def int_arg(name, default=None, *, minimum=None, maximum=None):
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(_("%(field)s must be a number.", field=name))
    if minimum is not None:
        value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def form_errors(form) -> ValidationError:
    fields = {name: [str(m) for m in messages] for name, messages in form.errors.items()}
    first = next(iter(fields.values()), [])
    return ValidationError(first[0] if first else _("Invalid data."), fields=fields)
