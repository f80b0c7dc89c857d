from flask import request
from flask_login import login_required
from ...security import roles_required
from ...services import pricing
from ..utils import json_body, ok
from . import admin_bp


@admin_bp.get('/pricing')
@login_required
@roles_required('admin')
def pricing_list():
    active = request.args.get('is_active')
    entries = pricing.list_entries(
        profile=request.args.get('profile'),
        seniority=request.args.get('seniority'),
        work_mode=request.args.get('work_mode'),
        is_active=None if active in (None, '') else active.lower() in ('1', 'true', 'yes'),
    )
    return ok([e.to_dict() for e in entries])


@admin_bp.post('/pricing')
@login_required
@roles_required('admin')
def pricing_create():
    entry = pricing.create_entry(json_body())
    return ok(entry.to_dict(), 201)


@admin_bp.put('/pricing/<int:entry_id>')
@login_required
@roles_required('admin')
def pricing_update(entry_id):
    entry = pricing.update_entry(entry_id, json_body())
    return ok(entry.to_dict())


@admin_bp.delete('/pricing/<int:entry_id>')
@login_required
@roles_required('admin')
def pricing_delete(entry_id):
    pricing.delete_entry(entry_id)
    return ok()
