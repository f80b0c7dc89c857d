from flask_login import current_user, login_required

from ...errors import ValidationError
from ...extensions import _
from ...models.user import Role
from ...security import roles_required
from ...services import assignments as assignment_service
from ..utils import json_body, ok
from . import assignments_bp


@assignments_bp.post("/assignments/<int:assignment_id>/send-to-specialist")
@login_required
@roles_required(Role.RECRUITER, Role.ADMIN)
def batch_to_specialist(assignment_id):
    payload = json_body()
    assignment = assignment_service.send_batch_to_specialist(
        current_user, assignment_id, payload.get("candidate_ids"),
    )
    return ok(assignment.to_dict())


@assignments_bp.post("/assignments/<int:assignment_id>/send-to-company")
@login_required
@roles_required(Role.SPECIALIST, Role.ADMIN)
def batch_to_company(assignment_id):
    payload = json_body()
    assignment = assignment_service.send_batch_to_company(
        current_user, assignment_id, payload.get("candidate_ids"),
    )
    return ok(assignment.to_dict())


@assignments_bp.post("/assignments/<int:assignment_id>/status")
@login_required
@roles_required(Role.RECRUITER, Role.SPECIALIST, Role.ADMIN)
def assignment_status(assignment_id):
    payload = json_body()
    # admins say which track they are moving; staff move their own
    track = payload.get("track") or current_user.role
    if track == Role.RECRUITER.value:
        update = assignment_service.update_recruiter_status
    elif track == Role.SPECIALIST.value:
        update = assignment_service.update_specialist_status
    else:
        raise ValidationError(_("track must be recruiter or specialist."))
    assignment = update(current_user, assignment_id, payload.get("status"), notes=payload.get("notes"))
    return ok(assignment.to_dict())


@assignments_bp.post("/applications/<int:application_id>/discard")
@login_required
@roles_required(Role.RECRUITER, Role.SPECIALIST, Role.ADMIN)
def application_discard(application_id):
    payload = json_body()
    application = assignment_service.discard_candidate(current_user, application_id, payload.get("reason"))
    return ok({"id": application.id, "status": application.status})
