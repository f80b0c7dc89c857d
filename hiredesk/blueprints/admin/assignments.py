from flask_login import login_required, current_user
from ...security import roles_required
from ...services import assignments as assignment_service
from ...services import pipeline
from ..utils import json_body, ok
from . import admin_bp


@admin_bp.post('/assignments')
@login_required
@roles_required('admin')
def assignment_upsert():
    payload = json_body()
    assignment, warning = assignment_service.assign_recruiter_specialist(
        current_user,
        payload.get('job_id'),
        recruiter_id=payload.get('recruiter_id'),
        specialist_id=payload.get('specialist_id'),
    )
    return ok(assignment.to_dict(), warning=warning)


@admin_bp.post('/jobs/<int:job_id>/inject-candidates')
@login_required
@roles_required('admin')
def inject_candidates(job_id):
    payload = json_body()
    created = pipeline.inject_candidates(current_user, job_id, payload.get('candidate_ids'))
    return ok([a.to_dict() for a in created], 201, injected=len(created))
