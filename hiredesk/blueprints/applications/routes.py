from flask import request
from flask_login import current_user, login_required

from ...security import policy
from ...services import pipeline
from ...services.jobs import get_job_or_404
from ...services.visibility import job_for_viewer
from ..utils import form_errors, json_body, ok
from . import applications_bp
from .forms import ApplicationForm


@applications_bp.post("/jobs/<int:job_id>/applications")
def application_submit(job_id):
    json_body()
    form = ApplicationForm()
    if not form.validate():
        raise form_errors(form)
    user = current_user if current_user.is_authenticated else None
    application = pipeline.submit_application(job_id, form.data, user=user)
    return ok(application.to_dict(job=job_for_viewer(application.job, user)), 201)


@applications_bp.get("/jobs/<int:job_id>/applications")
@login_required
def application_list(job_id):
    job = get_job_or_404(job_id)
    rows = pipeline.list_applications_for_viewer(
        job.id, current_user, policy.is_job_owner(current_user, job), status=request.args.get("status"),
    )
    return ok(rows, count=len(rows))


@applications_bp.get("/applications/<int:application_id>")
@login_required
def application_detail(application_id):
    return ok(pipeline.get_application(current_user, application_id))


@applications_bp.post("/applications/<int:application_id>/transition")
@login_required
def application_transition(application_id):
    payload = json_body()
    application = pipeline.transition_application(
        current_user,
        application_id,
        payload.get("status"),
        close_job=bool(payload.get("close_job")),
        notes=payload.get("notes"),
    )
    return ok(application.to_dict(job=job_for_viewer(application.job, current_user)))


@applications_bp.post("/applications/<int:application_id>/withdraw")
@login_required
def application_withdraw(application_id):
    application = pipeline.withdraw_application(current_user, application_id)
    return ok({"id": application.id, "withdrawn_at": application.withdrawn_at.isoformat()})
