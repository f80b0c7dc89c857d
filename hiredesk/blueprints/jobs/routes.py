from flask import request
from flask_login import current_user, login_required

from ...models.user import Role
from ...security import roles_required
from ...services import jobs as job_service
from ...services.visibility import job_for_viewer
from ..utils import form_errors, json_body, ok
from . import jobs_bp
from .forms import JobForm


def _viewer():
    return current_user if current_user.is_authenticated else None


@jobs_bp.post("/jobs")
@login_required
@roles_required(Role.COMPANY, Role.ADMIN)
def job_create():
    payload = json_body()
    form = JobForm()
    if not form.validate():
        raise form_errors(form)

    data = {k: v for k, v in form.data.items() if k in payload and k != "publish"}
    if "user_id" in payload:
        data["user_id"] = payload["user_id"]
    job = job_service.create_job(current_user, data, publish_now=form.publish.data)
    return ok(job_for_viewer(job, current_user), 201)


@jobs_bp.post("/jobs/<int:job_id>/publish")
@login_required
def job_publish(job_id):
    payload = json_body()
    job = job_service.publish_job(current_user, job_id, expires_at=payload.get("expires_at"))
    return ok(job_for_viewer(job, current_user), new_balance=current_user.credits)


@jobs_bp.patch("/jobs/<int:job_id>")
@login_required
def job_update(job_id):
    job = job_service.update_job(current_user, job_id, json_body())
    return ok(job_for_viewer(job, current_user))


@jobs_bp.post("/jobs/<int:job_id>/status")
@login_required
def job_status(job_id):
    payload = json_body()
    job = job_service.change_status(
        current_user, job_id, payload.get("status"), payload.get("closed_reason"),
    )
    return ok(job_for_viewer(job, current_user))


@jobs_bp.get("/jobs/<int:job_id>")
def job_detail(job_id):
    return ok(job_service.get_job(job_id, _viewer()))


@jobs_bp.get("/jobs")
def job_list():
    filters = {
        key: request.args.get(key)
        for key in ("status", "profile", "seniority", "work_mode", "q")
        if request.args.get(key)
    }
    filters["mine"] = request.args.get("mine", "").lower() in ("1", "true", "yes")
    return ok(job_service.list_jobs(filters, _viewer()))
