# hiredesk/services/jobs.py
"""Job lifecycle: draft -> active <-> paused -> closed, publication and edit window."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from ..errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationError
from ..extensions import db, _
from ..models.job import (
    CONTENT_FIELDS, LIFECYCLE_FIELDS, PRICING_FIELDS, ClosedReason, Job, JobStatus,
)
from ..models.pricing import SENIORITIES, WORK_MODES
from ..models.user import Role
from ..security import policy
from . import ledger
from .notifications import BROADCAST_ADMINS, notify
from .pricing import check_salary_floor, resolve_cost
from .visibility import job_for_viewer

log = logging.getLogger(__name__)

# Publication (draft -> active) is not a plain status change; see publish_job
JOB_TRANSITIONS = {
    JobStatus.DRAFT: frozenset({JobStatus.CLOSED}),
    JobStatus.ACTIVE: frozenset({JobStatus.PAUSED, JobStatus.CLOSED}),
    JobStatus.PAUSED: frozenset({JobStatus.ACTIVE, JobStatus.CLOSED}),
    JobStatus.CLOSED: frozenset({JobStatus.ACTIVE}),
}


def get_job_or_404(job_id: int) -> Job:
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound(_("Job not found."))
    return job


def _as_int(value, field):
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationError(_("%(field)s must be a number.", field=field))
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(_("%(field)s must be a number.", field=field))


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _as_flag(value, field):
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError(_("%(field)s must be true or false.", field=field))


def _as_datetime(value, field):
    """ISO 8601 string or datetime -> naive UTC datetime."""
    if value in (None, ""):
        return None
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(_("%(field)s must be an ISO 8601 date.", field=field))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _clean_content(data: dict) -> dict:
    clean = {}
    for key in CONTENT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in ("salary_min", "salary_max"):
            value = _as_int(value, key)
        elif key == "is_confidential":
            value = _as_flag(value, key)
        elif key == "expires_at":
            value = _as_datetime(value, key)
        elif isinstance(value, str):
            value = value.strip() or None
        clean[key] = value

    if "seniority" in clean and clean["seniority"] and clean["seniority"] not in SENIORITIES:
        raise ValidationError(_("Invalid seniority. Valid values: %(values)s", values=", ".join(SENIORITIES)))
    if "work_mode" in clean and clean["work_mode"] and clean["work_mode"] not in WORK_MODES:
        raise ValidationError(_("Invalid work mode. Valid values: %(values)s", values=", ".join(WORK_MODES)))
    for key in ("title", "company"):
        if key in clean and not clean[key]:
            raise ValidationError(_("%(field)s is required.", field=key))
    return clean


def _check_salary_range(salary_min, salary_max):
    if salary_min is not None and salary_min < 0:
        raise ValidationError(_("Salary cannot be negative."))
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise ValidationError(_("Minimum salary cannot be greater than maximum salary."))


def _check_expiry(expires_at, now):
    if expires_at is not None and expires_at <= now:
        raise ValidationError(_("The expiry date must be in the future."))


def create_job(actor, data: dict, publish_now: bool = False, now: datetime | None = None) -> Job:
    if not policy.can_create_jobs(actor):
        raise Forbidden(_("Only companies can post jobs."))

    clean = _clean_content(data)
    if not clean.get("company"):
        profile = getattr(actor, "company_profile", None)
        if profile:
            clean["company"] = profile.company_name
    for key in ("title", "company"):
        if not clean.get(key):
            raise ValidationError(_("%(field)s is required.", field=key))
    _check_salary_range(clean.get("salary_min"), clean.get("salary_max"))
    _check_expiry(clean.get("expires_at"), now or datetime.utcnow())

    quote = resolve_cost(clean.get("profile"), clean.get("seniority"),
                         clean.get("work_mode"), clean.get("location"))
    check_salary_floor(quote, clean.get("salary_min"))

    owner_id = actor.id
    if policy.is_admin(actor):
        owner_id = _as_int(data.get("user_id"), "user_id")

    job = Job(user_id=owner_id, status=JobStatus.DRAFT.value, credit_cost=0, **clean)
    db.session.add(job)
    db.session.commit()
    log.info("Job %s drafted by user %s", job.id, actor.id)

    if publish_now:
        return publish_job(actor, job.id, now=now)
    return job


def _charge_publication(actor, job: Job, cost: int) -> int:
    """Debit the owner inside the caller's transaction. Returns what was charged."""
    if not policy.pays_for_publication(actor):
        return 0
    payer_id = job.user_id or actor.id
    ledger.debit(
        payer_id,
        cost,
        _("Publication of job: %(title)s", title=job.title),
        job_id=job.id,
        commit=False,
    )
    return cost


def publish_job(actor, job_id: int, now: datetime | None = None, expires_at=None) -> Job:
    """Activate a draft. ``credit_cost`` records the catalog price even when nothing was charged."""
    job = get_job_or_404(job_id)
    policy.require_job_manager(actor, job)
    if job.status != JobStatus.DRAFT.value:
        raise InvalidTransition(
            _("Only draft jobs can be published."),
            source=job.status, target=JobStatus.ACTIVE, allowed=JOB_TRANSITIONS[JobStatus(job.status)],
        )

    now = now or datetime.utcnow()
    expires_at = _as_datetime(expires_at, "expires_at") or job.expires_at
    _check_expiry(expires_at, now)
    quote = resolve_cost(job.profile, job.seniority, job.work_mode, job.location)
    check_salary_floor(quote, job.salary_min)
    hours = current_app.config.get("JOB_EDIT_WINDOW_HOURS", 4)

    try:
        charged = _charge_publication(actor, job, quote.credits)
        rows = (
            Job.query
            .filter_by(id=job.id, status=JobStatus.DRAFT.value)
            .update(
                {
                    Job.status: JobStatus.ACTIVE.value,
                    Job.credit_cost: quote.credits,
                    Job.published_at: now,
                    Job.editable_until: now + timedelta(hours=hours),
                    Job.expires_at: expires_at,
                    Job.closed_reason: None,
                },
                synchronize_session=False,
            )
        )
        if rows == 0:
            raise Conflict(_("This job was modified by someone else. Reload and try again."))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(job)
    log.info("Job %s published by user %s (cost %s, charged %s)", job.id, actor.id, quote.credits, charged)
    notify(
        BROADCAST_ADMINS, "job_published",
        _("New job published"),
        _("%(company)s published \"%(title)s\".", company=job.company, title=job.title),
        link=f"/jobs/{job.id}",
        metadata={"job_id": job.id, "credit_cost": quote.credits, "charged": charged},
    )
    return job


def _check_content(job: Job, content: dict, now: datetime):
    if job.status != JobStatus.DRAFT.value and not job.is_editable(now):
        log.warning("Edit refused for job %s: window closed at %s", job.id, job.editable_until)
        raise ValidationError(
            _("The edit window for this job has closed."),
            editable_until=job.editable_until.isoformat() if job.editable_until else None,
        )
    if job.published_at is not None:
        frozen = [k for k in PRICING_FIELDS if k in content and content[k] != getattr(job, k)]
        if frozen:
            raise ValidationError(
                _("Pricing fields cannot change after publication: %(fields)s", fields=", ".join(frozen)),
            )

    salary_min = content.get("salary_min", job.salary_min)
    _check_salary_range(salary_min, content.get("salary_max", job.salary_max))
    if "expires_at" in content:
        _check_expiry(content["expires_at"], now)
    quote = resolve_cost(
        content.get("profile", job.profile),
        content.get("seniority", job.seniority),
        content.get("work_mode", job.work_mode),
        content.get("location", job.location),
    )
    check_salary_floor(quote, salary_min)


def update_job(actor, job_id: int, changes: dict, now: datetime | None = None) -> Job:
    """Content edits and a status change, validated first and committed together."""
    job = get_job_or_404(job_id)
    policy.require_job_manager(actor, job)
    now = now or datetime.utcnow()

    unknown = set(changes) - set(CONTENT_FIELDS) - set(LIFECYCLE_FIELDS)
    if unknown:
        raise ValidationError(_("These fields cannot be changed: %(fields)s", fields=", ".join(sorted(unknown))))

    content = _clean_content({k: v for k, v in changes.items() if k in CONTENT_FIELDS})
    if content:
        _check_content(job, content, now)
    step = None
    if "status" in changes:
        step = _check_status(job, changes["status"], changes.get("closed_reason"))

    for key, value in content.items():
        setattr(job, key, value)
    if step is not None:
        _apply_status(job, *step)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if content:
        log.info("Job %s edited by user %s", job.id, actor.id)
    if step is not None:
        log.info("Job %s -> %s by user %s", job.id, step[0].value, actor.id)
    return job


def _check_status(job: Job, status, closed_reason=None):
    """Validate a status change without touching the job. Returns (target, reason or None)."""
    try:
        target = JobStatus(status)
    except ValueError:
        raise ValidationError(_("Invalid job status: %(status)s", status=status))
    source = JobStatus(job.status)
    allowed = JOB_TRANSITIONS[source]

    if target not in allowed:
        message = _("A job cannot go from %(source)s to %(target)s.", source=source.value, target=target.value)
        if source is JobStatus.DRAFT and target is JobStatus.ACTIVE:
            message = _("Draft jobs must be published.")
        raise InvalidTransition(message, source=source, target=target, allowed=allowed)

    if target is JobStatus.ACTIVE and job.published_at is None:
        # a draft closed before publication cannot be reopened for free
        raise InvalidTransition(
            _("This job was never published. Publish it instead."),
            source=source, target=target, allowed=allowed - {JobStatus.ACTIVE},
        )

    reason = None
    if target is JobStatus.CLOSED:
        try:
            reason = ClosedReason(closed_reason)
        except ValueError:
            raise ValidationError(_("A closed job needs a reason: success or cancelled."))
    return target, reason


def _apply_status(job: Job, target: JobStatus, reason: ClosedReason | None):
    job.status = target.value
    job.closed_reason = reason.value if reason is not None else None


def change_status(actor, job_id: int, status, closed_reason=None) -> Job:
    job = get_job_or_404(job_id)
    policy.require_job_manager(actor, job)
    source = job.status
    target, reason = _check_status(job, status, closed_reason)
    _apply_status(job, target, reason)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info("Job %s: %s -> %s by user %s", job.id, source, target.value, actor.id)
    return job


# -----------------
# Reads
# -----------------

def _can_see_unpublished(viewer, job) -> bool:
    if viewer is None:
        return False
    if policy.is_admin(viewer) or policy.is_job_owner(viewer, job):
        return True
    assignment = job.assignment
    return bool(assignment) and viewer.id in (assignment.recruiter_id, assignment.specialist_id)


def get_job(job_id: int, viewer=None, now: datetime | None = None) -> dict:
    job = get_job_or_404(job_id)
    if not job.is_open(now or datetime.utcnow()) and not _can_see_unpublished(viewer, job):
        raise NotFound(_("Job not found."))
    return job_for_viewer(job, viewer)


def list_jobs(filters: dict | None = None, viewer=None, now: datetime | None = None) -> list[dict]:
    filters = filters or {}
    now = now or datetime.utcnow()
    q = Job.query

    role = getattr(viewer, "role", None)
    if filters.get("mine") and viewer is not None:
        q = q.filter(Job.user_id == viewer.id)
        if filters.get("status"):
            q = q.filter(Job.status == filters["status"])
    elif role == Role.ADMIN.value:
        if filters.get("status"):
            q = q.filter(Job.status == filters["status"])
    else:
        q = q.filter(
            Job.status == JobStatus.ACTIVE.value,
            db.or_(Job.expires_at.is_(None), Job.expires_at > now),
        )

    for key in ("profile", "seniority", "work_mode"):
        if filters.get(key):
            q = q.filter(getattr(Job, key) == filters[key])
    if filters.get("q"):
        q = q.filter(Job.title.ilike(f"%{filters['q']}%"))

    jobs = q.order_by(Job.published_at.desc().nullslast(), Job.id.desc()).all()
    return [job_for_viewer(job, viewer) for job in jobs]
