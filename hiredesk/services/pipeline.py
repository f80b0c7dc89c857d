# hiredesk/services/pipeline.py
"""Application state machine.

Every status write goes through ``move_application``: a compare-and-swap on the
status that was read, plus the side effects on the job's assignment. Callers
own the commit so batches stay all-or-nothing.
"""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationError
from ..extensions import db, _
from ..models.application import Application, ApplicationStatus
from ..models.assignment import JobAssignment, RecruiterStatus, SpecialistStatus
from ..models.candidate import Candidate
from ..models.job import ClosedReason, Job, JobStatus
from ..models.user import Role
from ..security import policy
from .notifications import BROADCAST_ADMINS, notify
from .visibility import job_for_viewer

log = logging.getLogger(__name__)

S = ApplicationStatus

_PIPELINE = {
    (S.PENDING, Role.RECRUITER): {S.REVIEWING, S.DISCARDED},
    (S.INJECTED_BY_ADMIN, Role.RECRUITER): {S.REVIEWING, S.DISCARDED},
    (S.REVIEWING, Role.RECRUITER): {S.SENT_TO_SPECIALIST, S.DISCARDED},
    (S.DISCARDED, Role.RECRUITER): {S.REVIEWING},
    (S.DISCARDED, Role.SPECIALIST): {S.EVALUATING},
    (S.SENT_TO_SPECIALIST, Role.SPECIALIST): {S.EVALUATING, S.DISCARDED},
    (S.EVALUATING, Role.SPECIALIST): {S.SENT_TO_COMPANY, S.DISCARDED},
    (S.SENT_TO_COMPANY, Role.COMPANY): {S.COMPANY_INTERESTED, S.ACCEPTED, S.REJECTED},
    (S.COMPANY_INTERESTED, Role.COMPANY): {S.INTERVIEWED, S.ACCEPTED, S.REJECTED},
    (S.INTERVIEWED, Role.COMPANY): {S.ACCEPTED, S.REJECTED},
    (S.REJECTED, Role.COMPANY): {S.COMPANY_INTERESTED, S.ACCEPTED},
}

TERMINAL = frozenset({S.ACCEPTED})


def _build_table():
    table = {key: frozenset(targets) for key, targets in _PIPELINE.items()}
    for status in S:
        if status in TERMINAL:
            continue
        admin = set()
        for (source, _role), targets in _PIPELINE.items():
            if source is status:
                admin |= targets
        if status is S.ARCHIVED:
            admin.add(S.REVIEWING)
        else:
            admin.add(S.ARCHIVED)
        table[(status, Role.ADMIN)] = frozenset(admin)
    return table


TRANSITIONS = _build_table()

COMPANY_VISIBLE = frozenset({
    S.SENT_TO_COMPANY, S.COMPANY_INTERESTED, S.INTERVIEWED, S.REJECTED, S.ACCEPTED,
})
COMPANY_DECISIONS = frozenset({S.COMPANY_INTERESTED, S.INTERVIEWED, S.REJECTED, S.ACCEPTED})


def allowed_targets(status, role) -> frozenset:
    try:
        return TRANSITIONS.get((S(status), Role(role)), frozenset())
    except ValueError:
        return frozenset()


def path_to(status, target, role) -> list | None:
    """Shortest legal walk from ``status`` to ``target`` for ``role`` (excluding the start)."""
    start, goal = S(status), S(target)
    seen = {start}
    queue = deque([(start, [])])
    while queue:
        node, path = queue.popleft()
        for nxt in sorted(allowed_targets(node, role), key=lambda s: s.value):
            if nxt in seen:
                continue
            if nxt is goal:
                return path + [nxt]
            seen.add(nxt)
            queue.append((nxt, path + [nxt]))
    return None


def union_ids(existing, new_ids) -> list:
    merged = list(existing or [])
    for cid in new_ids:
        if cid not in merged:
            merged.append(cid)
    return merged


def locked_assignment(job_id: int) -> JobAssignment | None:
    return (
        JobAssignment.query
        .filter_by(job_id=job_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _coerce_status(value) -> ApplicationStatus:
    try:
        return S(value)
    except ValueError:
        raise ValidationError(_("Invalid application status: %(status)s", status=value))


def append_note(existing, note):
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


def get_application_or_404(application_id: int) -> Application:
    app_row = db.session.get(Application, application_id)
    if not app_row:
        raise NotFound(_("Application not found."))
    return app_row


def move_application(application: Application, source, target, *, now: datetime, notes=None,
                     close_job: bool = False):
    """Write one legal step and its side effects. No permission checks, no commit."""
    source, target = S(source), S(target)
    values = {Application.status: target.value, Application.updated_at: now}
    if application.reviewed_at is None:
        values[Application.reviewed_at] = now
    if notes:
        values[Application.notes] = append_note(application.notes, notes)

    rows = (
        Application.query
        .filter(
            Application.id == application.id,
            Application.status == source.value,
            Application.withdrawn_at.is_(None),
        )
        .update(values, synchronize_session="fetch")
    )
    if rows == 0:
        log.warning("Lost race on application %s (%s -> %s)", application.id, source.value, target.value)
        raise Conflict(_("This application was changed by someone else. Reload and try again."))

    job = application.job
    assignment = job.assignment
    if target is S.SENT_TO_SPECIALIST and assignment is not None:
        assignment = locked_assignment(job.id)
        assignment.recruiter_status = RecruiterStatus.SENT_TO_SPECIALIST.value
        if application.candidate_id is not None:
            assignment.sent_to_specialist = union_ids(assignment.sent_to_specialist, [application.candidate_id])
    elif target is S.REVIEWING and assignment is not None:
        if assignment.recruiter_status == RecruiterStatus.PENDING.value:
            assignment.recruiter_status = RecruiterStatus.REVIEWING.value
    elif target is S.EVALUATING and assignment is not None:
        if assignment.specialist_status == SpecialistStatus.PENDING.value:
            assignment.specialist_status = SpecialistStatus.EVALUATING.value
    elif target is S.SENT_TO_COMPANY and assignment is not None:
        assignment = locked_assignment(job.id)
        days = current_app.config.get("FOLLOW_UP_DAYS", 45)
        assignment.follow_up_date = now + timedelta(days=days)
        if application.candidate_id is not None:
            assignment.sent_to_company = union_ids(assignment.sent_to_company, [application.candidate_id])
    elif target is S.ACCEPTED:
        if application.candidate is not None:
            application.candidate.status = "hired"
        if close_job and job.status != JobStatus.CLOSED.value:
            job.status = JobStatus.CLOSED.value
            job.closed_reason = ClosedReason.SUCCESS.value

    log.info("Application %s: %s -> %s", application.id, source.value, target.value)


def check_step(application: Application, role, target):
    """Raise unless ``role`` may move ``application`` to ``target`` right now."""
    source = S(application.status)
    target = S(target)
    if application.is_withdrawn:
        raise InvalidTransition(
            _("This application was withdrawn."), source=source, target=target, allowed=(),
        )
    allowed = allowed_targets(source, role)
    if target not in allowed:
        raise InvalidTransition(
            _("Cannot move an application from %(source)s to %(target)s.",
              source=source.value, target=target.value),
            source=source, target=target, allowed=allowed,
        )
    if target is S.SENT_TO_SPECIALIST:
        assignment = application.job.assignment
        if assignment is None or assignment.specialist_id is None:
            raise InvalidTransition(
                _("Assign a specialist to this job before sending candidates."),
                source=source, target=target, allowed=allowed - {S.SENT_TO_SPECIALIST},
            )
    return source, target


def transition_application(actor, application_id: int, target, *, close_job: bool = False,
                           notes=None, now: datetime | None = None) -> Application:
    application = get_application_or_404(application_id)
    role = policy.pipeline_role(actor, application)
    target = _coerce_status(target)
    source, target = check_step(application, role, target)
    now = now or datetime.utcnow()

    try:
        move_application(application, source, target, now=now, notes=notes, close_job=close_job)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(application)
    if target in COMPANY_DECISIONS and role is Role.COMPANY:
        notify(
            BROADCAST_ADMINS, "application_status",
            _("Company decision"),
            _("%(name)s is now %(status)s for \"%(title)s\".",
              name=application.candidate_name, status=target.value, title=application.job.title),
            link=f"/applications/{application.id}",
            metadata={"application_id": application.id, "job_id": application.job_id,
                      "from": source.value, "to": target.value},
        )
    return application


# -----------------
# Submission & injection
# -----------------

def live_application(job_id: int, email: str):
    return (
        Application.query
        .filter(
            Application.job_id == job_id,
            func.lower(Application.candidate_email) == email.lower(),
            Application.withdrawn_at.is_(None),
        )
        .first()
    )


def submit_application(job_id: int, data: dict, user=None) -> Application:
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound(_("Job not found."))
    if not job.is_open(datetime.utcnow()):
        raise ValidationError(_("This job is not accepting applications."))

    name = (data.get("candidate_name") or "").strip()
    email = (data.get("candidate_email") or "").strip().lower()
    if not name or not email:
        raise ValidationError(_("Name and e-mail are required."))
    if live_application(job.id, email):
        raise Conflict(_("You have already applied to this job."))

    candidate = Candidate.query.filter(func.lower(Candidate.email) == email).first()
    application = Application(
        job_id=job.id,
        candidate_id=candidate.id if candidate else None,
        user_id=getattr(user, "id", None),
        candidate_name=name,
        candidate_email=email,
        candidate_phone=(data.get("candidate_phone") or "").strip() or None,
        cv_url=data.get("cv_url") or None,
        cover_letter=data.get("cover_letter") or None,
        status=S.PENDING.value,
    )
    db.session.add(application)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(_("You have already applied to this job."))

    log.info("Application %s submitted to job %s", application.id, job.id)
    if job.assignment and job.assignment.recruiter_id:
        notify(
            job.assignment.recruiter_id, "new_application",
            _("New application"),
            _("%(name)s applied to \"%(title)s\".", name=name, title=job.title),
            link=f"/applications/{application.id}",
            metadata={"application_id": application.id, "job_id": job.id},
        )
    return application


def create_from_candidate(job: Job, candidate: Candidate, status) -> Application:
    application = Application(
        job_id=job.id,
        candidate_id=candidate.id,
        candidate_name=candidate.full_name,
        candidate_email=candidate.email.lower(),
        candidate_phone=candidate.phone,
        cv_url=candidate.cv_url,
        status=S(status).value,
    )
    db.session.add(application)
    return application


def inject_candidates(actor, job_id: int, candidate_ids) -> list[Application]:
    policy.require_admin(actor)
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound(_("Job not found."))
    ids = union_ids([], candidate_ids or [])
    if not ids:
        raise ValidationError(_("Select at least one candidate."))

    candidates = Candidate.query.filter(Candidate.id.in_(ids)).all()
    missing = sorted(set(ids) - {c.id for c in candidates})
    if missing:
        raise NotFound(_("Candidates not found."), candidate_ids=missing)

    created = []
    try:
        for candidate in sorted(candidates, key=lambda c: ids.index(c.id)):
            if live_application(job.id, candidate.email):
                continue
            created.append(create_from_candidate(job, candidate, S.INJECTED_BY_ADMIN))
            candidate.status = "in_process"
        if not created:
            raise Conflict(_("All selected candidates are already in this job's pipeline."))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Injected %d candidate(s) into job %s", len(created), job.id)
    return created


def withdraw_application(actor, application_id: int, now: datetime | None = None) -> Application:
    application = get_application_or_404(application_id)
    is_applicant = (
        getattr(actor, "role", None) in (Role.CANDIDATE.value, Role.USER.value)
        and policy.can_view_application(actor, application)
    )
    if not (is_applicant or policy.is_admin(actor)):
        raise Forbidden(_("Only the applicant can withdraw this application."))
    if application.status == S.ACCEPTED.value:
        raise InvalidTransition(
            _("An accepted application cannot be withdrawn."),
            source=S.ACCEPTED, target=None, allowed=(),
        )

    now = now or datetime.utcnow()
    rows = (
        Application.query
        .filter(Application.id == application.id, Application.withdrawn_at.is_(None))
        .update({Application.withdrawn_at: now, Application.updated_at: now}, synchronize_session="fetch")
    )
    if rows == 0:
        db.session.rollback()
        raise Conflict(_("This application was already withdrawn."))
    db.session.commit()
    log.info("Application %s withdrawn", application.id)
    return application


# -----------------
# Reads
# -----------------

def get_application(actor, application_id: int) -> dict:
    application = get_application_or_404(application_id)
    if application.is_withdrawn and not policy.is_admin(actor):
        raise NotFound(_("Application not found."))
    if not policy.can_view_application(actor, application):
        raise Forbidden(_("You do not have permission to view this application."))
    if getattr(actor, "role", None) == Role.COMPANY.value and S(application.status) not in COMPANY_VISIBLE:
        raise NotFound(_("Application not found."))
    return application.to_dict(job=job_for_viewer(application.job, actor))


def list_applications_for_viewer(job_id: int, viewer, is_owner: bool, status=None) -> list[dict]:
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound(_("Job not found."))

    role = getattr(viewer, "role", None)
    q = Application.query.filter(Application.job_id == job.id, Application.withdrawn_at.is_(None))

    if role in (Role.CANDIDATE.value, Role.USER.value) or role is None:
        raise Forbidden(_("You do not have permission to view these applications."))
    if role == Role.COMPANY.value:
        if not is_owner:
            raise Forbidden(_("You do not have permission to view these applications."))
        q = q.filter(Application.status.in_([s.value for s in COMPANY_VISIBLE]))
    elif role in (Role.RECRUITER.value, Role.SPECIALIST.value):
        assignment = job.assignment
        if not assignment or viewer.id not in (assignment.recruiter_id, assignment.specialist_id):
            raise Forbidden(_("You do not have permission to view these applications."))

    if status:
        q = q.filter(Application.status == _coerce_status(status).value)

    job_payload = job_for_viewer(job, viewer)
    rows = q.order_by(Application.created_at.desc(), Application.id.desc()).all()
    return [row.to_dict(job=job_payload) for row in rows]
