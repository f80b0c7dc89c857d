# hiredesk/services/assignments.py
import logging
from datetime import datetime, timedelta

from flask import current_app

from ..errors import InvalidTransition, NotFound, ValidationError
from ..extensions import db, _
from ..models.application import ApplicationStatus
from ..models.assignment import JobAssignment, RecruiterStatus, SpecialistStatus
from ..models.candidate import Candidate
from ..models.job import Job
from ..models.user import Role, User
from ..security import policy
from .notifications import notify
from .pipeline import (
    check_step, create_from_candidate, get_application_or_404, locked_assignment,
    append_note, live_application, move_application, path_to, union_ids,
)

log = logging.getLogger(__name__)

RECRUITER_FLOW = {
    RecruiterStatus.PENDING: frozenset({RecruiterStatus.REVIEWING, RecruiterStatus.SENT_TO_SPECIALIST}),
    RecruiterStatus.REVIEWING: frozenset({RecruiterStatus.SENT_TO_SPECIALIST}),
    RecruiterStatus.SENT_TO_SPECIALIST: frozenset({RecruiterStatus.REVIEWING}),
}

SPECIALIST_FLOW = {
    SpecialistStatus.PENDING: frozenset({SpecialistStatus.EVALUATING, SpecialistStatus.SENT_TO_COMPANY}),
    SpecialistStatus.EVALUATING: frozenset({SpecialistStatus.SENT_TO_COMPANY}),
    SpecialistStatus.SENT_TO_COMPANY: frozenset({SpecialistStatus.EVALUATING}),
}

# how far along the pipeline each status is; None = off the main track
_PROGRESS = {
    ApplicationStatus.PENDING: 0,
    ApplicationStatus.INJECTED_BY_ADMIN: 0,
    ApplicationStatus.REVIEWING: 1,
    ApplicationStatus.SENT_TO_SPECIALIST: 2,
    ApplicationStatus.EVALUATING: 3,
    ApplicationStatus.SENT_TO_COMPANY: 4,
    ApplicationStatus.COMPANY_INTERESTED: 5,
    ApplicationStatus.INTERVIEWED: 6,
    ApplicationStatus.REJECTED: 6,
    ApplicationStatus.ACCEPTED: 7,
}


def _reached(status, target) -> bool:
    rank = _PROGRESS.get(ApplicationStatus(status))
    return rank is not None and rank >= _PROGRESS[ApplicationStatus(target)]


def get_assignment_or_404(assignment_id: int) -> JobAssignment:
    assignment = db.session.get(JobAssignment, assignment_id)
    if not assignment:
        raise NotFound(_("Assignment not found."))
    return assignment


def _staff(user_id, role: Role):
    user = db.session.get(User, user_id)
    if not user or user.role != role.value or not user.is_active:
        raise ValidationError(_("User %(id)s is not an active %(role)s.", id=user_id, role=role.value))
    return user


def assign_recruiter_specialist(actor, job_id: int, recruiter_id=None, specialist_id=None):
    """Create or update the job's assignment. Returns (assignment, warning or None)."""
    policy.require_admin(actor)
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound(_("Job not found."))
    if recruiter_id is None and specialist_id is None:
        raise ValidationError(_("Choose a recruiter, a specialist or both."))

    recruiter = _staff(recruiter_id, Role.RECRUITER) if recruiter_id is not None else None
    specialist = _staff(specialist_id, Role.SPECIALIST) if specialist_id is not None else None

    warning = None
    if specialist and specialist.specialty and job.profile:
        if specialist.specialty.strip().lower() != job.profile.strip().lower():
            warning = _("Specialist %(name)s works on %(specialty)s but this job is for %(profile)s.",
                        name=specialist.name, specialty=specialist.specialty, profile=job.profile)

    assignment = JobAssignment.query.filter_by(job_id=job.id).first()
    if assignment is None:
        assignment = JobAssignment(job_id=job.id, assigned_by=actor.id,
                                   sent_to_specialist=[], sent_to_company=[])
        db.session.add(assignment)

    newly_assigned = []
    if recruiter and assignment.recruiter_id != recruiter.id:
        assignment.recruiter_id = recruiter.id
        newly_assigned.append(recruiter)
    if specialist and assignment.specialist_id != specialist.id:
        assignment.specialist_id = specialist.id
        newly_assigned.append(specialist)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Job %s assigned: recruiter=%s specialist=%s", job.id, assignment.recruiter_id, assignment.specialist_id)
    if warning:
        log.warning("Assignment %s: %s", assignment.id, warning)
    for user in newly_assigned:
        notify(
            user.id, "job_assigned",
            _("New job assigned"),
            _("You were assigned to \"%(title)s\".", title=job.title),
            link=f"/assignments/{assignment.id}",
            metadata={"job_id": job.id, "assignment_id": assignment.id, "role": user.role},
        )
    return assignment, warning


# -----------------
# Sub-statuses
# -----------------

def _step_sub_status(flow, current, target, label):
    if target == current:
        return False
    allowed = flow.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransition(
            _("The %(track)s status cannot go from %(source)s to %(target)s.",
              track=label, source=current.value, target=target.value),
            source=current, target=target, allowed=allowed,
        )
    return True


def update_recruiter_status(actor, assignment_id: int, status, notes=None) -> JobAssignment:
    assignment = get_assignment_or_404(assignment_id)
    policy.require_assignment_member(actor, assignment, Role.RECRUITER)
    try:
        target = RecruiterStatus(status)
    except ValueError:
        raise ValidationError(_("Invalid recruiter status: %(status)s", status=status))

    changed = _step_sub_status(RECRUITER_FLOW, RecruiterStatus(assignment.recruiter_status), target, "recruiter")
    if changed:
        assignment.recruiter_status = target.value
    if notes is not None:
        assignment.recruiter_notes = notes
    db.session.commit()
    return assignment


def update_specialist_status(actor, assignment_id: int, status, notes=None) -> JobAssignment:
    assignment = get_assignment_or_404(assignment_id)
    policy.require_assignment_member(actor, assignment, Role.SPECIALIST)
    try:
        target = SpecialistStatus(status)
    except ValueError:
        raise ValidationError(_("Invalid specialist status: %(status)s", status=status))

    changed = _step_sub_status(SPECIALIST_FLOW, SpecialistStatus(assignment.specialist_status), target, "specialist")
    if changed:
        assignment.specialist_status = target.value
    if notes is not None:
        assignment.specialist_notes = notes
    db.session.commit()
    return assignment


# -----------------
# Batch hand-offs
# -----------------

def _clean_ids(candidate_ids):
    ids = []
    for cid in candidate_ids or []:
        if isinstance(cid, bool) or not isinstance(cid, int):
            raise ValidationError(_("Candidate ids must be integers."))
        ids.append(cid)
    ids = union_ids([], ids)
    if not ids:
        raise ValidationError(_("Select at least one candidate."))
    return ids


def _walk(application, role, target, now):
    steps = path_to(application.status, target, role)
    if steps is None:
        check_step(application, role, target)  # raises with the allowed set
    for step in steps:
        check_step(application, role, step)
        move_application(application, application.status, step, now=now)


def send_batch_to_specialist(actor, assignment_id: int, candidate_ids, now=None) -> JobAssignment:
    assignment = get_assignment_or_404(assignment_id)
    policy.require_assignment_member(actor, assignment, Role.RECRUITER)
    role = Role.ADMIN if policy.is_admin(actor) else Role.RECRUITER
    ids = _clean_ids(candidate_ids)
    now = now or datetime.utcnow()
    target = ApplicationStatus.SENT_TO_SPECIALIST

    try:
        assignment = locked_assignment(assignment.job_id)
        if assignment.specialist_id is None:
            raise InvalidTransition(
                _("Assign a specialist to this job before sending candidates."),
                source=None, target=target, allowed=(),
            )
        job = assignment.job

        for cid in ids:
            candidate = db.session.get(Candidate, cid)
            if candidate is None:
                raise NotFound(_("Candidate %(id)s not found.", id=cid), candidate_id=cid)
            application = live_application(job.id, candidate.email)
            if application is None:
                application = create_from_candidate(job, candidate, target)
                candidate.status = "in_process"
                continue
            if application.candidate_id is None:
                application.candidate_id = candidate.id
            if _reached(application.status, target):
                continue
            _walk(application, role, target, now)

        assignment.sent_to_specialist = union_ids(assignment.sent_to_specialist, ids)
        assignment.recruiter_status = RecruiterStatus.SENT_TO_SPECIALIST.value
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Assignment %s: %d candidate(s) sent to specialist", assignment.id, len(ids))
    notify(
        assignment.specialist_id, "candidates_sent",
        _("Candidates to evaluate"),
        _("%(count)s candidate(s) are waiting for your evaluation.", count=len(ids)),
        link=f"/assignments/{assignment.id}",
        metadata={"assignment_id": assignment.id, "candidate_ids": ids},
    )
    return assignment


def send_batch_to_company(actor, assignment_id: int, candidate_ids, now=None) -> JobAssignment:
    assignment = get_assignment_or_404(assignment_id)
    policy.require_assignment_member(actor, assignment, Role.SPECIALIST)
    role = Role.ADMIN if policy.is_admin(actor) else Role.SPECIALIST
    ids = _clean_ids(candidate_ids)
    now = now or datetime.utcnow()
    target = ApplicationStatus.SENT_TO_COMPANY
    days = _follow_up_days()

    try:
        assignment = locked_assignment(assignment.job_id)
        job = assignment.job

        for cid in ids:
            candidate = db.session.get(Candidate, cid)
            application = live_application(job.id, candidate.email) if candidate else None
            if application is None:
                raise ValidationError(
                    _("Candidate %(id)s has no application on this job.", id=cid), candidate_id=cid,
                )
            if application.candidate_id is None:
                application.candidate_id = candidate.id
            if _reached(application.status, target):
                continue
            _walk(application, role, target, now)

        assignment.sent_to_company = union_ids(assignment.sent_to_company, ids)
        assignment.specialist_status = SpecialistStatus.SENT_TO_COMPANY.value
        assignment.follow_up_date = now + days
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Assignment %s: %d candidate(s) sent to company", assignment.id, len(ids))
    if job.user_id:
        notify(
            job.user_id, "candidates_sent",
            _("New candidates for your job"),
            _("%(count)s candidate(s) were sent for \"%(title)s\".", count=len(ids), title=job.title),
            link=f"/jobs/{job.id}/applications",
            metadata={"job_id": job.id, "candidate_ids": ids},
        )
    return assignment


def _follow_up_days():
    return timedelta(days=current_app.config.get("FOLLOW_UP_DAYS", 45))


def discard_candidate(actor, application_id: int, reason: str, now=None):
    application = get_application_or_404(application_id)
    role = policy.pipeline_role(actor, application)
    if role is Role.COMPANY:
        raise InvalidTransition(
            _("Companies reject candidates instead of discarding them."),
            source=application.status, target=ApplicationStatus.DISCARDED,
            allowed=(),
        )
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError(_("A reason is required to discard a candidate."))

    source, target = check_step(application, role, ApplicationStatus.DISCARDED)
    now = now or datetime.utcnow()
    note = f"[DISCARDED: {application.candidate_name}] {reason}"

    try:
        move_application(application, source, target, now=now)
        assignment = application.job.assignment
        if assignment is not None:
            recruiter_side = role is Role.RECRUITER or (
                role is Role.ADMIN and _PROGRESS.get(source, 0) < _PROGRESS[ApplicationStatus.SENT_TO_SPECIALIST]
            )
            if recruiter_side:
                assignment.recruiter_notes = append_note(assignment.recruiter_notes, note)
            else:
                assignment.specialist_notes = append_note(assignment.specialist_notes, note)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Application %s discarded by user %s", application.id, actor.id)
    return application
