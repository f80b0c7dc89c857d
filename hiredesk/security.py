# hiredesk/security.py
"""Authorization in one place.

Routes guard coarse role access with ``roles_required``; services consult
``policy`` before touching the ledger or moving an application, so the admin
exemptions live here and nowhere else.
"""
from functools import wraps

from flask_login import current_user

from .errors import Forbidden
from .extensions import _
from .models.user import Role


def roles_required(*roles):
    allowed = {getattr(r, "value", r) for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if getattr(current_user, "role", None) not in allowed:
                raise Forbidden(_("Your role cannot perform this action."))
            return view(*args, **kwargs)
        return wrapped
    return decorator


def _role(actor) -> Role | None:
    try:
        return Role(getattr(actor, "role", None))
    except ValueError:
        return None


class AccessPolicy:

    def is_admin(self, actor) -> bool:
        return _role(actor) is Role.ADMIN

    def require_admin(self, actor):
        if not self.is_admin(actor):
            raise Forbidden(_("Only administrators can perform this action."))

    # --- jobs & ledger ---

    def is_job_owner(self, actor, job) -> bool:
        return job.user_id is not None and job.user_id == getattr(actor, "id", None)

    def require_job_manager(self, actor, job):
        """Owner company or admin."""
        if self.is_admin(actor):
            return
        if _role(actor) is Role.COMPANY and self.is_job_owner(actor, job):
            return
        raise Forbidden(_("You do not have permission to modify this job."))

    def can_create_jobs(self, actor) -> bool:
        return _role(actor) in (Role.ADMIN, Role.COMPANY)

    def pays_for_publication(self, actor) -> bool:
        return not self.is_admin(actor)

    # --- applications ---

    def pipeline_role(self, actor, application) -> Role:
        """The role ``actor`` plays on this application's job, or Forbidden."""
        role = _role(actor)
        job = application.job
        assignment = job.assignment
        actor_id = getattr(actor, "id", None)

        if role is Role.ADMIN:
            return role
        if role is Role.COMPANY and self.is_job_owner(actor, job):
            return role
        if role is Role.RECRUITER and assignment and assignment.recruiter_id == actor_id:
            return role
        if role is Role.SPECIALIST and assignment and assignment.specialist_id == actor_id:
            return role
        raise Forbidden(_("You do not have permission to modify this application."))

    def can_view_application(self, actor, application) -> bool:
        role = _role(actor)
        if role in (Role.CANDIDATE, Role.USER):
            if application.user_id is not None and application.user_id == actor.id:
                return True
            return (application.candidate_email or "").lower() == (actor.email or "").lower()
        try:
            self.pipeline_role(actor, application)
        except Forbidden:
            return False
        return True

    # --- assignments ---

    def require_assignment_member(self, actor, assignment, role: Role):
        if self.is_admin(actor):
            return
        actor_id = getattr(actor, "id", None)
        if role is Role.RECRUITER and _role(actor) is Role.RECRUITER and assignment.recruiter_id == actor_id:
            return
        if role is Role.SPECIALIST and _role(actor) is Role.SPECIALIST and assignment.specialist_id == actor_id:
            return
        raise Forbidden(_("You do not have permission to modify this assignment."))


policy = AccessPolicy()
