# hiredesk/services/visibility.py
from ..models.user import Role

CONFIDENTIAL_COMPANY = "Empresa Confidencial"
FALLBACK_REGION = "México"


def region_of(location: str | None) -> str:
    """'Street 123, Monterrey, Nuevo León' -> 'Monterrey'."""
    parts = (location or "").split(",")
    if len(parts) < 2:
        return FALLBACK_REGION
    return parts[1].strip() or FALLBACK_REGION


def sanitize_job(job: dict | None, viewer_role, is_owner: bool) -> dict | None:
    """Redact company identity and precise location of a confidential job.

    Pure: returns the same dict when nothing needs hiding, otherwise a copy.
    """
    if job is None:
        return None
    role = getattr(viewer_role, "value", viewer_role)
    if not job.get("is_confidential") or is_owner or role == Role.ADMIN.value:
        return job
    return {
        **job,
        "company": CONFIDENTIAL_COMPANY,
        "location": region_of(job.get("location")),
        "logo_url": None,
    }


def job_for_viewer(job, viewer) -> dict:
    """Serialize a Job model for ``viewer`` (a User or None for anonymous reads)."""
    is_owner = viewer is not None and job.user_id is not None and job.user_id == viewer.id
    return sanitize_job(job.to_dict(), getattr(viewer, "role", None), is_owner)
